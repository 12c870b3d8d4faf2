from __future__ import annotations
from dataclasses import dataclass, field, asdict
from functools import lru_cache
from typing import Iterable
import structlog
from redis import Redis
from rq import Queue
from questboard.config import settings

log = structlog.get_logger()


@dataclass(frozen=True)
class DomainEvent:
    name: str
    title: str
    body: str
    teen_id: str | None = None  # None = broadcast to every active teen
    data: dict = field(default_factory=dict)


def challenge_published(challenge_id, theme: str, badge_name: str | None) -> DomainEvent:
    return DomainEvent(
        name="ChallengePublished",
        title=f"New Challenge Available: {theme}",
        body=f"{theme} is now live! Start earning your badge today." + (f" Badge: {badge_name}." if badge_name else ""),
        data={"challenge_id": str(challenge_id)},
    )


def challenge_completed(teen_id, challenge_id) -> DomainEvent:
    return DomainEvent(
        name="ChallengeCompleted",
        title="Challenge complete!",
        body="You finished every task in this month's challenge.",
        teen_id=str(teen_id),
        data={"challenge_id": str(challenge_id)},
    )


def task_approved(teen_id, task_id, task_title: str) -> DomainEvent:
    return DomainEvent(
        name="TaskApproved",
        title="Submission approved",
        body=f'Your submission for "{task_title}" was approved.',
        teen_id=str(teen_id),
        data={"task_id": str(task_id)},
    )


def badge_purchased(teen_id, badge_id, badge_name: str) -> DomainEvent:
    return DomainEvent(
        name="BadgePurchased",
        title="Badge purchased",
        body=f"{badge_name} is yours. Complete the challenge to earn it.",
        teen_id=str(teen_id),
        data={"badge_id": str(badge_id)},
    )


def badge_earned(teen_id, badge_id, badge_name: str) -> DomainEvent:
    return DomainEvent(
        name="BadgeEarned",
        title="Badge earned!",
        body=f"Congratulations, you earned {badge_name}.",
        teen_id=str(teen_id),
        data={"badge_id": str(badge_id)},
    )


class EventBuffer:
    """Collects events during a request; dispatched only after the commit succeeds."""

    def __init__(self):
        self.pending: list[DomainEvent] = []

    def emit(self, event: DomainEvent) -> None:
        self.pending.append(event)

    def drain(self) -> list[DomainEvent]:
        out, self.pending = self.pending, []
        return out

    def names(self) -> list[str]:
        return [e.name for e in self.pending]


class RQEventPublisher:
    def __init__(self, redis_url: str, queue_name: str):
        self._redis_url = redis_url
        self._queue_name = queue_name
        self._q: Queue | None = None

    def _queue(self) -> Queue:
        if self._q is None:
            self._q = Queue(self._queue_name, connection=Redis.from_url(self._redis_url))
        return self._q

    def publish(self, events: Iterable[DomainEvent]) -> None:
        # Notifications are fire-and-forget: a broken queue never fails the request
        from questboard.jobs.notify import dispatch_event
        for event in events:
            try:
                self._queue().enqueue(dispatch_event, asdict(event), job_timeout=60)
            except Exception:
                log.warning("event_enqueue_failed", event_name=event.name, teen_id=event.teen_id, exc_info=True)


@lru_cache(maxsize=1)
def get_event_publisher() -> RQEventPublisher:
    return RQEventPublisher(settings.redis_url, settings.notifications_queue)


def get_event_buffer() -> EventBuffer:
    return EventBuffer()
