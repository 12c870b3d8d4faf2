from __future__ import annotations
import calendar
import uuid
from datetime import datetime, timezone
import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import utcnow
from questboard.errors import ConflictError, NotFoundError
from questboard.models.badge import TeenBadge
from questboard.models.challenge import Badge, Challenge, Task
from questboard.models.progress import TeenProgress
from questboard.schemas.badge import BadgeCreate
from questboard.schemas.challenge import ChallengeCreate
from questboard.schemas.task import TaskCreate
from questboard.services import events as ev
from questboard.services.progress import recompute_challenge

log = structlog.get_logger()


def _as_utc(d: datetime) -> datetime:
    return d.replace(tzinfo=timezone.utc) if d.tzinfo is None else d.astimezone(timezone.utc)


def _month_taken(year: int, month: int) -> ConflictError:
    return ConflictError(
        f"A challenge already exists for {calendar.month_name[month]} {year}. Only one challenge is allowed per month."
    )


async def get_challenge(session: AsyncSession, challenge_id: uuid.UUID) -> Challenge:
    ch = await session.get(Challenge, challenge_id)
    if not ch:
        raise NotFoundError("Challenge not found")
    return ch


async def challenge_detail(session: AsyncSession, challenge_id: uuid.UUID) -> tuple[Challenge, Badge | None, list[Task]]:
    ch = await get_challenge(session, challenge_id)
    badge = await session.scalar(select(Badge).where(Badge.challenge_id == ch.id))
    tasks = (await session.execute(
        select(Task).where(Task.challenge_id == ch.id).order_by(Task.created_at.asc())
    )).scalars().all()
    return ch, badge, list(tasks)


def _task_row(challenge_id: uuid.UUID, t: TaskCreate) -> Task:
    return Task(
        challenge_id=challenge_id,
        tab_name=t.tab_name,
        title=t.title,
        description=t.description,
        task_type=t.task_type,
        is_required=t.is_required,
        max_score=t.max_score,
        options=t.options,
    )


async def create_challenge(session: AsyncSession, payload: ChallengeCreate, created_by_id: uuid.UUID | None = None) -> Challenge:
    """Create a month's challenge together with its badge and initial tasks."""
    taken = await session.scalar(
        select(Challenge.id).where(Challenge.year == payload.year, Challenge.month == payload.month)
    )
    if taken:
        raise _month_taken(payload.year, payload.month)

    ch = Challenge(
        year=payload.year,
        month=payload.month,
        theme=payload.theme,
        instructions=payload.instructions,
        go_live_date=_as_utc(payload.go_live_date),
        closing_date=_as_utc(payload.closing_date),
        is_published=False,
        is_active=True,
        created_by_id=created_by_id,
    )
    session.add(ch)
    try:
        await session.flush()
    except IntegrityError:
        raise _month_taken(payload.year, payload.month)

    if payload.badge:
        session.add(Badge(challenge_id=ch.id, **payload.badge.model_dump()))
    for t in payload.tasks:
        session.add(_task_row(ch.id, t))
    await session.flush()

    log.info("challenge_created", challenge_id=str(ch.id), year=ch.year, month=ch.month, tasks=len(payload.tasks))
    return ch


async def create_badge(session: AsyncSession, challenge_id: uuid.UUID, payload: BadgeCreate) -> Badge:
    await get_challenge(session, challenge_id)
    if await session.scalar(select(Badge.id).where(Badge.challenge_id == challenge_id)):
        raise ConflictError("Badge already exists for this challenge")
    badge = Badge(challenge_id=challenge_id, **payload.model_dump())
    session.add(badge)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Badge already exists for this challenge")
    log.info("badge_created", challenge_id=str(challenge_id), badge_id=str(badge.id))
    return badge


async def add_task(
    session: AsyncSession,
    challenge_id: uuid.UUID,
    payload: TaskCreate,
    *,
    events: ev.EventBuffer | None = None,
) -> Task:
    """Append a task; teens already under way are recomputed against the new total."""
    await get_challenge(session, challenge_id)
    task = _task_row(challenge_id, payload)
    session.add(task)
    await session.flush()
    recomputed = await recompute_challenge(session, challenge_id, events=events)
    log.info("task_added", challenge_id=str(challenge_id), task_id=str(task.id), recomputed=recomputed)
    return task


async def publish_challenge(session: AsyncSession, challenge_id: uuid.UUID, *, events: ev.EventBuffer | None = None) -> Challenge:
    ch = await get_challenge(session, challenge_id)
    badge = await session.scalar(select(Badge).where(Badge.challenge_id == ch.id))
    if not badge:
        raise ConflictError("Cannot publish challenge without a badge. Please create a badge first.")
    if not ch.is_published:
        ch.is_published = True
        await session.flush()
        log.info("challenge_published", challenge_id=str(ch.id))
        if events is not None:
            events.emit(ev.challenge_published(ch.id, ch.theme, badge.name))
    return ch


async def current_challenge(session: AsyncSession, teen_id: uuid.UUID, now: datetime | None = None) -> dict | None:
    """The live challenge for `now` with the teen's badge state and progress, or None."""
    now = _as_utc(now or utcnow())
    ch = await session.scalar(
        select(Challenge)
        .where(
            Challenge.is_published.is_(True),
            Challenge.is_active.is_(True),
            Challenge.go_live_date <= now,
            Challenge.closing_date >= now,
        )
        .order_by(Challenge.go_live_date.desc())
        .limit(1)
    )
    if not ch:
        return None
    _, badge, tasks = await challenge_detail(session, ch.id)

    badge_status = "AVAILABLE"
    if badge:
        badge_status = await session.scalar(
            select(TeenBadge.status).where(TeenBadge.teen_id == teen_id, TeenBadge.badge_id == badge.id)
        ) or "AVAILABLE"
    progress = await session.scalar(
        select(TeenProgress).where(TeenProgress.teen_id == teen_id, TeenProgress.challenge_id == ch.id)
    )
    return {
        "challenge": ch,
        "badge": badge,
        "tasks": tasks,
        "badge_status": badge_status,
        "percentage": progress.percentage if progress else 0,
        "tasks_completed": progress.tasks_completed if progress else 0,
    }
