from __future__ import annotations
import uuid
import structlog
from sqlalchemy import select, func, case, null
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import insert_for, utcnow
from questboard.errors import NotFoundError
from questboard.models.challenge import Badge, Challenge, Task
from questboard.models.progress import TeenProgress
from questboard.models.submission import Submission
from questboard.services import events as ev
from questboard.services.badges import evaluate_earned

log = structlog.get_logger()


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when the challenge has no tasks."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


async def get_progress(session: AsyncSession, teen_id: uuid.UUID, challenge_id: uuid.UUID) -> TeenProgress | None:
    return await session.scalar(
        select(TeenProgress)
        .where(TeenProgress.teen_id == teen_id, TeenProgress.challenge_id == challenge_id)
        .execution_options(populate_existing=True)
    )


async def recompute_progress(
    session: AsyncSession,
    teen_id: uuid.UUID,
    challenge_id: uuid.UUID,
    *,
    events: ev.EventBuffer | None = None,
) -> TeenProgress:
    """
    Rebuild the (teen, challenge) progress row from the current tasks and
    approved submissions. Safe to call any number of times; the row is
    always overwritten with freshly counted values.
    """
    if not await session.get(Challenge, challenge_id):
        raise NotFoundError("Challenge not found")

    total = await session.scalar(
        select(func.count()).select_from(Task).where(Task.challenge_id == challenge_id)
    ) or 0
    completed = await session.scalar(
        select(func.count())
        .select_from(Submission)
        .join(Task, Task.id == Submission.task_id)
        .where(
            Submission.teen_id == teen_id,
            Submission.status == "APPROVED",
            Task.challenge_id == challenge_id,
        )
    ) or 0
    percentage = completion_percentage(completed, total)

    prior = await session.scalar(
        select(TeenProgress.percentage)
        .where(TeenProgress.teen_id == teen_id, TeenProgress.challenge_id == challenge_id)
    )

    stmt = insert_for(session, TeenProgress).values(
        id=uuid.uuid4(),
        teen_id=teen_id,
        challenge_id=challenge_id,
        tasks_total=total,
        tasks_completed=completed,
        percentage=percentage,
        completed_at=utcnow() if percentage == 100 else None,
    )
    completed_at = TeenProgress.__table__.c.completed_at
    stmt = stmt.on_conflict_do_update(
        index_elements=["teen_id", "challenge_id"],
        set_={
            "tasks_total": stmt.excluded.tasks_total,
            "tasks_completed": stmt.excluded.tasks_completed,
            "percentage": stmt.excluded.percentage,
            # keep the first completion time while at 100, clear it below
            "completed_at": case(
                (stmt.excluded.percentage == 100, func.coalesce(completed_at, stmt.excluded.completed_at)),
                else_=null(),
            ),
        },
    )
    await session.execute(stmt)
    progress = await get_progress(session, teen_id, challenge_id)

    log.info(
        "progress_recomputed",
        teen_id=str(teen_id), challenge_id=str(challenge_id),
        completed=completed, total=total, percentage=percentage,
    )

    if percentage == 100:
        if prior != 100 and events is not None:
            events.emit(ev.challenge_completed(teen_id, challenge_id))
        badge_id = await session.scalar(select(Badge.id).where(Badge.challenge_id == challenge_id))
        if badge_id is not None:
            await evaluate_earned(session, teen_id, badge_id, events=events)
    return progress


async def recompute_challenge(session: AsyncSession, challenge_id: uuid.UUID, *, events: ev.EventBuffer | None = None) -> int:
    """Recompute every teen that already has progress on the challenge (after its task list changes)."""
    teen_ids = (await session.execute(
        select(TeenProgress.teen_id).where(TeenProgress.challenge_id == challenge_id)
    )).scalars().all()
    for teen_id in teen_ids:
        await recompute_progress(session, teen_id, challenge_id, events=events)
    return len(teen_ids)


async def yearly_progress(session: AsyncSession, teen_id: uuid.UUID, year: int) -> dict:
    rows = (await session.execute(
        select(TeenProgress)
        .join(Challenge, Challenge.id == TeenProgress.challenge_id)
        .where(TeenProgress.teen_id == teen_id, Challenge.year == year)
        .order_by(Challenge.month.asc())
    )).scalars().all()
    total = await session.scalar(
        select(func.count()).select_from(Challenge)
        .where(Challenge.year == year, Challenge.is_published.is_(True))
    ) or 0
    done = sum(1 for p in rows if p.percentage == 100)
    avg = round(sum(p.percentage for p in rows) / len(rows), 2) if rows else 0.0
    return {
        "year": year,
        "progress": list(rows),
        "stats": {"completed_challenges": done, "total_challenges": total, "average_percentage": avg},
    }
