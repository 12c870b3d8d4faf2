from __future__ import annotations
import uuid
from datetime import datetime
import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import insert_for, utcnow
from questboard.errors import DuplicatePurchaseError, NotFoundError
from questboard.models.badge import TeenBadge
from questboard.models.challenge import Badge, Challenge
from questboard.models.progress import TeenProgress
from questboard.models.teen import Teen
from questboard.services import events as ev
from questboard.services.raffle import recompute_eligibility

log = structlog.get_logger()


async def get_teen_badge(session: AsyncSession, teen_id: uuid.UUID, badge_id: uuid.UUID) -> TeenBadge | None:
    return await session.scalar(
        select(TeenBadge)
        .where(TeenBadge.teen_id == teen_id, TeenBadge.badge_id == badge_id)
        .execution_options(populate_existing=True)
    )


async def _badge_and_year(session: AsyncSession, badge_id: uuid.UUID) -> tuple[Badge, int]:
    row = (await session.execute(
        select(Badge, Challenge.year).join(Challenge, Challenge.id == Badge.challenge_id).where(Badge.id == badge_id)
    )).first()
    if not row:
        raise NotFoundError("Badge not found")
    return row[0], int(row[1])


async def purchase_badge(
    session: AsyncSession,
    teen_id: uuid.UUID,
    badge_id: uuid.UUID,
    *,
    events: ev.EventBuffer | None = None,
    purchased_at: datetime | None = None,
) -> TeenBadge:
    """
    AVAILABLE (or no row) -> PURCHASED.
    The unique (teen, badge) key decides "already purchased": whichever
    concurrent writer inserts or flips the row wins, the other gets
    DuplicatePurchaseError.
    """
    badge, year = await _badge_and_year(session, badge_id)
    if not badge.is_active:
        raise NotFoundError("Badge not found or inactive")
    when = purchased_at or utcnow()

    ins = insert_for(session, TeenBadge).values(
        id=uuid.uuid4(), teen_id=teen_id, badge_id=badge_id, status="PURCHASED", purchased_at=when, created_at=utcnow(),
    ).on_conflict_do_nothing(index_elements=["teen_id", "badge_id"])
    res = await session.execute(ins)

    if res.rowcount != 1:
        upgraded = await session.execute(
            update(TeenBadge)
            .where(
                TeenBadge.teen_id == teen_id,
                TeenBadge.badge_id == badge_id,
                TeenBadge.status == "AVAILABLE",
            )
            .values(status="PURCHASED", purchased_at=when)
            .execution_options(synchronize_session=False)
        )
        if upgraded.rowcount != 1:
            raise DuplicatePurchaseError("Badge already purchased")

    log.info("badge_purchased", teen_id=str(teen_id), badge_id=str(badge_id))
    if events is not None:
        events.emit(ev.badge_purchased(teen_id, badge_id, badge.name))

    await recompute_eligibility(session, teen_id, year)
    # already at 100% for this month -> earned straight away
    await evaluate_earned(session, teen_id, badge_id, events=events)
    return await get_teen_badge(session, teen_id, badge_id)


async def evaluate_earned(
    session: AsyncSession,
    teen_id: uuid.UUID,
    badge_id: uuid.UUID,
    *,
    events: ev.EventBuffer | None = None,
) -> TeenBadge | None:
    """PURCHASED -> EARNED once the badge's challenge is 100% complete; otherwise a no-op."""
    badge, year = await _badge_and_year(session, badge_id)
    percentage = await session.scalar(
        select(TeenProgress.percentage)
        .where(TeenProgress.teen_id == teen_id, TeenProgress.challenge_id == badge.challenge_id)
    )
    if percentage == 100:
        res = await session.execute(
            update(TeenBadge)
            .where(
                TeenBadge.teen_id == teen_id,
                TeenBadge.badge_id == badge_id,
                TeenBadge.status == "PURCHASED",
            )
            .values(status="EARNED", earned_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 1:
            log.info("badge_earned", teen_id=str(teen_id), badge_id=str(badge_id))
            if events is not None:
                events.emit(ev.badge_earned(teen_id, badge_id, badge.name))
            await recompute_eligibility(session, teen_id, year)
    return await get_teen_badge(session, teen_id, badge_id)


async def award_badge(
    session: AsyncSession,
    teen_id: uuid.UUID,
    badge_id: uuid.UUID,
    *,
    events: ev.EventBuffer | None = None,
) -> TeenBadge:
    """Staff override: mark the badge EARNED without purchase or completion."""
    if not await session.get(Teen, teen_id):
        raise NotFoundError("Teen not found")
    badge, year = await _badge_and_year(session, badge_id)
    now = utcnow()

    ins = insert_for(session, TeenBadge).values(
        id=uuid.uuid4(), teen_id=teen_id, badge_id=badge_id, status="EARNED", earned_at=now, created_at=now,
    ).on_conflict_do_nothing(index_elements=["teen_id", "badge_id"])
    changed = (await session.execute(ins)).rowcount == 1
    if not changed:
        res = await session.execute(
            update(TeenBadge)
            .where(
                TeenBadge.teen_id == teen_id,
                TeenBadge.badge_id == badge_id,
                TeenBadge.status != "EARNED",
            )
            .values(status="EARNED", earned_at=now)
            .execution_options(synchronize_session=False)
        )
        changed = res.rowcount == 1

    if changed:
        log.info("badge_awarded", teen_id=str(teen_id), badge_id=str(badge_id))
        if events is not None:
            events.emit(ev.badge_earned(teen_id, badge_id, badge.name))
        await recompute_eligibility(session, teen_id, year)
    return await get_teen_badge(session, teen_id, badge_id)


async def list_my_badges(session: AsyncSession, teen_id: uuid.UUID, year: int | None = None) -> list[tuple[TeenBadge, Badge, Challenge]]:
    q = (
        select(TeenBadge, Badge, Challenge)
        .join(Badge, Badge.id == TeenBadge.badge_id)
        .join(Challenge, Challenge.id == Badge.challenge_id)
        .where(TeenBadge.teen_id == teen_id)
    )
    if year is not None:
        q = q.where(Challenge.year == year)
    q = q.order_by(Challenge.year.asc(), Challenge.month.asc())
    return [(tb, b, c) for (tb, b, c) in (await session.execute(q)).all()]
