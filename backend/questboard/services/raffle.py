from __future__ import annotations
import secrets
import uuid
from typing import Callable, Sequence
import structlog
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import insert_for, utcnow
from questboard.errors import ConflictError
from questboard.models.badge import TeenBadge
from questboard.models.challenge import Badge, Challenge
from questboard.models.raffle import RaffleDraw, RaffleEntry
from questboard.models.teen import Teen

log = structlog.get_logger()

# One badge per calendar month; all twelve are needed to enter the yearly draw.
REQUIRED_BADGES = 12
HELD_STATUSES = ("PURCHASED", "EARNED")


async def count_held_badges(session: AsyncSession, teen_id: uuid.UUID, year: int) -> int:
    """Distinct challenges of `year` for which the teen holds a purchased or earned badge."""
    held = await session.scalar(
        select(func.count(func.distinct(Badge.challenge_id)))
        .select_from(TeenBadge)
        .join(Badge, Badge.id == TeenBadge.badge_id)
        .join(Challenge, Challenge.id == Badge.challenge_id)
        .where(
            TeenBadge.teen_id == teen_id,
            TeenBadge.status.in_(HELD_STATUSES),
            Challenge.year == year,
        )
    )
    return int(held or 0)


async def get_entry(session: AsyncSession, teen_id: uuid.UUID, year: int) -> RaffleEntry | None:
    return await session.scalar(
        select(RaffleEntry)
        .where(RaffleEntry.teen_id == teen_id, RaffleEntry.year == year)
        .execution_options(populate_existing=True)
    )


async def recompute_eligibility(session: AsyncSession, teen_id: uuid.UUID, year: int) -> RaffleEntry:
    """
    Derive the (teen, year) raffle entry from the badge table and overwrite it.
    Exactly REQUIRED_BADGES held badges makes the teen eligible.
    """
    held = await count_held_badges(session, teen_id, year)
    is_eligible = held == REQUIRED_BADGES

    stmt = insert_for(session, RaffleEntry).values(
        id=uuid.uuid4(), teen_id=teen_id, year=year, is_eligible=is_eligible, created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["teen_id", "year"],
        set_={"is_eligible": stmt.excluded.is_eligible},
    )
    await session.execute(stmt)

    log.info("raffle_eligibility_recomputed", teen_id=str(teen_id), year=year, held_badges=held, is_eligible=is_eligible)
    return await get_entry(session, teen_id, year)


async def eligibility_summary(session: AsyncSession, teen_id: uuid.UUID, year: int) -> dict:
    held = await count_held_badges(session, teen_id, year)
    return {
        "year": year,
        "is_eligible": held == REQUIRED_BADGES,
        "purchased_badges": held,
        "required_badges": REQUIRED_BADGES,
        "raffle_entry": await get_entry(session, teen_id, year),
    }


async def eligible_entries(session: AsyncSession, year: int) -> list[tuple[RaffleEntry, Teen]]:
    rows = (await session.execute(
        select(RaffleEntry, Teen)
        .join(Teen, Teen.id == RaffleEntry.teen_id)
        .where(RaffleEntry.year == year, RaffleEntry.is_eligible.is_(True))
        .order_by(RaffleEntry.created_at.asc())
    )).all()
    return [(entry, teen) for (entry, teen) in rows]


async def draw_raffle(
    session: AsyncSession,
    *,
    year: int,
    prize: str,
    description: str | None = None,
    choose: Callable[[Sequence[RaffleEntry]], RaffleEntry] = secrets.choice,
) -> RaffleDraw:
    """Pick one winner among eligible entries. Write-once per year."""
    existing = await session.scalar(select(RaffleDraw).where(RaffleDraw.year == year))
    if existing:
        raise ConflictError("Raffle already exists for this year")

    entries = [entry for (entry, _teen) in await eligible_entries(session, year)]
    if not entries:
        raise ConflictError("No eligible teens found for this year")

    winner = choose(entries)
    draw = RaffleDraw(
        year=year,
        prize=prize,
        description=description,
        winner_id=winner.teen_id,
        eligible_count=len(entries),
        drawn_at=utcnow(),
    )
    session.add(draw)
    try:
        await session.flush()
    except IntegrityError:
        # lost the race against a concurrent draw
        raise ConflictError("Raffle already exists for this year")

    log.info("raffle_drawn", year=year, winner_id=str(winner.teen_id), eligible=len(entries))
    return draw


async def raffle_history(session: AsyncSession) -> list[tuple[RaffleDraw, int]]:
    draws = (await session.execute(select(RaffleDraw).order_by(RaffleDraw.year.desc()))).scalars().all()
    out = []
    for d in draws:
        eligible = await session.scalar(
            select(func.count()).select_from(RaffleEntry)
            .where(RaffleEntry.year == d.year, RaffleEntry.is_eligible.is_(True))
        )
        out.append((d, int(eligible or 0)))
    return out
