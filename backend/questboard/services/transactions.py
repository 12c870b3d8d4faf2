"""Read side of badge payments: a teen's own history and the staff ledger."""
from __future__ import annotations
import math
import uuid
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.models.challenge import Badge, Challenge
from questboard.models.teen import Teen
from questboard.models.transaction import Transaction


def _page(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit) if limit else 0}


def _with_badge(q):
    return (
        q.join(Badge, Badge.id == Transaction.badge_id)
        .join(Challenge, Challenge.id == Badge.challenge_id)
        .order_by(Transaction.created_at.desc(), Transaction.id)
    )


async def spending_summary(session: AsyncSession, teen_id: uuid.UUID) -> dict:
    """Totals over settled (SUCCESS) payments only."""
    spent, count = (await session.execute(
        select(func.coalesce(func.sum(Transaction.amount_cents), 0), func.count(Transaction.id))
        .where(Transaction.teen_id == teen_id, Transaction.status == "SUCCESS")
    )).one()
    return {"total_spent_cents": int(spent), "total_transactions": int(count)}


async def list_teen_transactions(
    session: AsyncSession,
    teen_id: uuid.UUID,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[tuple[Transaction, Badge, Challenge]], dict, dict]:
    """Newest first, every status; returns (rows, summary, pagination)."""
    where = Transaction.teen_id == teen_id
    total = await session.scalar(select(func.count(Transaction.id)).where(where)) or 0
    rows = (await session.execute(
        _with_badge(select(Transaction, Badge, Challenge).where(where)).offset((page - 1) * limit).limit(limit)
    )).all()
    summary = await spending_summary(session, teen_id)
    return [tuple(r) for r in rows], summary, _page(total, page, limit)


async def list_transactions(
    session: AsyncSession,
    *,
    status: str | None = None,
    teen_id: uuid.UUID | None = None,
    badge_id: uuid.UUID | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[tuple[Transaction, Badge, Challenge]], dict]:
    """Staff listing across all teens; search matches teen name or email."""
    q = select(Transaction, Badge, Challenge)
    count_q = select(func.count(Transaction.id))
    filters = []
    if status:
        filters.append(Transaction.status == status)
    if teen_id:
        filters.append(Transaction.teen_id == teen_id)
    if badge_id:
        filters.append(Transaction.badge_id == badge_id)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.join(Teen, Teen.id == Transaction.teen_id)
        count_q = count_q.join(Teen, Teen.id == Transaction.teen_id)
        filters.append(func.lower(Teen.name).like(pattern) | func.lower(Teen.email).like(pattern))
    if filters:
        q = q.where(*filters)
        count_q = count_q.where(*filters)

    total = await session.scalar(count_q) or 0
    rows = (await session.execute(_with_badge(q).offset((page - 1) * limit).limit(limit))).all()
    return [tuple(r) for r in rows], _page(total, page, limit)
