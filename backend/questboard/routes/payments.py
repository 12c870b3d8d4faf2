from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from questboard.db import get_session
from questboard.auth_deps import require_staff
from questboard.models.challenge import Badge, Challenge
from questboard.models.teen import StaffUser
from questboard.models.transaction import Transaction
from questboard.schemas.transaction import TeenTransactions, TransactionList, TransactionPublic, TransactionStatus
from questboard.services import payments
from questboard.services import transactions as tx_svc
from questboard.services.events import EventBuffer, RQEventPublisher, get_event_buffer, get_event_publisher

router = APIRouter(prefix="/payments", tags=["payments"])
log = structlog.get_logger()

def tx_public(t: Transaction, b: Badge, c: Challenge) -> TransactionPublic:
    return TransactionPublic(
        id=t.id,
        reference=t.reference,
        teen_id=t.teen_id,
        badge_id=t.badge_id,
        badge_name=b.name,
        theme=c.theme,
        year=c.year,
        month=c.month,
        amount_cents=t.amount_cents,
        currency=t.currency,
        status=t.status,
        payment_method=t.payment_method,
        paid_at=t.paid_at,
        created_at=t.created_at,
    )

@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    # signature first: nothing is read from an unverified body
    event = payments.verify_webhook(await request.body(), stripe_signature)
    outcome = await payments.handle_webhook_event(session, event, events=events)
    await session.commit()
    publisher.publish(events.drain())
    log.info("stripe_webhook_handled", event_type=event.get("type"), outcome=outcome)
    return {"received": True, "outcome": outcome}

@router.get("/transactions", response_model=TransactionList)
async def all_transactions(
    status: TransactionStatus | None = Query(default=None),
    teen_id: UUID | None = Query(default=None),
    badge_id: UUID | None = Query(default=None),
    search: str | None = Query(default=None, max_length=120),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    rows, pagination = await tx_svc.list_transactions(
        session, status=status, teen_id=teen_id, badge_id=badge_id, search=search, page=page, limit=limit,
    )
    return TransactionList(transactions=[tx_public(*r) for r in rows], pagination=pagination)

@router.get("/transactions/teens/{teen_id}", response_model=TeenTransactions)
async def teen_transactions(
    teen_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    rows, summary, pagination = await tx_svc.list_teen_transactions(session, teen_id, page=page, limit=limit)
    return TeenTransactions(transactions=[tx_public(*r) for r in rows], summary=summary, pagination=pagination)
