from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.auth_deps import get_current_teen, require_admin
from questboard.models.teen import Teen, StaffUser
from questboard.schemas.badge import (
    AwardRequest, BadgePublic, CheckoutResponse, MyBadge, PurchaseConfirmation, PurchaseRequest, TeenBadgePublic,
)
from questboard.routes.payments import tx_public
from questboard.schemas.transaction import TeenTransactions
from questboard.services import badges as svc
from questboard.services import payments
from questboard.services import transactions as tx_svc
from questboard.services.events import EventBuffer, RQEventPublisher, get_event_buffer, get_event_publisher

router = APIRouter(prefix="/badges", tags=["badges"])

@router.post("/purchase", response_model=CheckoutResponse)
async def purchase(
    payload: PurchaseRequest,
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    out = await payments.initialize_purchase(session, teen, payload.badge_id)
    await session.commit()
    return CheckoutResponse(**out)

@router.get("/verify/{reference}", response_model=PurchaseConfirmation)
async def verify_purchase(
    reference: str,
    session: AsyncSession = Depends(get_session),
    _teen: Teen = Depends(get_current_teen),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    paid, tb = await payments.confirm_purchase(session, reference, events=events)
    await session.commit()
    publisher.publish(events.drain())
    return PurchaseConfirmation(
        success=paid,
        reference=reference,
        teen_badge=TeenBadgePublic.model_validate(tb, from_attributes=True) if tb else None,
    )

@router.get("/mine", response_model=list[MyBadge])
async def my_badges(
    year: int | None = Query(default=None, ge=2020, le=2100),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    rows = await svc.list_my_badges(session, teen.id, year)
    return [
        MyBadge(
            badge=BadgePublic.model_validate(b, from_attributes=True),
            year=c.year, month=c.month, theme=c.theme,
            status=tb.status, purchased_at=tb.purchased_at, earned_at=tb.earned_at,
        )
        for (tb, b, c) in rows
    ]

@router.get("/transactions", response_model=TeenTransactions)
async def my_transactions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    rows, summary, pagination = await tx_svc.list_teen_transactions(session, teen.id, page=page, limit=limit)
    return TeenTransactions(transactions=[tx_public(*r) for r in rows], summary=summary, pagination=pagination)

@router.post("/award", response_model=TeenBadgePublic)
async def award(
    payload: AwardRequest,
    session: AsyncSession = Depends(get_session),
    _admin: StaffUser = Depends(require_admin),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    tb = await svc.award_badge(session, payload.teen_id, payload.badge_id, events=events)
    await session.commit()
    publisher.publish(events.drain())
    return TeenBadgePublic.model_validate(tb, from_attributes=True)
