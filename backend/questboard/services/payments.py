"""
Badge purchases through Stripe Checkout.

The Checkout Session id is the payment reference: it keys the Transaction
row, so the redirect confirmation and any number of webhook deliveries for
the same payment collapse onto one record and one badge transition.
"""
from __future__ import annotations
import json
import uuid
from datetime import datetime
import stripe
import structlog
from sqlalchemy import select, case
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.config import settings
from questboard.db import insert_for, utcnow
from questboard.errors import DependencyError, DuplicatePurchaseError, NotFoundError, SignatureError
from questboard.models.badge import TeenBadge
from questboard.models.challenge import Badge, Challenge
from questboard.models.teen import Teen
from questboard.models.transaction import Transaction
from questboard.services import events as ev
from questboard.services.badges import get_teen_badge, purchase_badge
from questboard.services.raffle import HELD_STATUSES

log = structlog.get_logger()

APPLY_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAIL_EVENTS = ("checkout.session.async_payment_failed", "checkout.session.expired")


def _stripe_ready() -> None:
    if not settings.stripe_secret_key:
        raise DependencyError("Stripe not configured")
    stripe.api_key = settings.stripe_secret_key


async def initialize_purchase(session: AsyncSession, teen: Teen, badge_id: uuid.UUID) -> dict:
    """Open a Checkout Session for the badge and record the pending payment."""
    badge = await session.get(Badge, badge_id)
    if not badge or not badge.is_active:
        raise NotFoundError("Badge not found or inactive")
    challenge = await session.get(Challenge, badge.challenge_id)
    if not challenge or not challenge.is_published:
        raise NotFoundError("Badge is not available for purchase")

    status = await session.scalar(
        select(TeenBadge.status).where(TeenBadge.teen_id == teen.id, TeenBadge.badge_id == badge.id)
    )
    if status in HELD_STATUSES:
        raise DuplicatePurchaseError("Badge already purchased")

    _stripe_ready()
    metadata = {"teen_id": str(teen.id), "badge_id": str(badge.id), "challenge_id": str(challenge.id)}
    try:
        checkout = stripe.checkout.Session.create(
            mode="payment",
            client_reference_id=str(teen.id),
            customer_email=teen.email,
            line_items=[{
                "price_data": {
                    "currency": settings.badge_currency,
                    "product_data": {"name": badge.name},
                    "unit_amount": badge.price_cents,
                },
                "quantity": 1,
            }],
            metadata=metadata,
            success_url=f"{settings.app_url}/payment/callback?reference={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_url}/payment/cancelled",
        )
    except stripe.StripeError as e:
        log.error("checkout_create_failed", badge_id=str(badge.id), error=str(e))
        raise DependencyError("Failed to initialize payment") from e

    reference = checkout["id"]
    await session.execute(
        insert_for(session, Transaction).values(
            id=uuid.uuid4(),
            reference=reference,
            teen_id=teen.id,
            badge_id=badge.id,
            amount_cents=badge.price_cents,
            currency=settings.badge_currency,
            status="PENDING",
            customer_email=teen.email,
            metadata_json=metadata,
            created_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=["reference"])
    )
    # AVAILABLE placeholder; never touches an existing row
    await session.execute(
        insert_for(session, TeenBadge).values(
            id=uuid.uuid4(), teen_id=teen.id, badge_id=badge.id, status="AVAILABLE", created_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=["teen_id", "badge_id"])
    )
    log.info("checkout_started", reference=reference, teen_id=str(teen.id), badge_id=str(badge.id))
    return {"checkout_url": checkout["url"], "reference": reference}


async def apply_successful_payment(
    session: AsyncSession,
    *,
    reference: str,
    teen_id: uuid.UUID,
    badge_id: uuid.UUID,
    amount_cents: int = 0,
    currency: str | None = None,
    payment_method: str | None = None,
    customer_email: str | None = None,
    metadata: dict | None = None,
    paid_at: datetime | None = None,
    events: ev.EventBuffer | None = None,
) -> TeenBadge | None:
    """
    Mark the payment SUCCESS and move the badge to PURCHASED. Applying the
    same reference twice is a no-op.
    """
    prior = await session.scalar(select(Transaction.status).where(Transaction.reference == reference))
    paid_at = paid_at or utcnow()

    stmt = insert_for(session, Transaction).values(
        id=uuid.uuid4(),
        reference=reference,
        teen_id=teen_id,
        badge_id=badge_id,
        amount_cents=amount_cents,
        currency=currency or settings.badge_currency,
        status="SUCCESS",
        payment_method=payment_method,
        customer_email=customer_email,
        metadata_json=metadata or {},
        paid_at=paid_at,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["reference"],
        set_={
            "status": "SUCCESS",
            "amount_cents": stmt.excluded.amount_cents,
            "payment_method": stmt.excluded.payment_method,
            "paid_at": stmt.excluded.paid_at,
        },
    )
    await session.execute(stmt)

    if prior == "SUCCESS":
        log.info("payment_already_applied", reference=reference)
        return await get_teen_badge(session, teen_id, badge_id)

    try:
        tb = await purchase_badge(session, teen_id, badge_id, events=events, purchased_at=paid_at)
    except DuplicatePurchaseError:
        # a second paid session for a badge the teen already holds
        log.warning("payment_for_held_badge", reference=reference, teen_id=str(teen_id), badge_id=str(badge_id))
        return await get_teen_badge(session, teen_id, badge_id)
    log.info("payment_applied", reference=reference, teen_id=str(teen_id), badge_id=str(badge_id))
    return tb


async def record_failed_payment(
    session: AsyncSession,
    *,
    reference: str,
    teen_id: uuid.UUID,
    badge_id: uuid.UUID,
    metadata: dict | None = None,
) -> None:
    stmt = insert_for(session, Transaction).values(
        id=uuid.uuid4(),
        reference=reference,
        teen_id=teen_id,
        badge_id=badge_id,
        currency=settings.badge_currency,
        status="FAILED",
        metadata_json=metadata or {},
        created_at=utcnow(),
    )
    status_col = Transaction.__table__.c.status
    stmt = stmt.on_conflict_do_update(
        index_elements=["reference"],
        # a success is final
        set_={"status": case((status_col == "SUCCESS", "SUCCESS"), else_="FAILED")},
    )
    await session.execute(stmt)
    log.info("payment_failed", reference=reference, teen_id=str(teen_id), badge_id=str(badge_id))


def _checkout_ids(obj) -> tuple[uuid.UUID, uuid.UUID] | None:
    meta = obj.get("metadata") or {}
    try:
        return uuid.UUID(meta.get("teen_id") or obj.get("client_reference_id")), uuid.UUID(meta["badge_id"])
    except (KeyError, TypeError, ValueError):
        return None


async def _apply_checkout(session: AsyncSession, obj, *, events: ev.EventBuffer | None = None) -> TeenBadge | None:
    ids = _checkout_ids(obj)
    if ids is None:
        log.warning("checkout_missing_metadata", reference=obj.get("id"))
        return None
    teen_id, badge_id = ids
    # nothing is written for a payment we can't attach to a known teen and badge
    if await session.get(Teen, teen_id) is None or await session.get(Badge, badge_id) is None:
        log.warning("checkout_unknown_target", reference=obj.get("id"), teen_id=str(teen_id), badge_id=str(badge_id))
        return None
    details = obj.get("customer_details") or {}
    methods = obj.get("payment_method_types") or []
    return await apply_successful_payment(
        session,
        reference=obj["id"],
        teen_id=teen_id,
        badge_id=badge_id,
        amount_cents=int(obj.get("amount_total") or 0),
        currency=obj.get("currency"),
        payment_method=methods[0] if methods else None,
        customer_email=details.get("email") or obj.get("customer_email"),
        metadata=dict(obj.get("metadata") or {}),
        events=events,
    )


async def confirm_purchase(session: AsyncSession, reference: str, *, events: ev.EventBuffer | None = None) -> tuple[bool, TeenBadge | None]:
    """Redirect-time check of a Checkout Session; (paid, teen badge)."""
    _stripe_ready()
    try:
        checkout = stripe.checkout.Session.retrieve(reference)
    except stripe.InvalidRequestError as e:
        raise NotFoundError("Payment reference not found") from e
    except stripe.StripeError as e:
        log.error("checkout_retrieve_failed", reference=reference, error=str(e))
        raise DependencyError("Payment verification failed") from e

    if checkout.get("payment_status") != "paid":
        return False, None
    tb = await _apply_checkout(session, checkout, events=events)
    return tb is not None, tb


def verify_webhook(payload: bytes, signature: str | None) -> dict:
    """Check the Stripe-Signature header against the raw body and decode it."""
    if not settings.stripe_webhook_secret:
        raise DependencyError("Stripe not configured")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            signature or "",
            settings.stripe_webhook_secret,
            tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError):
        raise SignatureError("Invalid signature")
    return json.loads(payload)


async def handle_webhook_event(session: AsyncSession, event: dict, *, events: ev.EventBuffer | None = None) -> str:
    """Apply one verified gateway event; returns what was done with it."""
    etype = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if etype in APPLY_EVENTS:
        if obj.get("payment_status") != "paid":
            return "awaiting_payment"
        tb = await _apply_checkout(session, obj, events=events)
        return "applied" if tb is not None else "ignored"

    if etype in FAIL_EVENTS:
        ids = _checkout_ids(obj)
        if ids is None:
            return "ignored"
        if await session.get(Teen, ids[0]) is None or await session.get(Badge, ids[1]) is None:
            log.warning("checkout_unknown_target", reference=obj.get("id"))
            return "ignored"
        await record_failed_payment(
            session, reference=obj["id"], teen_id=ids[0], badge_id=ids[1], metadata=dict(obj.get("metadata") or {}),
        )
        return "failed"

    return "ignored"
