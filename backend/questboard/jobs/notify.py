from __future__ import annotations
import asyncio
import uuid
import structlog
from sqlalchemy import select
from questboard.db import SessionLocal
from questboard.models.notification import Notification
from questboard.models.teen import Teen

log = structlog.get_logger()


async def store_notifications(session, event: dict) -> int:
    """Write in-app notifications for one domain event; returns how many were stored."""
    if event.get("teen_id"):
        recipients = [uuid.UUID(event["teen_id"])]
    else:
        recipients = (await session.execute(select(Teen.id).where(Teen.is_active.is_(True)))).scalars().all()

    for teen_id in recipients:
        session.add(Notification(
            teen_id=teen_id,
            kind=event["name"],
            title=event["title"],
            body=event["body"],
            data=event.get("data") or {},
        ))
    await session.flush()
    return len(recipients)


async def _run(event: dict):
    async with SessionLocal() as session:
        count = await store_notifications(session, event)
        await session.commit()
    log.info("notifications_stored", event_name=event["name"], recipients=count)


def dispatch_event(event: dict):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(event))
