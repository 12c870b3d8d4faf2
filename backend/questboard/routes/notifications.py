from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.auth_deps import get_current_teen
from questboard.models.notification import Notification
from questboard.models.teen import Teen
from questboard.schemas.notification import NotificationPublic

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("", response_model=list[NotificationPublic])
async def list_notifications(
    unread: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    q = select(Notification).where(Notification.teen_id == teen.id)
    if unread:
        q = q.where(Notification.is_read.is_(False))
    rows = (await session.execute(q.order_by(Notification.created_at.desc()).limit(limit))).scalars().all()
    return [NotificationPublic.model_validate(n, from_attributes=True) for n in rows]

@router.post("/{notification_id}/read", response_model=NotificationPublic)
async def mark_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    n = await session.get(Notification, notification_id)
    if not n or n.teen_id != teen.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.is_read = True
    await session.commit()
    return NotificationPublic.model_validate(n, from_attributes=True)
