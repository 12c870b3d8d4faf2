from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class NotificationPublic(BaseModel):
    id: UUID
    kind: str
    title: str
    body: str
    data: dict
    is_read: bool
    created_at: datetime
