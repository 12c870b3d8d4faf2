from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

BadgeStatus = Literal["AVAILABLE", "PURCHASED", "EARNED"]


class BadgeCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    description: str | None = None
    image_url: str | None = None
    price_cents: int = Field(ge=0)


class BadgePublic(BaseModel):
    id: UUID
    challenge_id: UUID
    name: str
    description: str | None = None
    image_url: str | None = None
    price_cents: int
    is_active: bool


class TeenBadgePublic(BaseModel):
    id: UUID
    teen_id: UUID
    badge_id: UUID
    status: BadgeStatus
    purchased_at: datetime | None = None
    earned_at: datetime | None = None


class MyBadge(BaseModel):
    badge: BadgePublic
    year: int
    month: int
    theme: str
    status: BadgeStatus
    purchased_at: datetime | None = None
    earned_at: datetime | None = None


class PurchaseRequest(BaseModel):
    badge_id: UUID


class AwardRequest(BaseModel):
    teen_id: UUID
    badge_id: UUID


class CheckoutResponse(BaseModel):
    checkout_url: str
    reference: str


class PurchaseConfirmation(BaseModel):
    success: bool
    reference: str
    teen_badge: TeenBadgePublic | None = None
