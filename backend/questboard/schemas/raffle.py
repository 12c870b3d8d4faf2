from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime


class RaffleEntryPublic(BaseModel):
    teen_id: UUID
    year: int
    is_eligible: bool


class EligibilitySummary(BaseModel):
    year: int
    is_eligible: bool
    purchased_badges: int
    required_badges: int
    raffle_entry: RaffleEntryPublic | None = None


class EligibleTeen(BaseModel):
    teen_id: UUID
    name: str
    email: str
    age: int | None = None


class DrawCreate(BaseModel):
    year: int = Field(ge=2020, le=2100)
    prize: str = Field(min_length=2, max_length=200)
    description: str | None = None


class RaffleDrawPublic(BaseModel):
    id: UUID
    year: int
    winner_id: UUID
    prize: str
    description: str | None = None
    eligible_count: int
    drawn_at: datetime
