from __future__ import annotations
from pydantic import BaseModel
from typing import Literal
from uuid import UUID
from datetime import datetime

from questboard.schemas.submission import Page

TransactionStatus = Literal["PENDING", "SUCCESS", "FAILED"]


class TransactionPublic(BaseModel):
    id: UUID
    reference: str
    teen_id: UUID
    badge_id: UUID
    badge_name: str
    theme: str
    year: int
    month: int
    amount_cents: int
    currency: str
    status: TransactionStatus
    payment_method: str | None = None
    paid_at: datetime | None = None
    created_at: datetime


class SpendingSummary(BaseModel):
    total_spent_cents: int
    total_transactions: int


class TeenTransactions(BaseModel):
    transactions: list[TransactionPublic]
    summary: SpendingSummary
    pagination: Page


class TransactionList(BaseModel):
    transactions: list[TransactionPublic]
    pagination: Page
