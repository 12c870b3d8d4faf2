from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class ProgressPublic(BaseModel):
    teen_id: UUID
    challenge_id: UUID
    tasks_total: int
    tasks_completed: int
    percentage: int
    completed_at: datetime | None = None


class YearlyStats(BaseModel):
    completed_challenges: int
    total_challenges: int
    average_percentage: float


class YearlyProgress(BaseModel):
    year: int
    progress: list[ProgressPublic]
    stats: YearlyStats
