from __future__ import annotations
from pydantic import BaseModel, Field, model_validator
from uuid import UUID
from datetime import datetime

from questboard.schemas.task import TaskCreate, TaskPublic
from questboard.schemas.badge import BadgeCreate, BadgePublic


class ChallengeCreate(BaseModel):
    year: int = Field(ge=2020, le=2100)
    month: int = Field(ge=1, le=12)
    theme: str = Field(min_length=3, max_length=120)
    instructions: str | None = None
    go_live_date: datetime
    closing_date: datetime
    badge: BadgeCreate | None = None
    tasks: list[TaskCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def window_order(self):
        if self.closing_date <= self.go_live_date:
            raise ValueError("closing_date must be after go_live_date")
        return self


class ChallengePublic(BaseModel):
    id: UUID
    year: int
    month: int
    theme: str
    instructions: str | None
    go_live_date: datetime
    closing_date: datetime
    is_published: bool
    is_active: bool
    created_at: datetime
    badge: BadgePublic | None = None
    tasks: list[TaskPublic] = Field(default_factory=list)


class CurrentChallenge(ChallengePublic):
    badge_status: str = "AVAILABLE"
    percentage: int = 0
    tasks_completed: int = 0
