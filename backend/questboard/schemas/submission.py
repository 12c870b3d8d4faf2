from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

SubmissionStatus = Literal["PENDING", "APPROVED", "REJECTED"]
SUBMISSION_STATUSES: tuple[str, ...] = ("PENDING", "APPROVED", "REJECTED")


class SubmissionPublic(BaseModel):
    id: UUID
    task_id: UUID
    teen_id: UUID
    content: dict = Field(default_factory=dict)
    file_urls: list[str] = Field(default_factory=list)
    status: SubmissionStatus
    score: int | None = None
    reviewer_id: UUID | None = None
    reviewed_at: datetime | None = None
    review_note: str | None = None
    submitted_at: datetime


class ReviewRequest(BaseModel):
    # status is checked by the review gate so bad values get its message
    status: str
    score: int | None = None
    note: str | None = Field(default=None, max_length=2000)


class Page(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ReviewQueue(BaseModel):
    submissions: list[SubmissionPublic]
    pagination: Page
