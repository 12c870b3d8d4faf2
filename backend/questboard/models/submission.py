from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from questboard.db import Base, JSONType, utcnow


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), index=True, nullable=False
    )
    teen_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teens.id", ondelete="CASCADE"), index=True, nullable=False
    )

    content: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)  # normalized, per task type
    file_urls: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="APPROVED")  # 'PENDING'|'APPROVED'|'REJECTED'
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    reviewer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_note: Mapped[str | None] = mapped_column(Text(), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "teen_id", name="uq_submission_one_per_task"),
    )
