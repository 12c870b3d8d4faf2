from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint, Uuid
from questboard.db import Base


class TeenProgress(Base):
    """
    Derived completion state for a (teen, challenge) pair.
    Always recomputed from submissions and tasks; never edited by hand.
    completed_at holds the first time the pair reached 100% and is cleared
    when it drops below.
    """
    __tablename__ = "teen_progress"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teen_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teens.id", ondelete="CASCADE"), index=True, nullable=False)
    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False)
    tasks_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("teen_id", "challenge_id", name="uq_progress_teen_challenge"),
    )
