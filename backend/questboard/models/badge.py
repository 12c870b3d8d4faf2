from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from questboard.db import Base, utcnow

class TeenBadge(Base):
    """
    Per-teen badge state. Status only moves forward:
      AVAILABLE -> PURCHASED -> EARNED   (purchase, then 100% progress)
      AVAILABLE/PURCHASED -> EARNED      (admin award)
    The (teen_id, badge_id) unique key is the source of truth for "already purchased".
    """
    __tablename__ = "teen_badges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teen_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teens.id", ondelete="CASCADE"), index=True, nullable=False)
    badge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("badges.id", ondelete="CASCADE"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="AVAILABLE")  # AVAILABLE | PURCHASED | EARNED
    purchased_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    earned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("teen_id", "badge_id", name="uq_teen_badge_once"),
    )
