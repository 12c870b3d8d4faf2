from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None

def _uuid():
    return postgresql.UUID(as_uuid=True)

def _created_at(name: str = "created_at"):
    return sa.Column(name, sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    op.create_table(
        "teens",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _created_at(),
    )
    op.create_index("ix_teens_email", "teens", ["email"], unique=True)

    op.create_table(
        "staff_users",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), server_default="STAFF", nullable=False),
        _created_at(),
        sa.CheckConstraint("role IN ('ADMIN','STAFF')", name="ck_staff_role"),
    )
    op.create_index("ix_staff_users_email", "staff_users", ["email"], unique=True)

    op.create_table(
        "challenges",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("theme", sa.String(length=120), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("go_live_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("closing_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("is_published", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_by_id", _uuid(), sa.ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True),
        _created_at(),
        sa.UniqueConstraint("year", "month", name="uq_challenge_one_per_month"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_challenge_month"),
    )
    op.create_index("ix_challenges_year", "challenges", ["year"])

    op.create_table(
        "tasks",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", _uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tab_name", sa.String(length=60), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("task_type", sa.String(length=16), nullable=False),
        sa.Column("is_required", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("max_score", sa.Integer(), server_default="10", nullable=False),
        sa.Column("options", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        _created_at(),
        sa.CheckConstraint(
            "task_type IN ('TEXT','IMAGE','VIDEO','QUIZ','FORM','PICK_ONE','CHECKLIST')", name="ck_task_type"
        ),
        sa.CheckConstraint("max_score >= 0", name="ck_task_max_score"),
    )
    op.create_index("ix_tasks_challenge_id", "tasks", ["challenge_id"])

    op.create_table(
        "badges",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("challenge_id", _uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _created_at(),
        sa.UniqueConstraint("challenge_id", name="uq_badges_challenge_id"),
        sa.CheckConstraint("price_cents >= 0", name="ck_badge_price"),
    )

    op.create_table(
        "submissions",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("task_id", _uuid(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("file_urls", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="APPROVED", nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("reviewer_id", _uuid(), sa.ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("review_note", sa.Text(), nullable=True),
        _created_at("submitted_at"),
        sa.UniqueConstraint("task_id", "teen_id", name="uq_submission_one_per_task"),
        sa.CheckConstraint("status IN ('PENDING','APPROVED','REJECTED')", name="ck_submission_status"),
    )
    op.create_index("ix_submissions_task_id", "submissions", ["task_id"])
    op.create_index("ix_submissions_teen_id", "submissions", ["teen_id"])

    op.create_table(
        "teen_progress",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", _uuid(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tasks_total", sa.Integer(), server_default="0", nullable=False),
        sa.Column("tasks_completed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("percentage", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("teen_id", "challenge_id", name="uq_progress_teen_challenge"),
        sa.CheckConstraint("percentage BETWEEN 0 AND 100", name="ck_progress_percentage"),
        sa.CheckConstraint("tasks_completed <= tasks_total", name="ck_progress_completed_le_total"),
    )
    op.create_index("ix_teen_progress_teen_id", "teen_progress", ["teen_id"])
    op.create_index("ix_teen_progress_challenge_id", "teen_progress", ["challenge_id"])

    op.create_table(
        "teen_badges",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("badge_id", _uuid(), sa.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="AVAILABLE", nullable=False),
        sa.Column("purchased_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("earned_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("teen_id", "badge_id", name="uq_teen_badge_once"),
        sa.CheckConstraint("status IN ('AVAILABLE','PURCHASED','EARNED')", name="ck_teen_badge_status"),
    )
    op.create_index("ix_teen_badges_teen_id", "teen_badges", ["teen_id"])
    op.create_index("ix_teen_badges_badge_id", "teen_badges", ["badge_id"])

    op.create_table(
        "raffle_entries",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("is_eligible", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _created_at(),
        sa.UniqueConstraint("teen_id", "year", name="uq_raffle_entry_teen_year"),
    )
    op.create_index("ix_raffle_entries_teen_id", "raffle_entries", ["teen_id"])
    op.create_index("ix_raffle_entries_year", "raffle_entries", ["year"])

    op.create_table(
        "raffle_draws",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("winner_id", _uuid(), sa.ForeignKey("teens.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("prize", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("eligible_count", sa.Integer(), nullable=False),
        _created_at("drawn_at"),
        sa.UniqueConstraint("year", name="uq_raffle_draws_year"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("badge_id", _uuid(), sa.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), server_default="0", nullable=False),
        sa.Column("currency", sa.String(length=8), server_default="usd", nullable=False),
        sa.Column("status", sa.String(length=16), server_default="PENDING", nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("paid_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("status IN ('PENDING','SUCCESS','FAILED')", name="ck_transaction_status"),
    )
    op.create_index("ix_transactions_reference", "transactions", ["reference"], unique=True)
    op.create_index("ix_transactions_teen_id", "transactions", ["teen_id"])
    op.create_index("ix_transactions_badge_id", "transactions", ["badge_id"])

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("teen_id", _uuid(), sa.ForeignKey("teens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _created_at(),
    )
    op.create_index("ix_notifications_teen_id", "notifications", ["teen_id"])

def downgrade() -> None:
    for table in (
        "notifications", "transactions", "raffle_draws", "raffle_entries", "teen_badges",
        "teen_progress", "submissions", "badges", "tasks", "challenges", "staff_users", "teens",
    ):
        op.drop_table(table)
