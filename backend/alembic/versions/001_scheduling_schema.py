# backend/alembic/versions/001_scheduling_schema.py
"""Initial schema - Businesses, providers, bookings, recurring series

Revision ID: 001_scheduling_schema
Revises:
Create Date: 2030-01-01 00:00:00.000000

Creates every table the scheduling engine reads and writes. Status-like
columns are VARCHAR with CHECK constraints rather than native ENUMs.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_scheduling_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(26), primary_key=True)


def _business_fk() -> sa.Column:
    return sa.Column(
        "business_id",
        sa.String(26),
        sa.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    """Create the scheduling schema."""
    print("Creating scheduling schema...")

    op.create_table(
        "businesses",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        _created_at(),
    )

    op.create_table(
        "business_scheduling_options",
        _id(),
        sa.Column(
            "business_id",
            sa.String(26),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("auto_assign_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("providers_can_grab", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("max_minutes_per_booking", sa.Integer(), nullable=True),
        sa.Column("holiday_skip_to_next", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "max_minutes_per_booking IS NULL OR max_minutes_per_booking > 0",
            name="ck_scheduling_options_max_minutes_positive",
        ),
    )

    op.create_table(
        "business_spot_limits",
        _id(),
        sa.Column(
            "business_id",
            sa.String(26),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("max_bookings_per_day", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_bookings_per_week", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("max_bookings_per_month", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("max_bookings_per_day >= 1", name="ck_spot_limits_day_positive"),
        sa.CheckConstraint("max_bookings_per_week >= 1", name="ck_spot_limits_week_positive"),
        sa.CheckConstraint("max_bookings_per_month >= 1", name="ck_spot_limits_month_positive"),
        sa.CheckConstraint(
            "max_advance_booking_days >= 1", name="ck_spot_limits_advance_positive"
        ),
    )

    op.create_table(
        "business_holidays",
        _id(),
        _business_fk(),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index(
        "idx_business_holidays_business_date", "business_holidays", ["business_id", "holiday_date"]
    )

    print("Creating providers and services...")

    op.create_table(
        "providers",
        _id(),
        _business_fk(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accepts_auto_assign", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')", name="ck_providers_status"
        ),
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_providers_rating_range"
        ),
    )
    op.create_index("idx_providers_business_status", "providers", ["business_id", "status"])

    op.create_table(
        "provider_skills",
        _id(),
        sa.Column(
            "provider_id",
            sa.String(26),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("provider_id", "category", name="uq_provider_skill_category"),
    )

    op.create_table(
        "service_offerings",
        _id(),
        _business_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("default_duration_minutes", sa.Integer(), nullable=False, server_default="120"),
        sa.CheckConstraint("default_duration_minutes > 0", name="ck_service_duration_positive"),
    )

    op.create_table(
        "service_provider_exclusions",
        _id(),
        sa.Column(
            "service_id",
            sa.String(26),
            sa.ForeignKey("service_offerings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "provider_id",
            sa.String(26),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("service_id", "provider_id", name="uq_service_provider_exclusion"),
    )

    op.create_table(
        "availability_rules",
        _id(),
        sa.Column(
            "provider_id",
            sa.String(26),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _business_fk(),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_rules_day_of_week"),
        sa.CheckConstraint(
            "expiry_date IS NULL OR effective_date IS NOT NULL",
            name="ck_rules_expiry_requires_effective",
        ),
        sa.CheckConstraint(
            "expiry_date IS NULL OR expiry_date >= effective_date",
            name="ck_rules_expiry_after_effective",
        ),
    )
    op.create_index(
        "idx_rules_provider_weekday", "availability_rules", ["provider_id", "day_of_week"]
    )
    op.create_index("idx_rules_business", "availability_rules", ["business_id"])

    print("Creating recurring series and bookings...")

    op.create_table(
        "recurring_series",
        _id(),
        _business_fk(),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("service_offerings.id"), nullable=True),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("service_category", sa.String(100), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "preferred_provider_id", sa.String(26), sa.ForeignKey("providers.id"), nullable=True
        ),
        sa.Column("frequency_kind", sa.String(20), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=True),
        sa.Column("interval_months", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("holiday_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("generated_through", sa.Date(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'ended')", name="ck_recurring_series_status"
        ),
        sa.CheckConstraint(
            "frequency_kind IN ('interval_days', 'monthly_day')",
            name="ck_recurring_series_frequency_kind",
        ),
        sa.CheckConstraint(
            "frequency_kind <> 'interval_days' OR interval_days >= 1",
            name="ck_recurring_series_interval_positive",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_recurring_series_duration_positive"),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_recurring_series_end_after_start",
        ),
    )
    op.create_index(
        "idx_recurring_series_business_status", "recurring_series", ["business_id", "status"]
    )

    op.create_table(
        "bookings",
        _id(),
        _business_fk(),
        sa.Column("provider_id", sa.String(26), sa.ForeignKey("providers.id"), nullable=True),
        sa.Column(
            "recurring_series_id",
            sa.String(26),
            sa.ForeignKey("recurring_series.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("service_offerings.id"), nullable=True),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("service_category", sa.String(100), nullable=True),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("assignment_source", sa.String(10), nullable=False, server_default="none"),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'canceled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "assignment_source IN ('manual', 'auto', 'grab', 'none')",
            name="ck_bookings_assignment_source",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        sa.CheckConstraint("price >= 0", name="check_price_non_negative"),
        sa.UniqueConstraint(
            "recurring_series_id", "scheduled_date", name="uq_bookings_series_occurrence"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("idx_bookings_business_date", "bookings", ["business_id", "scheduled_date"])
    op.create_index("idx_bookings_provider_date", "bookings", ["provider_id", "scheduled_date"])

    op.create_table(
        "booking_assignments",
        _id(),
        sa.Column(
            "booking_id",
            sa.String(26),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _business_fk(),
        sa.Column("provider_id", sa.String(26), sa.ForeignKey("providers.id"), nullable=False),
        sa.Column("source", sa.String(10), nullable=False),
        sa.Column("score", sa.Numeric(8, 3), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_booking_assignments_booking", "booking_assignments", ["booking_id"])

    op.create_table(
        "deferred_occurrences",
        _id(),
        sa.Column(
            "series_id",
            sa.String(26),
            sa.ForeignKey("recurring_series.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _business_fk(),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(40), nullable=False),
        _created_at(),
        sa.UniqueConstraint("series_id", "occurrence_date", name="uq_deferred_series_date"),
    )
    op.create_index(
        "idx_deferred_business_date", "deferred_occurrences", ["business_id", "occurrence_date"]
    )

    print("Creating audit feed...")

    op.create_table(
        "audit_log",
        _id(),
        sa.Column("business_id", sa.String(26), nullable=False),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column(
            "occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("payload", JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"), nullable=True),
    )
    op.create_index(
        "idx_audit_log_business_occurred", "audit_log", ["business_id", "occurred_at"]
    )

    print("Scheduling schema created successfully!")


def downgrade() -> None:
    """Drop the scheduling schema."""
    print("Dropping scheduling schema...")

    op.drop_index("idx_audit_log_business_occurred", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("idx_deferred_business_date", table_name="deferred_occurrences")
    op.drop_table("deferred_occurrences")
    op.drop_index("idx_booking_assignments_booking", table_name="booking_assignments")
    op.drop_table("booking_assignments")
    op.drop_index("idx_bookings_provider_date", table_name="bookings")
    op.drop_index("idx_bookings_business_date", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("idx_recurring_series_business_status", table_name="recurring_series")
    op.drop_table("recurring_series")
    op.drop_index("idx_rules_business", table_name="availability_rules")
    op.drop_index("idx_rules_provider_weekday", table_name="availability_rules")
    op.drop_table("availability_rules")
    op.drop_table("service_provider_exclusions")
    op.drop_table("service_offerings")
    op.drop_table("provider_skills")
    op.drop_index("idx_providers_business_status", table_name="providers")
    op.drop_table("providers")
    op.drop_index("idx_business_holidays_business_date", table_name="business_holidays")
    op.drop_table("business_holidays")
    op.drop_table("business_spot_limits")
    op.drop_table("business_scheduling_options")
    op.drop_table("businesses")

    print("Scheduling schema dropped successfully!")
