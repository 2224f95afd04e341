"""Initial schema: accounts, drivers, bookings, pricing, settings, e-mail, audit.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

BOOKING_STATUS = sa.Enum(
    "PENDING", "CONFIRMED", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "CANCELLED",
    name="bookingstatus",
)
PAYMENT_STATUS = sa.Enum("PENDING", "PAID", "FAILED", "REFUNDED", name="paymentstatus")
TRIP_TYPE = sa.Enum("DISTANCE", "HOURLY", name="triptype")
USER_ROLE = sa.Enum("CUSTOMER", "DRIVER", "ADMIN", "SUPER_ADMIN", name="userrole")
EMAIL_STATUS = sa.Enum("PENDING", "SENT", "FAILED", name="emailstatus")


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False, server_default="CUSTOMER"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_users_role", "users", ["role"])

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("license_number", sa.String(64), nullable=True),
        sa.Column("vehicle_model", sa.String(120), nullable=True),
        sa.Column("vehicle_plate", sa.String(32), nullable=True),
        sa.Column("vehicle_color", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
    )
    op.create_index("idx_drivers_active", "drivers", ["is_active"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(16), unique=True, nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(32), nullable=False),
        sa.Column("pickup_address", sa.String(500), nullable=False),
        sa.Column("dropoff_address", sa.String(500), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=True),
        sa.Column("dropoff_lng", sa.Float, nullable=True),
        sa.Column("pickup_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("trip_type", TRIP_TYPE, nullable=False, server_default="DISTANCE"),
        sa.Column("hours", sa.Float, nullable=True),
        sa.Column("distance_miles", sa.Float, nullable=False, server_default="0"),
        sa.Column("duration_minutes", sa.Float, nullable=False, server_default="0"),
        sa.Column("estimated_fare", sa.Float, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NPR"),
        sa.Column("fare_breakdown", sa.JSON, nullable=True),
        sa.Column("status", BOOKING_STATUS, nullable=False, server_default="PENDING"),
        sa.Column(
            "payment_status", PAYMENT_STATUS, nullable=False, server_default="PENDING"
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_payment_status", "bookings", ["payment_status"])
    op.create_index("idx_bookings_created", "bookings", ["created_at"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])
    op.create_index("idx_bookings_stripe_session", "bookings", ["stripe_session_id"])

    # ── pricing_rules ─────────────────────────────────────────────────
    op.create_table(
        "pricing_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("per_mile_rate", sa.Float, nullable=False),
        sa.Column("per_minute_rate", sa.Float, nullable=False, server_default="0"),
        sa.Column("minimum_fare", sa.Float, nullable=False),
        sa.Column("free_distance", sa.Float, nullable=False, server_default="0"),
        sa.Column("peak_hour_multiplier", sa.Float, nullable=False, server_default="1"),
        sa.Column("weekend_multiplier", sa.Float, nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("valid_from", sa.DateTime(timezone=False), nullable=True),
        sa.Column("valid_to", sa.DateTime(timezone=False), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_pricing_rules_active", "pricing_rules", ["is_active"])

    # ── settings ──────────────────────────────────────────────────────
    op.create_table(
        "settings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(100), unique=True, nullable=False),
        sa.Column("value", sa.Text, nullable=False, server_default=""),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("is_encrypted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_sensitive", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("data_type", sa.String(10), nullable=False, server_default="string"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_settings_category", "settings", ["category"])

    # ── email_templates / email_outbox ────────────────────────────────
    op.create_table(
        "email_templates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(64), unique=True, nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("html_content", sa.Text, nullable=False),
        sa.Column("text_content", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "email_outbox",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("to_address", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("html_body", sa.Text, nullable=False),
        sa.Column("text_body", sa.Text, nullable=True),
        sa.Column("template", sa.String(64), nullable=True),
        sa.Column("status", EMAIL_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        _timestamp("created_at"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_email_outbox_status", "email_outbox", ["status"])

    # ── audit_logs ────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("resource", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("old_values", sa.JSON, nullable=True),
        sa.Column("new_values", sa.JSON, nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("idx_audit_logs_action", "audit_logs", ["action"])
    op.create_index("idx_audit_logs_resource", "audit_logs", ["resource"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("email_outbox")
    op.drop_table("email_templates")
    op.drop_table("settings")
    op.drop_table("pricing_rules")
    op.drop_table("bookings")
    op.drop_table("drivers")
    op.drop_table("users")
    for type_name in ("emailstatus", "userrole", "triptype", "paymentstatus", "bookingstatus"):
        op.execute(f"DROP TYPE IF EXISTS {type_name}")
