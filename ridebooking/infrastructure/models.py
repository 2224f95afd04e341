"""
SQLAlchemy ORM models.

Tables
------
* ``users``           -- admin and customer accounts
* ``drivers``         -- drivers and their vehicles
* ``bookings``        -- ride bookings (lifecycle + payment state)
* ``pricing_rules``   -- admin-defined, time-bounded rate cards
* ``settings``        -- typed key/value store, secrets encrypted at rest
* ``email_templates`` -- admin overrides for notification e-mails
* ``email_outbox``    -- e-mails waiting for the notification worker
* ``audit_logs``      -- who changed what

Indexes
-------
* **B-Tree** on ``status``, ``payment_status``, ``created_at``,
  ``booking_number``, ``idempotency_key`` and ``stripe_session_id`` for
  the admin listing, dashboard aggregates and payment webhooks.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from ridebooking.domain.entities import BookingLifecycle, utcnow
from ridebooking.domain.enums import (
    BookingStatus,
    EmailStatus,
    PaymentStatus,
    TripType,
    UserRole,
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("idx_users_role", "role"),)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=False)
    license_number = Column(String(64), nullable=True)
    vehicle_model = Column(String(120), nullable=True)
    vehicle_plate = Column(String(32), nullable=True)
    vehicle_color = Column(String(32), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    __table_args__ = (Index("idx_drivers_active", "is_active"),)


class BookingModel(BookingLifecycle, Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_number = Column(String(16), unique=True, nullable=False)

    customer_name = Column(String(120), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)

    pickup_address = Column(String(500), nullable=False)
    dropoff_address = Column(String(500), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    # Wall-clock time in the business timezone, as the customer entered it
    pickup_at = Column(DateTime(timezone=False), nullable=False)

    trip_type = Column(Enum(TripType), default=TripType.DISTANCE, nullable=False)
    hours = Column(Float, nullable=True)
    distance_miles = Column(Float, default=0.0, nullable=False)
    duration_minutes = Column(Float, default=0.0, nullable=False)
    estimated_fare = Column(Float, nullable=False)
    currency = Column(String(3), default="NPR", nullable=False)
    fare_breakdown = Column(JSON, nullable=True)

    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    payment_status = Column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )

    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)
    stripe_session_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_payment_status", "payment_status"),
        Index("idx_bookings_created", "created_at"),
        Index("idx_bookings_driver", "driver_id"),
        Index("idx_bookings_stripe_session", "stripe_session_id"),
    )


class PricingRuleModel(Base):
    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    base_fare = Column(Float, nullable=False)
    per_mile_rate = Column(Float, nullable=False)
    per_minute_rate = Column(Float, default=0.0, nullable=False)
    minimum_fare = Column(Float, nullable=False)
    free_distance = Column(Float, default=0.0, nullable=False)
    peak_hour_multiplier = Column(Float, default=1.0, nullable=False)
    weekend_multiplier = Column(Float, default=1.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    valid_from = Column(DateTime(timezone=False), nullable=True)
    valid_to = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("idx_pricing_rules_active", "is_active"),)


class SettingModel(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=False, default="")
    description = Column(String(255), nullable=True)
    category = Column(String(50), default="general", nullable=False)
    is_encrypted = Column(Boolean, default=False, nullable=False)
    is_sensitive = Column(Boolean, default=False, nullable=False)
    data_type = Column(String(10), default="string", nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("idx_settings_category", "category"),)


class EmailTemplateModel(Base):
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), unique=True, nullable=False)
    subject = Column(String(255), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class EmailOutboxModel(Base):
    __tablename__ = "email_outbox"

    id = Column(Integer, primary_key=True, autoincrement=True)
    to_address = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    html_body = Column(Text, nullable=False)
    text_body = Column(Text, nullable=True)
    template = Column(String(64), nullable=True)
    status = Column(Enum(EmailStatus), default=EmailStatus.PENDING, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_email_outbox_status", "status"),)


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(64), nullable=False)
    resource = Column(String(64), nullable=False)
    resource_id = Column(String(255), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_resource", "resource"),
    )
