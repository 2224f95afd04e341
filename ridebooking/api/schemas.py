"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ridebooking.domain.enums import BookingStatus, PaymentStatus, TripType, UserRole
from ridebooking.services.bookings import BookingDraft, RouteRequest


# ── Bookings ──────────────────────────────────────────────────────────


class RouteFields(BaseModel):
    pickup_address: str = Field(..., min_length=1, max_length=500)
    dropoff_address: str = Field(..., min_length=1, max_length=500)
    pickup_lat: Optional[float] = Field(None, ge=-90, le=90)
    pickup_lng: Optional[float] = Field(None, ge=-180, le=180)
    dropoff_lat: Optional[float] = Field(None, ge=-90, le=90)
    dropoff_lng: Optional[float] = Field(None, ge=-180, le=180)
    distance_meters: Optional[float] = Field(
        None, ge=0, description="Route distance measured by the browser widget."
    )
    duration_seconds: Optional[float] = Field(None, ge=0)

    def route_request(self) -> RouteRequest:
        return RouteRequest(
            pickup_address=self.pickup_address,
            dropoff_address=self.dropoff_address,
            pickup_lat=self.pickup_lat,
            pickup_lng=self.pickup_lng,
            dropoff_lat=self.dropoff_lat,
            dropoff_lng=self.dropoff_lng,
            distance_meters=self.distance_meters,
            duration_seconds=self.duration_seconds,
        )


class QuoteRequest(RouteFields):
    pickup_date: Optional[date] = None
    pickup_time: Optional[time] = None
    trip_type: TripType = TripType.DISTANCE
    hours: Optional[float] = Field(None, gt=0, le=24)

    @property
    def pickup_at(self) -> Optional[datetime]:
        if self.pickup_date is None:
            return None
        return datetime.combine(self.pickup_date, self.pickup_time or time(0, 0))


class BookingCreateRequest(RouteFields):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=1, max_length=32)
    pickup_date: date
    pickup_time: time
    trip_type: TripType = TripType.DISTANCE
    hours: Optional[float] = Field(None, gt=0, le=24)
    notes: Optional[str] = Field(None, max_length=2000)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )

    def to_draft(self) -> BookingDraft:
        return BookingDraft(
            customer_name=self.name.strip(),
            customer_email=self.email.strip(),
            customer_phone=self.phone.strip(),
            route=self.route_request(),
            pickup_date=self.pickup_date,
            pickup_time=self.pickup_time,
            trip_type=self.trip_type,
            hours=self.hours,
            notes=self.notes,
            idempotency_key=self.idempotency_key,
        )


class AdminBookingCreateRequest(BookingCreateRequest):
    estimated_fare: Optional[float] = Field(
        None, ge=0, description="Overrides the computed fare."
    )


class BookingUpdateRequest(BaseModel):
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    driver_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class FareBreakdownResponse(BaseModel):
    base_fare: float
    distance_fare: float
    time_fare: float
    multiplier: float
    surge: float
    total_fare: float
    strategy: str


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    customer_name: str
    customer_email: str
    customer_phone: str
    pickup_address: str
    dropoff_address: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    pickup_at: datetime
    trip_type: TripType
    hours: Optional[float] = None
    distance_miles: float
    duration_minutes: float
    estimated_fare: float
    currency: str
    fare_breakdown: Optional[dict[str, Any]] = None
    status: BookingStatus
    payment_status: PaymentStatus
    driver_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingCreateResponse(BaseModel):
    success: bool = True
    message: str
    booking: BookingResponse
    fare: dict[str, Any]
    checkout_url: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    pages: int
    current_page: int


class QuoteResponse(BaseModel):
    fare: FareBreakdownResponse
    currency: str
    fare_text: str
    distance_meters: float
    duration_seconds: float
    distance_text: str
    duration_text: str


# ── Pricing rules ─────────────────────────────────────────────────────


def _wall_clock(value: Optional[datetime]) -> Optional[datetime]:
    # Rule windows are compared with naive business-local time
    return value.replace(tzinfo=None) if value is not None else None


class PricingRuleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    base_fare: float = Field(..., ge=0)
    per_mile_rate: float = Field(..., ge=0)
    per_minute_rate: float = Field(0.0, ge=0)
    minimum_fare: float = Field(..., ge=0)
    free_distance: float = Field(0.0, ge=0)
    peak_hour_multiplier: float = Field(1.0, gt=0)
    weekend_multiplier: float = Field(1.0, gt=0)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @field_validator("valid_from", "valid_to")
    @classmethod
    def naive_window(cls, value):
        return _wall_clock(value)

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_from and self.valid_to and self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")
        return self


class PricingRuleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    base_fare: Optional[float] = Field(None, ge=0)
    per_mile_rate: Optional[float] = Field(None, ge=0)
    per_minute_rate: Optional[float] = Field(None, ge=0)
    minimum_fare: Optional[float] = Field(None, ge=0)
    free_distance: Optional[float] = Field(None, ge=0)
    peak_hour_multiplier: Optional[float] = Field(None, gt=0)
    weekend_multiplier: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @field_validator("valid_from", "valid_to")
    @classmethod
    def naive_window(cls, value):
        return _wall_clock(value)


class PricingRuleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    base_fare: float
    per_mile_rate: float
    per_minute_rate: float
    minimum_fare: float
    free_distance: float
    peak_hour_multiplier: float
    weekend_multiplier: float
    is_active: bool
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PricingRuleListResponse(BaseModel):
    rules: list[PricingRuleResponse]
    total: int
    pages: int
    current_page: int


# ── Settings ──────────────────────────────────────────────────────────


DataType = Literal["string", "number", "boolean", "json"]


class SettingUpsertRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any
    description: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    # None keeps the stored flag on update
    is_encrypted: Optional[bool] = None
    is_sensitive: Optional[bool] = None
    data_type: Optional[DataType] = None


class BulkSettingsRequest(BaseModel):
    settings: list[dict[str, Any]]


class SettingResponse(BaseModel):
    key: str
    value: Any
    description: Optional[str] = None
    category: str
    is_encrypted: bool
    is_sensitive: bool
    data_type: str


class PublicPricingSettings(BaseModel):
    rate_per_km: float = 20.0
    minimum_fare: float = 50.0
    use_simple_pricing: bool = True


class MissingSettingsResponse(BaseModel):
    missing: list[str]
    configured: bool


# ── Auth ──────────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = Field(None, max_length=32)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


# ── Drivers ───────────────────────────────────────────────────────────


class DriverCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=1, max_length=32)
    license_number: Optional[str] = Field(None, max_length=64)
    vehicle_model: Optional[str] = Field(None, max_length=120)
    vehicle_plate: Optional[str] = Field(None, max_length=32)
    vehicle_color: Optional[str] = Field(None, max_length=32)
    is_active: bool = True


class DriverUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    phone: Optional[str] = Field(None, min_length=1, max_length=32)
    license_number: Optional[str] = Field(None, max_length=64)
    vehicle_model: Optional[str] = Field(None, max_length=120)
    vehicle_plate: Optional[str] = Field(None, max_length=32)
    vehicle_color: Optional[str] = Field(None, max_length=32)
    is_active: Optional[bool] = None


class DriverResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    license_number: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_plate: Optional[str] = None
    vehicle_color: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Dashboard / audit ─────────────────────────────────────────────────


class DashboardStats(BaseModel):
    total_bookings: int
    today_bookings: int
    total_revenue: float
    today_revenue: float
    completed_bookings: int
    pending_bookings: int
    cancelled_bookings: int
    total_customers: int
    active_drivers: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    charts: dict[str, list[dict[str, Any]]]
    recent_bookings: list[BookingResponse]
    top_locations: list[dict[str, Any]]
    busy_drivers: list[dict[str, Any]]
    period: int


class AuditLogResponse(BaseModel):
    id: int
    action: str
    resource: str
    resource_id: Optional[str] = None
    user_id: Optional[int] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    pages: int
    current_page: int


class HealthResponse(BaseModel):
    status: str = "ok"
