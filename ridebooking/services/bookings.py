"""
Booking workflow
================

Quote -> create -> (checkout) -> lifecycle changes, each write audited and
followed by the matching customer e-mail.

Route resolution order
----------------------
1. ``distance_meters`` / ``duration_seconds`` sent by the browser widget.
2. Haversine distance between pickup and dropoff coordinates (duration 0).
3. Google Maps Distance Matrix, when an API key is configured.

The fare is always recomputed here from the resolved route; a fare sent by
the client is never trusted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.config import settings as env
from ridebooking.domain.distance import haversine_km, km_to_meters, meters_to_miles
from ridebooking.domain.entities import Location
from ridebooking.domain.enums import BookingStatus, PaymentStatus, TripType
from ridebooking.domain.identifiers import (
    generate_booking_number,
    is_valid_email,
    is_valid_phone,
)
from ridebooking.domain.pricing import (
    FareBreakdown,
    PricingEngine,
    PricingError,
    TripMetrics,
    select_active_rule,
)
from ridebooking.infrastructure.maps import GoogleMapsClient
from ridebooking.infrastructure.models import BookingModel
from ridebooking.infrastructure.payments import create_checkout_session
from ridebooking.infrastructure.repositories import (
    AuditLogRepository,
    BookingRepository,
    DriverRepository,
    PricingRuleRepository,
)
from ridebooking.services.notifications import NotificationService
from ridebooking.services.settings_store import SettingsService

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"


class BookingError(Exception):
    """Booking input the workflow cannot accept."""


# ── Inputs / outputs ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RouteRequest:
    pickup_address: str
    dropoff_address: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    distance_meters: Optional[float] = None
    duration_seconds: Optional[float] = None

    @property
    def pickup(self) -> Optional[Location]:
        if self.pickup_lat is None or self.pickup_lng is None:
            return None
        return Location(self.pickup_lat, self.pickup_lng)

    @property
    def dropoff(self) -> Optional[Location]:
        if self.dropoff_lat is None or self.dropoff_lng is None:
            return None
        return Location(self.dropoff_lat, self.dropoff_lng)


@dataclass(frozen=True)
class BookingDraft:
    customer_name: str
    customer_email: str
    customer_phone: str
    route: RouteRequest
    pickup_date: date
    pickup_time: time
    trip_type: TripType = TripType.DISTANCE
    hours: Optional[float] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None

    @property
    def pickup_at(self) -> datetime:
        return datetime.combine(self.pickup_date, self.pickup_time)


@dataclass
class Quote:
    breakdown: FareBreakdown
    distance_meters: float
    duration_seconds: float
    currency: str


@dataclass
class BookingResult:
    booking: BookingModel
    breakdown: dict
    message: str
    checkout_url: Optional[str] = None
    created: bool = True


@dataclass
class Route:
    distance_meters: float
    duration_seconds: float = 0.0
    source: str = "client"


# ── Route resolution ──────────────────────────────────────────────────


async def resolve_route(
    request: RouteRequest, maps_api_key: str = "", maps_client=None
) -> Route:
    """Raises ``BookingError`` when no source can provide a distance.

    ``MapsError`` from the maps client propagates.
    """
    if request.distance_meters is not None:
        return Route(request.distance_meters, request.duration_seconds or 0.0)

    pickup, dropoff = request.pickup, request.dropoff
    if pickup and dropoff:
        km = haversine_km(
            pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
        )
        return Route(km_to_meters(km), 0.0, source="coordinates")

    if maps_api_key:
        client = maps_client or GoogleMapsClient(maps_api_key)
        info = await client.route(request.pickup_address, request.dropoff_address)
        return Route(info.distance_meters, info.duration_seconds, source="maps")

    raise BookingError(
        "Could not determine the route distance; "
        "send distance_meters or pickup/dropoff coordinates"
    )


def validate_pickup_window(
    pickup_at: datetime, now: datetime, advance_days: float
) -> None:
    if pickup_at < now:
        raise BookingError("Pickup time cannot be in the past")
    if pickup_at > now + timedelta(days=advance_days):
        raise BookingError(
            f"Bookings can be made at most {int(advance_days)} days in advance"
        )


def _snapshot(booking: BookingModel) -> dict[str, Any]:
    return {
        "status": BookingStatus(booking.status).value,
        "payment_status": PaymentStatus(booking.payment_status).value,
        "driver_id": booking.driver_id,
        "estimated_fare": booking.estimated_fare,
    }


# ── Service ───────────────────────────────────────────────────────────


class BookingService:
    def __init__(self, session: AsyncSession, maps_client=None):
        self.session = session
        self.bookings = BookingRepository(session)
        self.audit = AuditLogRepository(session)
        self.settings = SettingsService(session)
        self.notifications = NotificationService(session)
        self.maps_client = maps_client

    async def business_now(self) -> datetime:
        """Current wall-clock time in the configured business timezone (naive)."""
        name = await self.settings.get("timezone", DEFAULT_TIMEZONE)
        try:
            tz = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", name)
            tz = timezone.utc
        return datetime.now(tz).replace(tzinfo=None)

    async def pricing_engine(self, now: datetime) -> PricingEngine:
        config = await self.settings.pricing_config()
        rule = None
        if not config.use_simple_pricing:
            candidates = await PricingRuleRepository(self.session).get_active_candidates()
            rule = select_active_rule(candidates, now)
        return PricingEngine(config, rule)

    async def quote(
        self,
        route_request: RouteRequest,
        *,
        pickup_at: Optional[datetime] = None,
        hours: Optional[float] = None,
    ) -> Quote:
        if hours is not None and route_request.distance_meters is None and not (
            route_request.pickup and route_request.dropoff
        ):
            # Hourly hire is priced on time alone
            route = Route(0.0)
        else:
            maps_key = await self.settings.get("google_maps_api_key", env.google_maps_api_key)
            route = await resolve_route(route_request, maps_key, self.maps_client)

        now = await self.business_now()
        engine = await self.pricing_engine(now)
        try:
            trip = TripMetrics(
                distance_meters=route.distance_meters,
                duration_seconds=route.duration_seconds,
                pickup_at=pickup_at or now,
                hours=hours,
            )
            breakdown = engine.quote(trip)
        except PricingError as exc:
            raise BookingError(str(exc)) from exc

        currency = await self.settings.get("currency", "NPR")
        return Quote(breakdown, route.distance_meters, route.duration_seconds, currency)

    # ── Create ─────────────────────────────────────────────────────

    async def create(
        self,
        draft: BookingDraft,
        *,
        fare_override: Optional[float] = None,
        start_checkout: bool = True,
        user_id: Optional[int] = None,
    ) -> BookingResult:
        if draft.idempotency_key:
            existing = await self.bookings.get_by_idempotency_key(draft.idempotency_key)
            if existing:
                return BookingResult(
                    booking=existing,
                    breakdown=existing.fare_breakdown or {},
                    message="Booking already exists",
                    created=False,
                )

        if not is_valid_email(draft.customer_email):
            raise BookingError("Invalid email address")
        if not is_valid_phone(draft.customer_phone):
            raise BookingError("Invalid phone number")
        if draft.trip_type == TripType.HOURLY and draft.hours is None:
            raise BookingError("Hourly bookings need a number of hours")

        now = await self.business_now()
        advance_days = await self.settings.get("booking_advance_days", 30)
        validate_pickup_window(draft.pickup_at, now, advance_days)

        hours = draft.hours if draft.trip_type == TripType.HOURLY else None
        quote = await self.quote(draft.route, pickup_at=draft.pickup_at, hours=hours)
        breakdown = quote.breakdown.as_dict()
        fare = quote.breakdown.total_fare
        if fare_override is not None:
            fare = round(fare_override, 2)
            breakdown["override"] = fare

        route = draft.route
        booking = await self.bookings.create(
            BookingModel(
                booking_number=generate_booking_number(),
                customer_name=draft.customer_name,
                customer_email=draft.customer_email,
                customer_phone=draft.customer_phone,
                pickup_address=route.pickup_address,
                dropoff_address=route.dropoff_address,
                pickup_lat=route.pickup_lat,
                pickup_lng=route.pickup_lng,
                dropoff_lat=route.dropoff_lat,
                dropoff_lng=route.dropoff_lng,
                pickup_at=draft.pickup_at,
                trip_type=draft.trip_type,
                hours=hours,
                distance_miles=round(meters_to_miles(quote.distance_meters), 2),
                duration_minutes=round(quote.duration_seconds / 60, 1),
                estimated_fare=fare,
                currency=quote.currency,
                fare_breakdown=breakdown,
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                user_id=user_id,
                idempotency_key=draft.idempotency_key,
                notes=draft.notes,
            )
        )

        checkout_url = None
        message = "Booking created"
        if start_checkout:
            secret_key = await self.settings.get("stripe_secret_key", env.stripe_secret_key)
            if secret_key:
                session = await create_checkout_session(
                    booking,
                    secret_key=secret_key,
                    currency=quote.currency,
                    success_url=self._return_url("success", booking),
                    cancel_url=self._return_url("cancel", booking),
                )
                booking.stripe_session_id = session.id
                checkout_url = session.url
                message = "Redirecting to payment..."
            else:
                booking.transition_to(BookingStatus.CONFIRMED)
                message = "Booking confirmed. Payment is collected by the driver."

        await self.audit.record(
            "BOOKING_CREATED",
            "booking",
            booking.id,
            user_id=user_id,
            new_values={"booking_number": booking.booking_number, **_snapshot(booking)},
        )
        await self.notifications.booking_confirmation(booking)
        logger.info(
            "Booking %s created (fare=%.2f %s, strategy=%s)",
            booking.booking_number,
            booking.estimated_fare,
            booking.currency,
            breakdown.get("strategy"),
        )
        return BookingResult(booking, breakdown, message, checkout_url)

    @staticmethod
    def _return_url(outcome: str, booking: BookingModel) -> str:
        query = urlencode(
            {"booking": booking.booking_number, "email": booking.customer_email}
        )
        return f"{env.public_base_url.rstrip('/')}/book/{outcome}?{query}"

    async def get_for_customer(self, booking_number: str, email: str) -> Optional[BookingModel]:
        booking = await self.bookings.get_by_number(booking_number)
        if booking is None or booking.customer_email.lower() != email.strip().lower():
            return None
        return booking

    # ── Lifecycle ──────────────────────────────────────────────────

    async def change_status(
        self, booking: BookingModel, new_status: BookingStatus, user_id: Optional[int] = None
    ) -> None:
        before = _snapshot(booking)
        old = booking.transition_to(new_status)
        await self.audit.record(
            "BOOKING_STATUS_CHANGED",
            "booking",
            booking.id,
            user_id=user_id,
            old_values=before,
            new_values=_snapshot(booking),
        )
        await self.notifications.booking_status_update(booking, old, new_status)

    async def change_payment_status(
        self, booking: BookingModel, new_status: PaymentStatus, user_id: Optional[int] = None
    ) -> None:
        if PaymentStatus(booking.payment_status) == new_status:
            return
        before = _snapshot(booking)
        old_booking_status = BookingStatus(booking.status)
        booking.set_payment_status(new_status)
        await self.audit.record(
            "PAYMENT_STATUS_CHANGED",
            "booking",
            booking.id,
            user_id=user_id,
            old_values=before,
            new_values=_snapshot(booking),
        )
        if BookingStatus(booking.status) != old_booking_status:
            await self.notifications.booking_status_update(
                booking, old_booking_status, BookingStatus(booking.status)
            )

    async def assign_driver(
        self, booking: BookingModel, driver_id: int, user_id: Optional[int] = None
    ) -> None:
        driver = await DriverRepository(self.session).get_by_id(driver_id)
        if driver is None or not driver.is_active:
            raise BookingError("Driver not found or inactive")
        before = _snapshot(booking)
        booking.assign_driver(driver.id)
        await self.audit.record(
            "DRIVER_ASSIGNED",
            "booking",
            booking.id,
            user_id=user_id,
            old_values=before,
            new_values=_snapshot(booking),
        )
        await self.notifications.driver_assignment(booking, driver)

    async def delete(self, booking: BookingModel, user_id: Optional[int] = None) -> None:
        await self.audit.record(
            "BOOKING_DELETED",
            "booking",
            booking.id,
            user_id=user_id,
            old_values={"booking_number": booking.booking_number, **_snapshot(booking)},
        )
        await self.bookings.delete(booking)

    # ── Payment provider callbacks ─────────────────────────────────

    async def apply_checkout_event(self, event_type: str, payload) -> Optional[BookingModel]:
        """Apply a Stripe Checkout event; unknown bookings are ignored."""
        booking = await self.bookings.get_by_stripe_session(payload.get("id"))
        if booking is None and payload.get("client_reference_id"):
            booking = await self.bookings.get_by_number(payload["client_reference_id"])
        if booking is None:
            logger.warning("Checkout event %s for unknown session %s", event_type, payload.get("id"))
            return None

        if event_type == "checkout.session.completed":
            await self.change_payment_status(booking, PaymentStatus.PAID)
        elif PaymentStatus(booking.payment_status) == PaymentStatus.PENDING:
            await self.change_payment_status(booking, PaymentStatus.FAILED)
        return booking
