"""
Public booking endpoints
========================

POST /api/v1/quotes                    -- price a route without booking it
POST /api/v1/bookings                  -- create a booking (201; 200 on idempotent retry)
GET  /api/v1/bookings/{booking_number} -- look up a booking (needs the customer e-mail)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    BookingCreateRequest,
    BookingCreateResponse,
    BookingResponse,
    QuoteRequest,
    QuoteResponse,
)
from ridebooking.config import settings
from ridebooking.domain.enums import TripType
from ridebooking.domain.formatting import (
    format_currency,
    format_distance,
    format_duration,
)
from ridebooking.infrastructure.maps import MapsError
from ridebooking.infrastructure.payments import PaymentError
from ridebooking.services.bookings import BookingError, BookingService

router = APIRouter(tags=["bookings"])


@router.post(
    "/quotes",
    response_model=QuoteResponse,
    summary="Estimate the fare for a route",
)
@limiter.limit(settings.rate_limit)
async def create_quote(
    request: Request,
    body: QuoteRequest,
    db: AsyncSession = Depends(get_db),
):
    hours = body.hours if body.trip_type == TripType.HOURLY else None
    if body.trip_type == TripType.HOURLY and hours is None:
        raise HTTPException(status_code=400, detail="Hourly quotes need a number of hours")
    try:
        quote = await BookingService(db).quote(
            body.route_request(), pickup_at=body.pickup_at, hours=hours
        )
    except BookingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MapsError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return QuoteResponse(
        fare=quote.breakdown.as_dict(),
        currency=quote.currency,
        fare_text=format_currency(quote.breakdown.total_fare, quote.currency),
        distance_meters=quote.distance_meters,
        duration_seconds=quote.duration_seconds,
        distance_text=format_distance(quote.distance_meters),
        duration_text=format_duration(quote.duration_seconds),
    )


@router.post(
    "/bookings",
    status_code=201,
    response_model=BookingCreateResponse,
    summary="Create a booking",
    responses={
        200: {"description": "Idempotent retry; the existing booking is returned."},
        502: {"description": "Payment or maps provider failure."},
    },
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    response: Response,
    body: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await BookingService(db).create(body.to_draft())
    except BookingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (MapsError, PaymentError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if not result.created:
        response.status_code = 200
    return BookingCreateResponse(
        message=result.message,
        booking=BookingResponse.model_validate(result.booking),
        fare=result.breakdown,
        checkout_url=result.checkout_url,
    )


@router.get(
    "/bookings/{booking_number}",
    response_model=BookingResponse,
    summary="Look up a booking by number",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_number: str,
    email: str = Query(..., min_length=3),
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingService(db).get_for_customer(booking_number, email)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking
