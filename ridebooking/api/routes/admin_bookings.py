"""
Admin booking management
========================

GET    /api/v1/admin/bookings       -- filtered, paginated listing
POST   /api/v1/admin/bookings       -- create on behalf of a customer
GET    /api/v1/admin/bookings/{id}  -- one booking
PATCH  /api/v1/admin/bookings/{id}  -- payment status, driver, status, notes
DELETE /api/v1/admin/bookings/{id}  -- remove a booking
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db, require_admin
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    AdminBookingCreateRequest,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdateRequest,
)
from ridebooking.config import settings
from ridebooking.domain.entities import InvalidStateTransition
from ridebooking.domain.enums import BookingStatus, PaymentStatus
from ridebooking.infrastructure.maps import MapsError
from ridebooking.infrastructure.models import BookingModel, UserModel
from ridebooking.infrastructure.repositories import BookingRepository
from ridebooking.services.bookings import BookingError, BookingService

router = APIRouter(prefix="/admin/bookings", tags=["admin"])


async def _get_or_404(db: AsyncSession, booking_id: int) -> BookingModel:
    booking = await BookingRepository(db).get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.get("", response_model=BookingListResponse, summary="List bookings")
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await BookingRepository(db).list(
        page=page,
        limit=limit,
        status=status,
        payment_status=payment_status,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in result.items],
        total=result.total,
        pages=result.pages,
        current_page=result.page,
    )


@router.post(
    "",
    status_code=201,
    response_model=BookingCreateResponse,
    summary="Create a booking as admin",
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: AdminBookingCreateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await BookingService(db).create(
            body.to_draft(),
            fare_override=body.estimated_fare,
            start_checkout=False,
            user_id=admin.id,
        )
    except BookingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MapsError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return BookingCreateResponse(
        message=result.message,
        booking=BookingResponse.model_validate(result.booking),
        fare=result.breakdown,
    )


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _get_or_404(db, booking_id)


@router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Update a booking",
    description=(
        "Changes are applied in order: payment status, driver, status. "
        "Lifecycle violations return 409."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_booking(
    request: Request,
    booking_id: int,
    body: BookingUpdateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    booking = await _get_or_404(db, booking_id)
    service = BookingService(db)
    try:
        if body.payment_status is not None:
            await service.change_payment_status(booking, body.payment_status, admin.id)
        if body.driver_id is not None:
            await service.assign_driver(booking, body.driver_id, admin.id)
        if body.status is not None and body.status != BookingStatus(booking.status):
            await service.change_status(booking, body.status, admin.id)
    except InvalidStateTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except BookingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if body.notes is not None:
        booking.notes = body.notes
    await db.flush()
    await db.refresh(booking)
    return booking


@router.delete("/{booking_id}", summary="Delete a booking")
@limiter.limit(settings.rate_limit)
async def delete_booking(
    request: Request,
    booking_id: int,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    booking = await _get_or_404(db, booking_id)
    await BookingService(db).delete(booking, admin.id)
    return {"message": "Booking deleted"}
