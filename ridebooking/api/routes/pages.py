"""
Public booking pages
====================

GET /book          -- the booking form
GET /book/success  -- shown after Stripe Checkout succeeds
GET /book/cancel   -- shown when the customer abandons Checkout
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db
from ridebooking.api.middleware import limiter
from ridebooking.config import settings
from ridebooking.domain.formatting import format_currency, format_date, format_time
from ridebooking.services.bookings import BookingService
from ridebooking.services.settings_store import SettingsService

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["currency"] = format_currency
templates.env.filters["long_date"] = format_date
templates.env.filters["clock"] = format_time

router = APIRouter(prefix="/book", tags=["pages"], include_in_schema=False)


@router.get("", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit)
async def booking_form(request: Request, db: AsyncSession = Depends(get_db)):
    store = SettingsService(db)
    form = await store.form_settings()
    pricing = await store.pricing_config()
    return templates.TemplateResponse(
        request,
        "booking_form.html",
        {
            "form": form,
            "pricing": asdict(pricing),
            "missing": await store.missing_required(),
        },
    )


@router.get("/success", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit)
async def booking_success(
    request: Request,
    booking: Optional[str] = None,
    email: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    found = None
    if booking and email:
        found = await BookingService(db).get_for_customer(booking, email)
    form = await SettingsService(db).form_settings()
    return templates.TemplateResponse(
        request,
        "booking_result.html",
        {
            "form": form,
            "outcome": "success",
            "message": form["success_message"],
            "booking": found,
        },
    )


@router.get("/cancel", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit)
async def booking_cancel(request: Request, db: AsyncSession = Depends(get_db)):
    form = await SettingsService(db).form_settings()
    return templates.TemplateResponse(
        request,
        "booking_result.html",
        {
            "form": form,
            "outcome": "cancel",
            "message": form["cancel_message"],
            "booking": None,
        },
    )
