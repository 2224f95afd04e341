"""
Stripe webhook
==============

POST /api/v1/payments/stripe/webhook

Verifies the ``Stripe-Signature`` header, then applies Checkout events:

* ``checkout.session.completed``            -> payment PAID (booking CONFIRMED)
* ``checkout.session.expired``              -> payment FAILED
* ``checkout.session.async_payment_failed`` -> payment FAILED

Anything else is acknowledged and ignored so Stripe stops retrying.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db
from ridebooking.api.middleware import limiter
from ridebooking.config import settings
from ridebooking.domain.entities import InvalidStateTransition
from ridebooking.infrastructure.payments import PaymentError, parse_webhook_event
from ridebooking.services.bookings import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

CHECKOUT_EVENTS = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.expired",
        "checkout.session.async_payment_failed",
    }
)


@router.post("/stripe/webhook", summary="Receive Stripe Checkout events")
@limiter.limit(settings.rate_limit)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
):
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=400, detail="Webhook secret not configured")

    payload = await request.body()
    try:
        event = parse_webhook_event(
            payload, stripe_signature, settings.stripe_webhook_secret
        )
    except PaymentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    event_type = event["type"]
    if event_type not in CHECKOUT_EVENTS:
        logger.debug("Ignoring Stripe event %s", event_type)
        return {"received": True}

    try:
        await BookingService(db).apply_checkout_event(
            event_type, event["data"]["object"]
        )
    except InvalidStateTransition as exc:
        # e.g. an expiry arriving after a refund; nothing left to change
        logger.warning("Stripe event %s not applied: %s", event_type, exc)
    return {"received": True}
