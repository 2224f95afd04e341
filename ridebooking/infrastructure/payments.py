"""
Stripe Checkout gateway.

The Stripe SDK is synchronous; calls run in a worker thread so the event
loop is never blocked.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import stripe

logger = logging.getLogger(__name__)

# Currencies Stripe charges in whole units (no minor unit)
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "UGX"})


class PaymentError(Exception):
    """Raised when the payment provider rejects a request."""


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def amount_in_minor_units(amount: float, currency: str) -> int:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(round(amount))
    return int(round(amount * 100))


def checkout_payload(booking, currency: str, success_url: str, cancel_url: str) -> dict:
    pickup_at = booking.pickup_at
    return {
        "payment_method_types": ["card"],
        "mode": "payment",
        "customer_email": booking.customer_email,
        "client_reference_id": booking.booking_number,
        "line_items": [
            {
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {
                        "name": "Ride Booking",
                        "description": (
                            f"Pickup: {booking.pickup_address} | "
                            f"Dropoff: {booking.dropoff_address}"
                        ),
                    },
                    "unit_amount": amount_in_minor_units(
                        booking.estimated_fare, currency
                    ),
                },
                "quantity": 1,
            }
        ],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": {
            "booking_number": booking.booking_number,
            "name": booking.customer_name,
            "email": booking.customer_email,
            "phone": booking.customer_phone,
            "pickup_address": booking.pickup_address,
            "dropoff_address": booking.dropoff_address,
            "pickup_date": pickup_at.date().isoformat(),
            "pickup_time": pickup_at.strftime("%H:%M"),
            "distance_miles": f"{booking.distance_miles:.2f}",
            "fare": f"{booking.estimated_fare:.2f}",
        },
    }


async def create_checkout_session(
    booking,
    *,
    secret_key: str,
    currency: str,
    success_url: str,
    cancel_url: str,
) -> CheckoutSession:
    payload = checkout_payload(booking, currency, success_url, cancel_url)
    try:
        session = await asyncio.to_thread(
            stripe.checkout.Session.create, api_key=secret_key, **payload
        )
    except stripe.StripeError as exc:
        logger.warning("Stripe checkout failed for %s: %s", booking.booking_number, exc)
        raise PaymentError(f"Stripe error: {exc.user_message or exc}") from exc
    return CheckoutSession(id=session.id, url=session.url)


def parse_webhook_event(payload: bytes, signature: str, webhook_secret: str):
    """Verify the Stripe signature and return the event.

    Raises ``PaymentError`` for malformed payloads or bad signatures.
    """
    try:
        return stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except ValueError as exc:
        raise PaymentError("Invalid payload") from exc
    except stripe.SignatureVerificationError as exc:
        raise PaymentError("Invalid signature") from exc
