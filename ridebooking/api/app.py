"""
FastAPI application factory.

* Registers the public booking API, the admin API and the booking pages.
* Starts / stops the background notification worker via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridebooking.api.middleware import limiter
from ridebooking.api.routes import (
    admin,
    admin_bookings,
    auth,
    bookings,
    drivers,
    pages,
    payments,
    pricing_rules,
    settings as settings_routes,
)
from ridebooking.workers import notifier as _notifier

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification worker on startup; stop on shutdown."""
    await _notifier.start_notification_loop()
    yield
    await _notifier.stop_notification_loop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Booking API",
        description=(
            "Books rides with server-side fares, Stripe Checkout payments, "
            "an admin back office and queued e-mail notifications."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(settings_routes.public_router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(admin_bookings.router, prefix="/api/v1")
    app.include_router(pricing_rules.router, prefix="/api/v1")
    app.include_router(settings_routes.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(pages.router)

    return app
