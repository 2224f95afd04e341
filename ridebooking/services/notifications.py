"""
E-mail notifications.

Messages are rendered here and written to the ``email_outbox`` table in the
caller's transaction; ``ridebooking.workers.notifier`` delivers them.

Templates stored in ``email_templates`` override the built-in defaults.
Placeholders are ``{{variable}}``, rendered by a sandboxed Jinja2
environment so admin-edited templates cannot reach Python internals.
Unknown placeholders render as empty strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.domain.enums import BookingStatus, PaymentStatus
from ridebooking.domain.formatting import format_currency, format_date, format_time
from ridebooking.infrastructure.models import (
    BookingModel,
    DriverModel,
    EmailOutboxModel,
    UserModel,
)
from ridebooking.infrastructure.repositories import (
    EmailOutboxRepository,
    EmailTemplateRepository,
)

logger = logging.getLogger(__name__)

_env = SandboxedEnvironment(autoescape=True)
_text_env = SandboxedEnvironment(autoescape=False)


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html: str
    text: Optional[str] = None


_BOOKING_DETAILS = """
<table cellpadding="6" style="border-collapse:collapse">
  <tr><td><strong>Booking Number</strong></td><td>{{ bookingNumber }}</td></tr>
  <tr><td><strong>Pickup</strong></td><td>{{ pickupAddress }}</td></tr>
  <tr><td><strong>Dropoff</strong></td><td>{{ dropoffAddress }}</td></tr>
  <tr><td><strong>Date</strong></td><td>{{ pickupDate }}</td></tr>
  <tr><td><strong>Time</strong></td><td>{{ pickupTime }}</td></tr>
  <tr><td><strong>Fare</strong></td><td>{{ fare }}</td></tr>
</table>
"""

DEFAULT_TEMPLATES: dict[str, EmailTemplate] = {
    "booking_confirmation": EmailTemplate(
        subject="Booking Confirmation - {{ bookingNumber }}",
        html=(
            "<h2>Thank you for your booking, {{ customerName }}!</h2>"
            "<p>Your ride has been booked. Here are the details:</p>"
            + _BOOKING_DETAILS
            + "<p>Payment status: <strong>{{ paymentStatus }}</strong></p>"
        ),
        text=(
            "Thank you for your booking, {{ customerName }}!\n\n"
            "Booking Number: {{ bookingNumber }}\n"
            "Pickup: {{ pickupAddress }}\n"
            "Dropoff: {{ dropoffAddress }}\n"
            "Date: {{ pickupDate }} at {{ pickupTime }}\n"
            "Fare: {{ fare }}\n"
            "Payment status: {{ paymentStatus }}\n"
        ),
    ),
    "booking_status_update": EmailTemplate(
        subject="Booking Update - {{ bookingNumber }}",
        html=(
            "<h2>Hello {{ customerName }},</h2>"
            "<p>The status of your booking changed from "
            "<strong>{{ oldStatus }}</strong> to <strong>{{ newStatus }}</strong>.</p>"
            + _BOOKING_DETAILS
        ),
        text=(
            "Hello {{ customerName }},\n\n"
            "Your booking {{ bookingNumber }} is now {{ newStatus }} "
            "(was {{ oldStatus }}).\n"
        ),
    ),
    "driver_assignment": EmailTemplate(
        subject="Driver Assigned - {{ bookingNumber }}",
        html=(
            "<h2>Hello {{ customerName }},</h2>"
            "<p>A driver has been assigned to your booking.</p>"
            "<p><strong>Driver:</strong> {{ driverName }}<br>"
            "<strong>Phone:</strong> {{ driverPhone }}<br>"
            "<strong>Vehicle:</strong> {{ vehicleInfo }}</p>"
            + _BOOKING_DETAILS
        ),
        text=(
            "Hello {{ customerName }},\n\n"
            "Your driver for booking {{ bookingNumber }} is {{ driverName }} "
            "({{ driverPhone }}), {{ vehicleInfo }}.\n"
        ),
    ),
    "welcome": EmailTemplate(
        subject="Welcome to {{ appName }}!",
        html=(
            "<h2>Welcome, {{ userName }}!</h2>"
            "<p>Your administrator account <strong>{{ userEmail }}</strong> "
            "has been created.</p>"
        ),
        text="Welcome, {{ userName }}!\n\nYour account {{ userEmail }} has been created.\n",
    ),
}


def render(source: str, variables: dict, *, html: bool = True) -> str:
    env = _env if html else _text_env
    return env.from_string(source).render(**variables)


# ── Variable builders ─────────────────────────────────────────────────


def booking_variables(booking: BookingModel) -> dict:
    return {
        "customerName": booking.customer_name,
        "bookingNumber": booking.booking_number,
        "pickupAddress": booking.pickup_address,
        "dropoffAddress": booking.dropoff_address,
        "pickupDate": format_date(booking.pickup_at.date()),
        "pickupTime": format_time(booking.pickup_at.time()),
        "fare": format_currency(booking.estimated_fare, booking.currency),
        "paymentStatus": PaymentStatus(booking.payment_status).value,
        "status": BookingStatus(booking.status).value,
    }


def vehicle_info(driver: DriverModel) -> str:
    return f"{driver.vehicle_model or 'Vehicle'} ({driver.vehicle_plate or 'N/A'})"


# ── Service ───────────────────────────────────────────────────────────


class NotificationService:
    def __init__(self, session: AsyncSession):
        self.templates = EmailTemplateRepository(session)
        self.outbox = EmailOutboxRepository(session)

    async def compose(self, name: str, variables: dict) -> tuple[str, str, Optional[str]]:
        """Render *name* with *variables*; a stored active template wins."""
        stored = await self.templates.get_active(name)
        if stored is not None:
            template = EmailTemplate(stored.subject, stored.html_content, stored.text_content)
        else:
            template = DEFAULT_TEMPLATES[name]
        subject = render(template.subject, variables, html=False)
        html = render(template.html, variables)
        text = render(template.text, variables, html=False) if template.text else None
        return subject, html, text

    async def queue(
        self, name: str, to: str, variables: dict
    ) -> Optional[EmailOutboxModel]:
        """Queue a message; rendering problems are logged, never raised."""
        try:
            subject, html, text = await self.compose(name, variables)
        except TemplateError:
            logger.exception("Could not render e-mail template %s", name)
            return None
        message = await self.outbox.enqueue(
            EmailOutboxModel(
                to_address=to,
                subject=subject,
                html_body=html,
                text_body=text,
                template=name,
            )
        )
        logger.info("Queued %s e-mail to %s", name, to)
        return message

    async def booking_confirmation(self, booking: BookingModel):
        return await self.queue(
            "booking_confirmation", booking.customer_email, booking_variables(booking)
        )

    async def booking_status_update(
        self, booking: BookingModel, old_status: BookingStatus, new_status: BookingStatus
    ):
        variables = booking_variables(booking)
        variables.update(oldStatus=old_status.value, newStatus=new_status.value)
        return await self.queue(
            "booking_status_update", booking.customer_email, variables
        )

    async def driver_assignment(self, booking: BookingModel, driver: DriverModel):
        variables = booking_variables(booking)
        variables.update(
            driverName=driver.name,
            driverPhone=driver.phone,
            vehicleInfo=vehicle_info(driver),
        )
        return await self.queue("driver_assignment", booking.customer_email, variables)

    async def welcome(self, user: UserModel, app_name: str):
        return await self.queue(
            "welcome",
            user.email,
            {"userName": user.name, "userEmail": user.email, "appName": app_name},
        )
