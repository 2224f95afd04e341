"""
Typed settings store.

Every setting is persisted as text together with its ``data_type``
(``string``, ``number``, ``boolean`` or ``json``).  Values flagged
encrypted *or* sensitive are encrypted at rest; listings mask sensitive
values and never return their plaintext.

Environment configuration only provides the defaults written by
``initialize_defaults``; after that the database is authoritative.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.config import settings as env
from ridebooking.domain.pricing import PricingConfig
from ridebooking.infrastructure.crypto import SecretBox
from ridebooking.infrastructure.mailer import SMTPConfig
from ridebooking.infrastructure.models import SettingModel
from ridebooking.infrastructure.repositories import SettingRepository

logger = logging.getLogger(__name__)

HIDDEN = "***HIDDEN***"
DATA_TYPES = ("string", "number", "boolean", "json")


class SettingsError(Exception):
    """Raised for unknown keys or values that do not fit their type."""


@dataclass(frozen=True)
class SettingDefinition:
    key: str
    value: Any
    description: str
    category: str = "general"
    data_type: str = "string"
    sensitive: bool = False


def default_definitions() -> list[SettingDefinition]:
    D = SettingDefinition
    return [
        # application
        D("app_name", "Ride Booking App", "Application name displayed to users", "application"),
        D("app_logo_url", "", "URL to application logo", "application"),
        D("primary_color", "#2563eb", "Primary brand color", "application"),
        # integrations
        D("google_maps_api_key", env.google_maps_api_key,
          "Google Maps API key for location services", "integrations", sensitive=True),
        # payments
        D("stripe_publishable_key", env.stripe_publishable_key,
          "Stripe publishable key (pk_...)", "payments"),
        D("stripe_secret_key", env.stripe_secret_key,
          "Stripe secret key (sk_...)", "payments", sensitive=True),
        # email
        D("smtp_host", env.smtp_host, "SMTP server hostname", "email"),
        D("smtp_port", env.smtp_port, "SMTP server port", "email", "number"),
        D("smtp_user", env.smtp_user, "SMTP username", "email", sensitive=True),
        D("smtp_password", env.smtp_password, "SMTP password", "email", sensitive=True),
        D("from_email", env.from_email, "Default sender email address", "email"),
        D("from_name", env.from_name, "Default sender name", "email"),
        # security
        D("jwt_expires_days", env.jwt_expires_days,
          "Admin token lifetime in days", "security", "number"),
        # business
        D("currency", "NPR", "Default currency code", "business"),
        D("timezone", "America/New_York", "Default timezone", "business"),
        D("booking_advance_days", 30,
          "Maximum days in advance for booking", "business", "number"),
        # pricing
        D("use_simple_pricing", True,
          "Use simple per-kilometer pricing instead of pricing rules", "pricing", "boolean"),
        D("rate_per_km", 20, "Rate per kilometer", "pricing", "number"),
        D("minimum_fare", 50, "Minimum fare for per-kilometer pricing", "pricing", "number"),
        D("base_fare", 55, "Flat fare covering the included miles", "pricing", "number"),
        D("per_mile", 3.5, "Rate for each mile after the included miles", "pricing", "number"),
        D("included_miles", 10, "Miles covered by the base fare", "pricing", "number"),
        D("tier_minimum_fare", 55,
          "The lowest fare a customer can be charged (tiered pricing)", "pricing", "number"),
        D("hourly_rate", 75, "Hourly rate for hourly bookings", "pricing", "number"),
        D("min_hours", 4, "Minimum hours for hourly bookings", "pricing", "number"),
        # booking form
        D("form_title", "Book Your Ride", "Heading shown on the booking form", "form"),
        D("label_name", "Full Name", "Label for the name field", "form"),
        D("label_email", "Email", "Label for the email field", "form"),
        D("label_phone", "Phone", "Label for the phone field", "form"),
        D("label_pickup", "Pickup Address", "Label for the pickup field", "form"),
        D("label_dropoff", "Dropoff Address", "Label for the dropoff field", "form"),
        D("label_date", "Pickup Date", "Label for the date field", "form"),
        D("label_time", "Pickup Time", "Label for the time field", "form"),
        D("button_text", "Book & Pay", "Submit button text", "form"),
        D("button_style", "rounded", "Submit button style (rounded or square)", "form"),
        D("success_message", "Thank you! Your booking was received.",
          "Message shown after a successful payment", "form"),
        D("cancel_message", "Payment was cancelled. Your ride is not booked.",
          "Message shown when the customer cancels checkout", "form"),
    ]


# Keys the booking form cannot work without
REQUIRED_FOR_FORM = {
    "google_maps_api_key": "Google Maps API Key",
    "stripe_publishable_key": "Stripe Publishable Key",
    "stripe_secret_key": "Stripe Secret Key",
    "base_fare": "Base Fare",
    "per_mile": "Per Mile Rate",
    "tier_minimum_fare": "Minimum Fare",
}


def stringify_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def parse_value(raw: str, data_type: str) -> Any:
    if data_type == "number":
        try:
            return float(raw)
        except ValueError:
            return float("nan")
    if data_type == "boolean":
        return raw == "true"
    if data_type == "json":
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def as_flag(value: Any) -> bool:
    """Read a boolean setting that may have been stored as text."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class SettingsService:
    def __init__(self, session: AsyncSession, box: SecretBox | None = None):
        self.repo = SettingRepository(session)
        self.box = box or SecretBox()

    # ── Reads ──────────────────────────────────────────────────────

    def _plain(self, setting: SettingModel) -> Any:
        raw = setting.value
        if setting.is_encrypted:
            raw = self.box.decrypt(raw)
        return parse_value(raw, setting.data_type)

    def to_public(self, setting: SettingModel) -> dict:
        return {
            "key": setting.key,
            "value": HIDDEN if setting.is_sensitive else self._plain(setting),
            "description": setting.description,
            "category": setting.category,
            "is_encrypted": setting.is_encrypted,
            "is_sensitive": setting.is_sensitive,
            "data_type": setting.data_type,
        }

    async def get(self, key: str, default: Any = None) -> Any:
        setting = await self.repo.get(key)
        if setting is None:
            return default
        return self._plain(setting)

    async def get_values(self, defaults: dict[str, Any]) -> dict[str, Any]:
        """Fetch several keys at once, falling back to *defaults*."""
        found = await self.repo.get_many(list(defaults))
        return {
            key: self._plain(found[key]) if key in found else fallback
            for key, fallback in defaults.items()
        }

    async def list(self, category: str | None = None) -> list[dict]:
        return [self.to_public(s) for s in await self.repo.list(category)]

    async def category_values(self, category: str) -> dict[str, Any]:
        return {s.key: self._plain(s) for s in await self.repo.list(category)}

    # ── Writes ─────────────────────────────────────────────────────

    async def set(
        self,
        key: str,
        value: Any,
        *,
        description: Optional[str] = None,
        category: Optional[str] = None,
        is_encrypted: Optional[bool] = None,
        is_sensitive: Optional[bool] = None,
        data_type: Optional[str] = None,
    ) -> SettingModel:
        """
        Insert or update *key*.

        Metadata left as ``None`` keeps what the stored row already has,
        so re-saving a secret by value alone keeps it encrypted and masked.
        """
        stored = await self.repo.get(key)
        if stored is None:
            known = next((d for d in default_definitions() if d.key == key), None)
            if known is not None:
                category = category or known.category
                data_type = data_type or known.data_type
                if is_sensitive is None:
                    is_sensitive = known.sensitive
        if data_type is None:
            data_type = stored.data_type if stored else "string"
        if is_sensitive is None:
            is_sensitive = stored.is_sensitive if stored else False
        if is_encrypted is None:
            is_encrypted = stored.is_encrypted if stored else False
        if data_type not in DATA_TYPES:
            raise SettingsError(f"Unknown data type: {data_type}")
        raw = stringify_value(value)
        if data_type == "number":
            try:
                float(raw)
            except ValueError as exc:
                raise SettingsError(f"Setting {key} must be a number") from exc

        encrypted = is_encrypted or is_sensitive
        if encrypted:
            raw = self.box.encrypt(raw)

        fields = dict(
            value=raw,
            is_encrypted=encrypted,
            is_sensitive=is_sensitive,
            data_type=data_type,
        )
        if description is not None:
            fields["description"] = description
        if category is not None:
            fields["category"] = category
        return await self.repo.upsert(key, **fields)

    async def delete(self, key: str) -> None:
        if not await self.repo.delete(key):
            raise SettingsError(f"Setting not found: {key}")

    async def initialize_defaults(self) -> list[str]:
        """Insert every missing default; existing values are never touched."""
        definitions = default_definitions()
        existing = await self.repo.get_many([d.key for d in definitions])
        created = []
        for d in definitions:
            if d.key in existing:
                continue
            await self.set(
                d.key,
                d.value,
                description=d.description,
                category=d.category,
                is_sensitive=d.sensitive,
                data_type=d.data_type,
            )
            created.append(d.key)
        if created:
            logger.info("Initialised %d default settings", len(created))
        return created

    async def missing_required(self) -> list[str]:
        values = await self.get_values({key: None for key in REQUIRED_FOR_FORM})
        return [
            label
            for key, label in REQUIRED_FOR_FORM.items()
            if values[key] in (None, "") or values[key] != values[key]  # NaN
        ]

    # ── Typed views ────────────────────────────────────────────────

    async def pricing_config(self) -> PricingConfig:
        defaults = PricingConfig()
        v = await self.get_values(
            {
                "use_simple_pricing": defaults.use_simple_pricing,
                "rate_per_km": defaults.rate_per_km,
                "minimum_fare": defaults.minimum_fare,
                "base_fare": defaults.base_fare,
                "per_mile": defaults.per_mile,
                "tier_minimum_fare": defaults.tier_minimum_fare,
                "included_miles": defaults.included_miles,
                "hourly_rate": defaults.hourly_rate,
                "min_hours": defaults.min_hours,
            }
        )
        return PricingConfig(
            use_simple_pricing=as_flag(v["use_simple_pricing"]),
            rate_per_km=float(v["rate_per_km"]),
            minimum_fare=float(v["minimum_fare"]),
            base_fare=float(v["base_fare"]),
            per_mile=float(v["per_mile"]),
            tier_minimum_fare=float(v["tier_minimum_fare"]),
            included_miles=float(v["included_miles"]),
            hourly_rate=float(v["hourly_rate"]),
            min_hours=float(v["min_hours"]),
        )

    async def smtp_config(self) -> SMTPConfig:
        v = await self.get_values(
            {
                "smtp_host": env.smtp_host,
                "smtp_port": env.smtp_port,
                "smtp_user": env.smtp_user,
                "smtp_password": env.smtp_password,
                "from_email": env.from_email,
                "from_name": env.from_name,
            }
        )
        return SMTPConfig(
            host=v["smtp_host"],
            port=int(v["smtp_port"]),
            username=v["smtp_user"],
            password=v["smtp_password"],
            from_email=v["from_email"],
            from_name=v["from_name"],
        )

    async def form_settings(self) -> dict[str, Any]:
        """Everything the public booking page renders, defaults filled in."""
        defaults = {
            d.key: d.value
            for d in default_definitions()
            if d.category in ("form", "application", "business")
        }
        defaults["stripe_publishable_key"] = env.stripe_publishable_key
        defaults["google_maps_api_key"] = env.google_maps_api_key
        return await self.get_values(defaults)
