"""Booking numbers, generated passwords and contact-field validation."""

from __future__ import annotations

import re
import secrets
import string
import time

BOOKING_PREFIX = "RB"
_BASE36 = string.digits + string.ascii_uppercase
_PASSWORD_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_NOISE_RE = re.compile(r"[\s\-()]")


def generate_booking_number() -> str:
    """``RB`` + last six digits of epoch millis + four base-36 characters."""
    timestamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{BOOKING_PREFIX}{timestamp}{suffix}"


def generate_password(length: int = 12) -> str:
    return "".join(secrets.choice(_PASSWORD_CHARSET) for _ in range(length))


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_RE.match(_PHONE_NOISE_RE.sub("", value)))
