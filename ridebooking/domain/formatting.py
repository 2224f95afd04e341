"""Human-readable renderings used by e-mails, quotes and the booking form."""

from __future__ import annotations

from datetime import date, time

from .distance import meters_to_miles

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}


def format_distance(meters: float) -> str:
    return f"{meters_to_miles(meters):.2f} miles"


def format_duration(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m"


def format_currency(amount: float, currency: str = "NPR") -> str:
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{code} {amount:,.2f}"


def format_date(value: date) -> str:
    """``March 5, 2026``"""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_time(value: time) -> str:
    """``9:05 AM``"""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"
