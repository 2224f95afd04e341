"""
Fare Engine  (Strategy Pattern)
===============================

Strategies
----------
* **Tiered**       -- flat ``base_fare`` for the first ``included_miles``,
  ``per_mile`` after that, floored at ``minimum_fare``.
* **PerKilometre** -- ``km x rate_per_km`` floored at ``minimum_fare``.
* **Rule**         -- an admin-defined rate card::

      subtotal = (base + max(0, miles - free) x per_mile + minutes x per_minute)
                 x peak_multiplier? x weekend_multiplier?
      total    = max(subtotal, minimum_fare)

  Peak hours are 06:00-09:59 and 17:00-20:59; the weekend is Sat/Sun.
* **Hourly**       -- ``max(hours, min_hours) x hourly_rate``.

Distances enter the engine in metres and durations in seconds.

Complexity: O(1) per quote, O(R) for rule selection over R rules.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from .distance import meters_to_km, meters_to_miles

PEAK_HOURS = frozenset(range(6, 10)) | frozenset(range(17, 21))
WEEKEND_DAYS = frozenset({5, 6})  # datetime.weekday(): Saturday, Sunday


class PricingError(Exception):
    """Raised for inputs no strategy can price."""


# ── Value objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class TripMetrics:
    distance_meters: float = 0.0
    duration_seconds: float = 0.0
    pickup_at: Optional[datetime] = None
    hours: Optional[float] = None

    def __post_init__(self):
        if self.distance_meters < 0:
            raise PricingError("Distance cannot be negative")
        if self.duration_seconds < 0:
            raise PricingError("Duration cannot be negative")
        if self.hours is not None and self.hours <= 0:
            raise PricingError("Hours must be positive")

    @property
    def miles(self) -> float:
        return meters_to_miles(self.distance_meters)

    @property
    def km(self) -> float:
        return meters_to_km(self.distance_meters)

    @property
    def minutes(self) -> float:
        return self.duration_seconds / 60


@dataclass(frozen=True)
class RateCard:
    """The pricing fields of a ``PricingRule`` row."""

    base_fare: float
    per_mile_rate: float
    minimum_fare: float
    per_minute_rate: float = 0.0
    free_distance: float = 0.0
    peak_hour_multiplier: float = 1.0
    weekend_multiplier: float = 1.0
    name: str = ""

    @classmethod
    def from_rule(cls, rule) -> "RateCard":
        return cls(
            base_fare=rule.base_fare,
            per_mile_rate=rule.per_mile_rate,
            minimum_fare=rule.minimum_fare,
            per_minute_rate=rule.per_minute_rate or 0.0,
            free_distance=rule.free_distance or 0.0,
            peak_hour_multiplier=rule.peak_hour_multiplier or 1.0,
            weekend_multiplier=rule.weekend_multiplier or 1.0,
            name=rule.name,
        )


@dataclass(frozen=True)
class FareBreakdown:
    base_fare: float
    distance_fare: float
    time_fare: float
    multiplier: float
    surge: float
    total_fare: float
    strategy: str

    def as_dict(self) -> dict:
        return asdict(self)


def _money(value: float) -> float:
    return round(value, 2)


def _breakdown(
    strategy: str,
    base: float,
    distance: float,
    time: float,
    total: float,
    multiplier: float = 1.0,
    surge: float = 0.0,
) -> FareBreakdown:
    return FareBreakdown(
        base_fare=_money(base),
        distance_fare=_money(distance),
        time_fare=_money(time),
        multiplier=multiplier,
        surge=_money(surge),
        total_fare=_money(total),
        strategy=strategy,
    )


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    name: str = "base"

    @abstractmethod
    def calculate(self, trip: TripMetrics) -> FareBreakdown: ...


class TieredPricing(PricingStrategy):
    name = "tiered"

    def __init__(
        self,
        base_fare: float = 55.0,
        per_mile: float = 3.5,
        minimum_fare: float = 55.0,
        included_miles: float = 10.0,
    ):
        self.base_fare = base_fare
        self.per_mile = per_mile
        self.minimum_fare = minimum_fare
        self.included_miles = included_miles

    def calculate(self, trip: TripMetrics) -> FareBreakdown:
        extra = max(0.0, (trip.miles - self.included_miles) * self.per_mile)
        fare = self.base_fare + extra
        return _breakdown(
            self.name, self.base_fare, extra, 0.0, max(fare, self.minimum_fare)
        )


class PerKilometrePricing(PricingStrategy):
    name = "per_km"

    def __init__(self, rate_per_km: float = 20.0, minimum_fare: float = 50.0):
        self.rate_per_km = rate_per_km
        self.minimum_fare = minimum_fare

    def calculate(self, trip: TripMetrics) -> FareBreakdown:
        fare = trip.km * self.rate_per_km
        return _breakdown(self.name, 0.0, fare, 0.0, max(fare, self.minimum_fare))


class RulePricing(PricingStrategy):
    name = "rule"

    def __init__(self, card: RateCard):
        if card.peak_hour_multiplier <= 0 or card.weekend_multiplier <= 0:
            raise PricingError("Multipliers must be positive")
        self.card = card

    def multiplier_for(self, pickup_at: Optional[datetime]) -> float:
        multiplier = 1.0
        if pickup_at is None:
            return multiplier
        if pickup_at.hour in PEAK_HOURS:
            multiplier *= self.card.peak_hour_multiplier
        if pickup_at.weekday() in WEEKEND_DAYS:
            multiplier *= self.card.weekend_multiplier
        return multiplier

    def calculate(self, trip: TripMetrics) -> FareBreakdown:
        card = self.card
        chargeable = max(0.0, trip.miles - card.free_distance)
        distance_fare = chargeable * card.per_mile_rate
        time_fare = trip.minutes * card.per_minute_rate
        multiplier = self.multiplier_for(trip.pickup_at)

        raw = card.base_fare + distance_fare + time_fare
        subtotal = raw * multiplier
        return _breakdown(
            self.name,
            card.base_fare,
            distance_fare,
            time_fare,
            max(subtotal, card.minimum_fare),
            multiplier=multiplier,
            surge=subtotal - raw,
        )


class HourlyPricing(PricingStrategy):
    name = "hourly"

    def __init__(self, hourly_rate: float = 75.0, min_hours: float = 4):
        self.hourly_rate = hourly_rate
        self.min_hours = min_hours

    def calculate(self, trip: TripMetrics) -> FareBreakdown:
        if trip.hours is None:
            raise PricingError("Hourly bookings need a number of hours")
        hours = max(trip.hours, self.min_hours)
        total = hours * self.hourly_rate
        return _breakdown(self.name, 0.0, 0.0, total, total)


# ── Rule selection ────────────────────────────────────────────────────


def rule_in_window(rule, now: datetime) -> bool:
    """Missing bounds are open; present bounds are inclusive."""
    if rule.valid_from is not None and rule.valid_from > now:
        return False
    if rule.valid_to is not None and rule.valid_to < now:
        return False
    return True


def select_active_rule(rules: Iterable, now: datetime):
    """Return the newest active rule whose validity window contains *now*."""
    candidates = [r for r in rules if r.is_active and rule_in_window(r, now)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.created_at, r.id or 0))


# ── Engine facade ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingConfig:
    """Pricing parameters read from the settings store."""

    use_simple_pricing: bool = True
    rate_per_km: float = 20.0
    minimum_fare: float = 50.0
    base_fare: float = 55.0
    per_mile: float = 3.5
    tier_minimum_fare: float = 55.0
    included_miles: float = 10.0
    hourly_rate: float = 75.0
    min_hours: float = 4


class PricingEngine:
    """High-level API used by the booking flow and the quote endpoint."""

    def __init__(self, config: PricingConfig, active_rule=None):
        self.config = config
        self.active_rule = active_rule

    def strategy_for(self, hourly: bool = False) -> PricingStrategy:
        cfg = self.config
        if hourly:
            return HourlyPricing(cfg.hourly_rate, cfg.min_hours)
        if cfg.use_simple_pricing:
            return PerKilometrePricing(cfg.rate_per_km, cfg.minimum_fare)
        if self.active_rule is not None:
            return RulePricing(RateCard.from_rule(self.active_rule))
        return TieredPricing(
            cfg.base_fare, cfg.per_mile, cfg.tier_minimum_fare, cfg.included_miles
        )

    def quote(self, trip: TripMetrics) -> FareBreakdown:
        return self.strategy_for(hourly=trip.hours is not None).calculate(trip)
