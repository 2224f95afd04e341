"""Admin dashboard aggregates."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.domain.entities import utcnow
from ridebooking.domain.enums import BookingStatus, UserRole
from ridebooking.infrastructure.repositories import (
    BookingRepository,
    DriverRepository,
    UserRepository,
)

MAX_CHART_DAYS = 30


async def build_dashboard(
    session: AsyncSession, period_days: int = 30, now: Optional[datetime] = None
) -> dict:
    now = now or utcnow()
    since = now - timedelta(days=period_days)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)

    bookings = BookingRepository(session)
    drivers = DriverRepository(session)

    stats = {
        "total_bookings": await bookings.count(since=since),
        "today_bookings": await bookings.count(since=today, until=tomorrow),
        "total_revenue": round(await bookings.paid_revenue(since=since), 2),
        "today_revenue": round(
            await bookings.paid_revenue(since=today, until=tomorrow), 2
        ),
        "completed_bookings": await bookings.count(status=BookingStatus.COMPLETED),
        "pending_bookings": await bookings.count(status=BookingStatus.PENDING),
        "cancelled_bookings": await bookings.count(status=BookingStatus.CANCELLED),
        "total_customers": await UserRepository(session).count_by_roles(
            [UserRole.CUSTOMER]
        ),
        "active_drivers": await drivers.count_active(),
    }

    charts = {
        "revenue": await bookings.revenue_by_day(since, limit=MAX_CHART_DAYS),
        "status_distribution": await bookings.distribution("status", since),
        "payment_distribution": await bookings.distribution("payment_status", since),
    }

    return {
        "stats": stats,
        "charts": charts,
        "recent_bookings": await bookings.recent(since, limit=10),
        "top_locations": await bookings.top_pickup_locations(since, limit=10),
        "busy_drivers": await drivers.busiest(limit=10),
        "period": period_days,
    }
