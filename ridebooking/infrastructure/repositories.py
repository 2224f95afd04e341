"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Listing queries return a ``Page``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AuditLogModel,
    BookingModel,
    DriverModel,
    EmailOutboxModel,
    EmailTemplateModel,
    PricingRuleModel,
    SettingModel,
    UserModel,
)
from ridebooking.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    EmailStatus,
    PaymentStatus,
    UserRole,
)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


async def _paginate(
    session: AsyncSession, query: Select, page: int, limit: int
) -> Page:
    total = await session.scalar(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    result = await session.execute(query.offset((page - 1) * limit).limit(limit))
    return Page(list(result.scalars().all()), total or 0, page, limit)


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_by_number(self, booking_number: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.booking_number == booking_number)
        )
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(self, key: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_by_stripe_session(self, session_id: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.stripe_session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        status: BookingStatus | None = None,
        payment_status: PaymentStatus | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Page[BookingModel]:
        query = select(BookingModel)
        if status:
            query = query.where(BookingModel.status == status)
        if payment_status:
            query = query.where(BookingModel.payment_status == payment_status)
        if start_date:
            query = query.where(BookingModel.created_at >= start_date)
        if end_date:
            query = query.where(BookingModel.created_at <= end_date)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    BookingModel.customer_name.ilike(pattern),
                    BookingModel.customer_email.ilike(pattern),
                    BookingModel.booking_number.ilike(pattern),
                    BookingModel.pickup_address.ilike(pattern),
                    BookingModel.dropoff_address.ilike(pattern),
                )
            )
        query = query.order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        return await _paginate(self.session, query, page, limit)

    async def delete(self, booking: BookingModel) -> None:
        await self.session.delete(booking)
        await self.session.flush()

    # ── Dashboard aggregates ──────────────────────────────────────

    async def count(
        self,
        *,
        status: BookingStatus | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        query = select(func.count()).select_from(BookingModel)
        if status:
            query = query.where(BookingModel.status == status)
        if since:
            query = query.where(BookingModel.created_at >= since)
        if until:
            query = query.where(BookingModel.created_at < until)
        return await self.session.scalar(query) or 0

    async def paid_revenue(
        self, *, since: datetime | None = None, until: datetime | None = None
    ) -> float:
        query = select(func.coalesce(func.sum(BookingModel.estimated_fare), 0.0)).where(
            BookingModel.payment_status == PaymentStatus.PAID
        )
        if since:
            query = query.where(BookingModel.created_at >= since)
        if until:
            query = query.where(BookingModel.created_at < until)
        return float(await self.session.scalar(query) or 0.0)

    async def revenue_by_day(self, since: datetime, limit: int = 30) -> list[dict]:
        day = func.date(BookingModel.created_at).label("date")
        result = await self.session.execute(
            select(
                day,
                func.sum(BookingModel.estimated_fare).label("revenue"),
                func.count().label("bookings"),
            )
            .where(
                BookingModel.created_at >= since,
                BookingModel.payment_status == PaymentStatus.PAID,
            )
            .group_by(day)
            .order_by(day.desc())
            .limit(limit)
        )
        return [
            {"date": str(row.date), "revenue": float(row.revenue or 0), "bookings": row.bookings}
            for row in result
        ]

    async def distribution(self, column_name: str, since: datetime) -> list[dict]:
        column = getattr(BookingModel, column_name)
        result = await self.session.execute(
            select(column, func.count())
            .where(BookingModel.created_at >= since)
            .group_by(column)
        )
        return [
            {"status": value.value if hasattr(value, "value") else value, "count": count}
            for value, count in result
        ]

    async def top_pickup_locations(self, since: datetime, limit: int = 10) -> list[dict]:
        count = func.count().label("count")
        result = await self.session.execute(
            select(BookingModel.pickup_address, count)
            .where(BookingModel.created_at >= since)
            .group_by(BookingModel.pickup_address)
            .order_by(count.desc())
            .limit(limit)
        )
        return [{"pickup_address": addr, "count": n} for addr, n in result]

    async def recent(self, since: datetime, limit: int = 10) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.created_at >= since)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class PricingRuleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rule: PricingRuleModel) -> PricingRuleModel:
        self.session.add(rule)
        await self.session.flush()
        return rule

    async def get_by_id(self, rule_id: int) -> Optional[PricingRuleModel]:
        return await self.session.get(PricingRuleModel, rule_id)

    async def get_active_candidates(self) -> list[PricingRuleModel]:
        """Active rules, newest first; the window check happens in the domain."""
        result = await self.session.execute(
            select(PricingRuleModel)
            .where(PricingRuleModel.is_active.is_(True))
            .order_by(PricingRuleModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def list(
        self, *, page: int = 1, limit: int = 10, active: bool | None = None
    ) -> Page[PricingRuleModel]:
        query = select(PricingRuleModel)
        if active is not None:
            query = query.where(PricingRuleModel.is_active.is_(active))
        query = query.order_by(
            PricingRuleModel.created_at.desc(), PricingRuleModel.id.desc()
        )
        return await _paginate(self.session, query, page, limit)

    async def delete(self, rule: PricingRuleModel) -> None:
        await self.session.delete(rule)
        await self.session.flush()


class SettingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[SettingModel]:
        result = await self.session.execute(
            select(SettingModel).where(SettingModel.key == key)
        )
        return result.scalar_one_or_none()

    async def get_many(self, keys: list[str]) -> dict[str, SettingModel]:
        result = await self.session.execute(
            select(SettingModel).where(SettingModel.key.in_(keys))
        )
        return {s.key: s for s in result.scalars().all()}

    async def list(self, category: str | None = None) -> list[SettingModel]:
        query = select(SettingModel)
        if category:
            query = query.where(SettingModel.category == category)
        query = query.order_by(SettingModel.category, SettingModel.key)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def upsert(self, key: str, **fields: Any) -> SettingModel:
        setting = await self.get(key)
        if setting is None:
            setting = SettingModel(key=key, **fields)
            self.session.add(setting)
        else:
            for name, value in fields.items():
                setattr(setting, name, value)
        await self.session.flush()
        return setting

    async def delete(self, key: str) -> bool:
        result = await self.session.execute(
            delete(SettingModel).where(SettingModel.key == key)
        )
        return bool(result.rowcount)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def count_by_roles(self, roles: list[UserRole]) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(UserModel).where(UserModel.role.in_(roles))
        )
        return result.scalar() or 0


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_by_email(self, email: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(func.lower(DriverModel.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def list(self, active: bool | None = None) -> list[DriverModel]:
        query = select(DriverModel).order_by(DriverModel.name)
        if active is not None:
            query = query.where(DriverModel.is_active.is_(active))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_active(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DriverModel)
            .where(DriverModel.is_active.is_(True))
        )
        return result.scalar() or 0

    async def busiest(self, limit: int = 10) -> list[dict]:
        """Active drivers with their count of in-flight bookings."""
        active_bookings = func.count(BookingModel.id).label("active_bookings")
        result = await self.session.execute(
            select(DriverModel.id, DriverModel.name, DriverModel.phone, active_bookings)
            .outerjoin(
                BookingModel,
                (BookingModel.driver_id == DriverModel.id)
                & BookingModel.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .where(DriverModel.is_active.is_(True))
            .group_by(DriverModel.id, DriverModel.name, DriverModel.phone)
            .order_by(active_bookings.desc(), DriverModel.name)
            .limit(limit)
        )
        return [
            {"id": i, "name": name, "phone": phone, "active_bookings": n}
            for i, name, phone, n in result
        ]


class EmailTemplateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self, name: str) -> Optional[EmailTemplateModel]:
        result = await self.session.execute(
            select(EmailTemplateModel).where(
                EmailTemplateModel.name == name,
                EmailTemplateModel.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, name: str, **fields: Any) -> EmailTemplateModel:
        result = await self.session.execute(
            select(EmailTemplateModel).where(EmailTemplateModel.name == name)
        )
        template = result.scalar_one_or_none()
        if template is None:
            template = EmailTemplateModel(name=name, **fields)
            self.session.add(template)
        else:
            for field_name, value in fields.items():
                setattr(template, field_name, value)
        await self.session.flush()
        return template


class EmailOutboxRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def enqueue(self, message: EmailOutboxModel) -> EmailOutboxModel:
        self.session.add(message)
        await self.session.flush()
        return message

    async def get_pending_for_update(self, limit: int = 50) -> list[EmailOutboxModel]:
        """SELECT ... FOR UPDATE SKIP LOCKED so concurrent cycles never double-send."""
        result = await self.session.execute(
            select(EmailOutboxModel)
            .where(EmailOutboxModel.status == EmailStatus.PENDING)
            .order_by(EmailOutboxModel.created_at, EmailOutboxModel.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())


class AuditLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        action: str,
        resource: str,
        resource_id: Any = None,
        *,
        user_id: int | None = None,
        old_values: dict | None = None,
        new_values: dict | None = None,
    ) -> AuditLogModel:
        entry = AuditLogModel(
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        action: str | None = None,
        resource: str | None = None,
    ) -> Page[AuditLogModel]:
        query = select(AuditLogModel)
        if action:
            query = query.where(AuditLogModel.action == action)
        if resource:
            query = query.where(AuditLogModel.resource == resource)
        query = query.order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc())
        return await _paginate(self.session, query, page, limit)
