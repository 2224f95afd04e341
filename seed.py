"""
Seed script -- populates the database with a working starting point.

Run after migrations:
    python seed.py

Creates:
  - the SUPER_ADMIN account (ADMIN_EMAIL / ADMIN_PASSWORD)
  - every default setting that is not stored yet
  - the built-in e-mail templates, editable afterwards
  - 2 pricing rules ("Standard Pricing" active, "Premium" inactive)
  - 2 sample drivers
"""

import asyncio

from sqlalchemy import func, select

from ridebooking.config import settings
from ridebooking.domain.enums import UserRole
from ridebooking.infrastructure.database import async_session_factory, engine
from ridebooking.infrastructure.models import (
    DriverModel,
    PricingRuleModel,
    UserModel,
)
from ridebooking.infrastructure.repositories import (
    DriverRepository,
    EmailTemplateRepository,
    UserRepository,
)
from ridebooking.infrastructure.security import hash_password
from ridebooking.services.notifications import DEFAULT_TEMPLATES
from ridebooking.services.settings_store import SettingsService

PRICING_RULES = [
    {
        "name": "Standard Pricing",
        "description": "Default pricing for all rides",
        "base_fare": 5.0,
        "per_mile_rate": 2.5,
        "per_minute_rate": 0.3,
        "minimum_fare": 3.0,
        "peak_hour_multiplier": 1.5,
        "weekend_multiplier": 1.2,
        "is_active": True,
    },
    {
        "name": "Premium",
        "description": "Executive vehicles",
        "base_fare": 10.0,
        "per_mile_rate": 4.0,
        "per_minute_rate": 0.5,
        "minimum_fare": 15.0,
        "peak_hour_multiplier": 1.3,
        "weekend_multiplier": 1.1,
        "is_active": False,
    },
]

DRIVERS = [
    {
        "name": "Ram Thapa", "email": "ram.driver@example.com", "phone": "+9779800000001",
        "license_number": "DL-01-1234", "vehicle_model": "Toyota Corolla",
        "vehicle_plate": "BA 1 PA 1234", "vehicle_color": "White",
    },
    {
        "name": "Sita Gurung", "email": "sita.driver@example.com", "phone": "+9779800000002",
        "license_number": "DL-01-5678", "vehicle_model": "Hyundai Creta",
        "vehicle_plate": "BA 2 PA 5678", "vehicle_color": "Silver",
    },
]


async def seed():
    async with async_session_factory() as session:
        # ── Admin ─────────────────────────────────────────────────────
        users = UserRepository(session)
        if await users.get_by_email(settings.admin_email):
            print("  Admin account already exists")
        else:
            await users.create(
                UserModel(
                    name="Administrator",
                    email=settings.admin_email.lower(),
                    password_hash=hash_password(settings.admin_password),
                    role=UserRole.SUPER_ADMIN,
                )
            )
            print(f"  Created SUPER_ADMIN {settings.admin_email}")

        # ── Settings ──────────────────────────────────────────────────
        created = await SettingsService(session).initialize_defaults()
        print(f"  Created {len(created)} settings")

        # ── E-mail templates ──────────────────────────────────────────
        templates = EmailTemplateRepository(session)
        for name, template in DEFAULT_TEMPLATES.items():
            await templates.upsert(
                name,
                subject=template.subject,
                html_content=template.html,
                text_content=template.text,
                is_active=True,
            )
        print(f"  Wrote {len(DEFAULT_TEMPLATES)} e-mail templates")

        # ── Pricing rules ─────────────────────────────────────────────
        existing = await session.scalar(
            select(func.count()).select_from(PricingRuleModel)
        )
        if not existing:
            for rule in PRICING_RULES:
                session.add(PricingRuleModel(**rule))
            print(f"  Created {len(PRICING_RULES)} pricing rules")

        # ── Drivers ───────────────────────────────────────────────────
        drivers = DriverRepository(session)
        added = 0
        for d in DRIVERS:
            if not await drivers.get_by_email(d["email"]):
                await drivers.create(DriverModel(**d))
                added += 1
        print(f"  Created {added} drivers")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
