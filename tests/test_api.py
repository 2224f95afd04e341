"""
Integration tests for the REST API endpoints and booking pages.

Runs the real application against the in-memory SQLite database from
``conftest``; Redis, Stripe and the notification worker are mocked.
"""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ridebooking.config import settings
from ridebooking.domain.enums import UserRole
from ridebooking.infrastructure.models import (
    AuditLogModel,
    BookingModel,
    EmailOutboxModel,
    UserModel,
)
from ridebooking.infrastructure.payments import CheckoutSession
from ridebooking.infrastructure.security import hash_password


async def _book(client, make_booking, **overrides) -> dict:
    resp = await client.post("/api/v1/bookings", json=make_booking(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["booking"]


async def _actions(session_factory) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(select(AuditLogModel.action))
        return list(result.scalars().all())


# ── Public booking API ────────────────────────────────────────────────


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/admin/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestQuotes:
    @pytest.mark.asyncio
    async def test_per_km_quote_with_defaults(self, client):
        resp = await client.post(
            "/api/v1/quotes",
            json={
                "pickup_address": "A",
                "dropoff_address": "B",
                "distance_meters": 10_000,
                "duration_seconds": 900,
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["fare"]["strategy"] == "per_km"
        assert data["fare"]["total_fare"] == 200.0
        assert data["currency"] == "NPR"
        assert data["fare_text"] == "NPR 200.00"
        assert data["duration_text"] == "15 min"

    @pytest.mark.asyncio
    async def test_quote_from_coordinates(self, client):
        resp = await client.post(
            "/api/v1/quotes",
            json={
                "pickup_address": "KTM airport",
                "dropoff_address": "Thamel",
                "pickup_lat": 27.6966, "pickup_lng": 85.3591,
                "dropoff_lat": 27.7154, "dropoff_lng": 85.3123,
            },
        )
        assert resp.status_code == 200
        assert resp.json()["distance_meters"] > 0

    @pytest.mark.asyncio
    async def test_hourly_quote(self, client):
        resp = await client.post(
            "/api/v1/quotes",
            json={"pickup_address": "A", "dropoff_address": "A",
                  "trip_type": "HOURLY", "hours": 5},
        )
        assert resp.status_code == 200
        assert resp.json()["fare"]["total_fare"] == 375.0

    @pytest.mark.asyncio
    async def test_hourly_quote_needs_hours(self, client):
        resp = await client.post(
            "/api/v1/quotes",
            json={"pickup_address": "A", "dropoff_address": "B", "trip_type": "HOURLY"},
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_unresolvable_route(self, client):
        resp = await client.post(
            "/api/v1/quotes", json={"pickup_address": "A", "dropoff_address": "B"}
        )
        assert resp.status_code == 400
        assert "distance" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_public_pricing_settings(self, client):
        resp = await client.get("/api/v1/settings/pricing")
        assert resp.status_code == 200
        assert resp.json() == {
            "rate_per_km": 20.0, "minimum_fare": 50.0, "use_simple_pricing": True,
        }

    @pytest.mark.asyncio
    async def test_negative_duration_rejected(self, client):
        resp = await client.post(
            "/api/v1/quotes",
            json={
                "pickup_address": "A",
                "dropoff_address": "B",
                "distance_meters": 10_000,
                "duration_seconds": -60,
            },
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_public_pricing_reads_pricing_category(self, client, admin_headers):
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "rate_per_km", "value": 35, "category": "pricing",
                  "data_type": "number"},
            headers=admin_headers,
        )
        resp = await client.get("/api/v1/settings/pricing")
        assert resp.json() == {
            "rate_per_km": 35.0, "minimum_fare": 50.0, "use_simple_pricing": True,
        }

    @pytest.mark.asyncio
    async def test_public_pricing_survives_database_error(self, client):
        with patch(
            "ridebooking.api.routes.settings.SettingsService.category_values",
            new=AsyncMock(side_effect=SQLAlchemyError("down")),
        ):
            resp = await client.get("/api/v1/settings/pricing")
        assert resp.status_code == 200
        assert resp.json()["rate_per_km"] == 20.0


class TestPublicBookings:
    @pytest.mark.asyncio
    async def test_create_without_stripe_confirms(self, client, make_booking, session_factory):
        resp = await client.post("/api/v1/bookings", json=make_booking())

        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert data["checkout_url"] is None
        booking = data["booking"]
        assert booking["status"] == "CONFIRMED"
        assert booking["payment_status"] == "PENDING"
        assert booking["booking_number"].startswith("RB")
        assert booking["estimated_fare"] == data["fare"]["total_fare"]
        assert booking["distance_miles"] == 10.0

        async with session_factory() as session:
            outbox = (await session.execute(select(EmailOutboxModel))).scalars().all()
        assert [m.template for m in outbox] == ["booking_confirmation"]
        assert "BOOKING_CREATED" in await _actions(session_factory)

    @pytest.mark.asyncio
    async def test_client_fare_is_ignored(self, client, make_booking):
        resp = await client.post(
            "/api/v1/bookings", json=make_booking(estimated_fare=1.0)
        )
        assert resp.json()["booking"]["estimated_fare"] != 1.0

    @pytest.mark.asyncio
    async def test_create_with_stripe_starts_checkout(
        self, client, make_booking, monkeypatch
    ):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        checkout = AsyncMock(
            return_value=CheckoutSession(id="cs_test_1", url="https://checkout.test/1")
        )
        with patch("ridebooking.services.bookings.create_checkout_session", new=checkout):
            resp = await client.post("/api/v1/bookings", json=make_booking())

        assert resp.status_code == 201
        data = resp.json()
        assert data["checkout_url"] == "https://checkout.test/1"
        assert data["booking"]["status"] == "PENDING"
        success_url = checkout.await_args.kwargs["success_url"]
        assert "/book/success?booking=" in success_url

    @pytest.mark.asyncio
    async def test_lookup_requires_matching_email(self, client, make_booking):
        booking = await _book(client, make_booking)
        number = booking["booking_number"]

        ok = await client.get(
            f"/api/v1/bookings/{number}", params={"email": "JANE@example.com"}
        )
        wrong = await client.get(
            f"/api/v1/bookings/{number}", params={"email": "other@example.com"}
        )
        assert ok.status_code == 200
        assert ok.json()["id"] == booking["id"]
        assert wrong.status_code == 404

    @pytest.mark.asyncio
    async def test_past_pickup_rejected(self, client, make_booking):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        resp = await client.post(
            "/api/v1/bookings", json=make_booking(pickup_date=yesterday)
        )
        assert resp.status_code == 400
        assert "past" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_too_far_ahead_rejected(self, client, make_booking):
        later = (date.today() + timedelta(days=60)).isoformat()
        resp = await client.post("/api/v1/bookings", json=make_booking(pickup_date=later))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_contact_details(self, client, make_booking):
        bad_email = await client.post(
            "/api/v1/bookings", json=make_booking(email="not-an-email")
        )
        bad_phone = await client.post(
            "/api/v1/bookings", json=make_booking(phone="call me")
        )
        assert bad_email.status_code == 400
        assert bad_phone.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        resp = await client.post("/api/v1/bookings", json={"name": "Jane"})
        assert resp.status_code == 422


class TestStripeWebhook:
    def _event(self, event_type, session_id, reference=None):
        return {
            "type": event_type,
            "data": {"object": {"id": session_id, "client_reference_id": reference}},
        }

    @pytest.fixture
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    async def _pending_booking(self, client, make_booking, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        checkout = AsyncMock(
            return_value=CheckoutSession(id="cs_test_9", url="https://checkout.test/9")
        )
        with patch("ridebooking.services.bookings.create_checkout_session", new=checkout):
            return await _book(client, make_booking)

    @pytest.mark.asyncio
    async def test_secret_required(self, client):
        resp = await client.post("/api/v1/payments/stripe/webhook", content=b"{}")
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_completed_marks_paid(
        self, client, make_booking, monkeypatch, webhook_secret, session_factory
    ):
        booking = await self._pending_booking(client, make_booking, monkeypatch)
        event = self._event("checkout.session.completed", "cs_test_9")

        with patch(
            "ridebooking.api.routes.payments.parse_webhook_event", return_value=event
        ):
            resp = await client.post(
                "/api/v1/payments/stripe/webhook",
                content=b"{}",
                headers={"Stripe-Signature": "t=1,v1=x"},
            )

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        async with session_factory() as session:
            stored = await session.get(BookingModel, booking["id"])
        assert stored.payment_status.value == "PAID"
        assert stored.status.value == "CONFIRMED"

    @pytest.mark.asyncio
    async def test_expired_falls_back_to_reference(
        self, client, make_booking, monkeypatch, webhook_secret, session_factory
    ):
        booking = await self._pending_booking(client, make_booking, monkeypatch)
        event = self._event(
            "checkout.session.expired", "cs_unknown", booking["booking_number"]
        )

        with patch(
            "ridebooking.api.routes.payments.parse_webhook_event", return_value=event
        ):
            resp = await client.post("/api/v1/payments/stripe/webhook", content=b"{}")

        assert resp.status_code == 200
        async with session_factory() as session:
            stored = await session.get(BookingModel, booking["id"])
        assert stored.payment_status.value == "FAILED"

    @pytest.mark.asyncio
    async def test_unrelated_events_acknowledged(self, client, webhook_secret):
        event = {"type": "customer.created", "data": {"object": {}}}
        with patch(
            "ridebooking.api.routes.payments.parse_webhook_event", return_value=event
        ):
            resp = await client.post("/api/v1/payments/stripe/webhook", content=b"{}")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, webhook_secret):
        resp = await client.post(
            "/api/v1/payments/stripe/webhook",
            content=b'{"id": "evt"}',
            headers={"Stripe-Signature": "t=1,v1=bad"},
        )
        assert resp.status_code == 400


# ── Admin auth ────────────────────────────────────────────────────────


REGISTER = {"name": "Owner", "email": "owner@example.com", "password": "secret123"}


class TestAdminAuth:
    @pytest.mark.asyncio
    async def test_first_account_is_super_admin(self, client, session_factory):
        resp = await client.post("/api/v1/admin/auth/register", json=REGISTER)

        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "SUPER_ADMIN"
        assert resp.json()["token"]
        async with session_factory() as session:
            outbox = (await session.execute(select(EmailOutboxModel))).scalars().all()
        assert outbox[0].subject == "Welcome to Ride Booking App!"

    @pytest.mark.asyncio
    async def test_later_accounts_need_super_admin(self, client):
        first = await client.post("/api/v1/admin/auth/register", json=REGISTER)
        token = first.json()["token"]
        staff = {"name": "Staff", "email": "staff2@example.com", "password": "secret123"}

        anonymous = await client.post("/api/v1/admin/auth/register", json=staff)
        assert anonymous.status_code == 401

        created = await client.post(
            "/api/v1/admin/auth/register",
            json=staff,
            headers={"Authorization": f"Bearer {token}"},
        )
        assert created.status_code == 201
        assert created.json()["user"]["role"] == "ADMIN"

        by_admin = await client.post(
            "/api/v1/admin/auth/register",
            json={**staff, "email": "third@example.com"},
            headers={"Authorization": f"Bearer {created.json()['token']}"},
        )
        assert by_admin.status_code == 403

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/admin/auth/register",
            json={**REGISTER, "email": "ROOT@example.com"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_login(self, client, super_admin):
        ok = await client.post(
            "/api/v1/admin/auth/login",
            json={"email": "root@example.com", "password": "secret123"},
        )
        bad = await client.post(
            "/api/v1/admin/auth/login",
            json={"email": "root@example.com", "password": "nope"},
        )
        empty = await client.post("/api/v1/admin/auth/login", json={})

        assert ok.status_code == 200
        assert ok.json()["user"]["email"] == "root@example.com"
        assert bad.status_code == 401
        assert bad.json()["detail"] == "Invalid email or password"
        assert empty.status_code == 400

    @pytest.mark.asyncio
    async def test_customer_cannot_log_in(self, client, session_factory):
        async with session_factory() as session:
            session.add(
                UserModel(
                    name="Customer",
                    email="customer@example.com",
                    password_hash=hash_password("secret123"),
                    role=UserRole.CUSTOMER,
                )
            )
            await session.commit()

        resp = await client.post(
            "/api/v1/admin/auth/login",
            json={"email": "customer@example.com", "password": "secret123"},
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_me_and_password_change(self, client, admin_headers):
        assert (await client.get("/api/v1/admin/auth/me")).status_code == 401
        bogus = {"Authorization": "Bearer nope"}
        assert (await client.get("/api/v1/admin/auth/me", headers=bogus)).status_code == 401

        me = await client.get("/api/v1/admin/auth/me", headers=admin_headers)
        assert me.json()["role"] == "SUPER_ADMIN"

        wrong = await client.put(
            "/api/v1/admin/auth/password",
            json={"current_password": "nope", "new_password": "another1"},
            headers=admin_headers,
        )
        assert wrong.status_code == 400

        changed = await client.put(
            "/api/v1/admin/auth/password",
            json={"current_password": "secret123", "new_password": "another1"},
            headers=admin_headers,
        )
        assert changed.status_code == 200
        login = await client.post(
            "/api/v1/admin/auth/login",
            json={"email": "root@example.com", "password": "another1"},
        )
        assert login.status_code == 200


# ── Admin bookings ────────────────────────────────────────────────────


class TestAdminBookings:
    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        assert (await client.get("/api/v1/admin/bookings")).status_code == 401

    @pytest.mark.asyncio
    async def test_list_and_search(self, client, admin_headers, make_booking):
        await _book(client, make_booking)
        await _book(client, make_booking, name="Bob Other", email="bob@example.com")

        all_resp = await client.get("/api/v1/admin/bookings", headers=admin_headers)
        found = await client.get(
            "/api/v1/admin/bookings", params={"search": "bob"}, headers=admin_headers
        )

        assert all_resp.json()["total"] == 2
        assert all_resp.json()["current_page"] == 1
        assert [b["customer_name"] for b in found.json()["bookings"]] == ["Bob Other"]

    @pytest.mark.asyncio
    async def test_admin_create_with_fare_override(self, client, admin_headers, make_booking):
        resp = await client.post(
            "/api/v1/admin/bookings",
            json=make_booking(estimated_fare=99.0),
            headers=admin_headers,
        )
        assert resp.status_code == 201
        booking = resp.json()["booking"]
        assert booking["estimated_fare"] == 99.0
        assert booking["status"] == "PENDING"
        assert resp.json()["fare"]["override"] == 99.0

    @pytest.mark.asyncio
    async def test_assign_driver_then_progress(
        self, client, admin_headers, make_booking, driver, session_factory
    ):
        booking = await _book(client, make_booking)
        url = f"/api/v1/admin/bookings/{booking['id']}"

        assigned = await client.patch(url, json={"driver_id": driver.id}, headers=admin_headers)
        assert assigned.status_code == 200
        assert assigned.json()["status"] == "ASSIGNED"
        assert assigned.json()["driver_id"] == driver.id

        skipped = await client.patch(url, json={"status": "COMPLETED"}, headers=admin_headers)
        assert skipped.status_code == 409

        started = await client.patch(
            url, json={"status": "IN_PROGRESS", "notes": "On the way"}, headers=admin_headers
        )
        assert started.json()["status"] == "IN_PROGRESS"
        assert started.json()["notes"] == "On the way"

        async with session_factory() as session:
            templates = (
                await session.execute(select(EmailOutboxModel.template))
            ).scalars().all()
        assert "driver_assignment" in templates
        assert "booking_status_update" in templates

    @pytest.mark.asyncio
    async def test_payment_update(self, client, admin_headers, make_booking):
        booking = await _book(client, make_booking)
        resp = await client.patch(
            f"/api/v1/admin/bookings/{booking['id']}",
            json={"payment_status": "PAID"},
            headers=admin_headers,
        )
        assert resp.json()["payment_status"] == "PAID"

    @pytest.mark.asyncio
    async def test_unknown_driver(self, client, admin_headers, make_booking):
        booking = await _book(client, make_booking)
        resp = await client.patch(
            f"/api/v1/admin/bookings/{booking['id']}",
            json={"driver_id": 999},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client, admin_headers, make_booking, session_factory):
        booking = await _book(client, make_booking)
        url = f"/api/v1/admin/bookings/{booking['id']}"

        assert (await client.delete(url, headers=admin_headers)).status_code == 200
        assert (await client.get(url, headers=admin_headers)).status_code == 404
        assert "BOOKING_DELETED" in await _actions(session_factory)


# ── Pricing rules ─────────────────────────────────────────────────────


RULE = {
    "name": "Standard Pricing",
    "base_fare": 5.0,
    "per_mile_rate": 2.5,
    "per_minute_rate": 0.3,
    "minimum_fare": 3.0,
    "peak_hour_multiplier": 1.5,
    "weekend_multiplier": 1.2,
}


class TestPricingRules:
    @pytest.mark.asyncio
    async def test_crud(self, client, admin_headers, session_factory):
        created = await client.post(
            "/api/v1/admin/pricing-rules", json=RULE, headers=admin_headers
        )
        assert created.status_code == 201
        rule_id = created.json()["id"]

        listed = await client.get("/api/v1/admin/pricing-rules", headers=admin_headers)
        assert listed.json()["total"] == 1

        active = await client.get(
            "/api/v1/admin/pricing-rules/active", headers=admin_headers
        )
        assert active.json()["id"] == rule_id

        updated = await client.patch(
            f"/api/v1/admin/pricing-rules/{rule_id}",
            json={"base_fare": 7.5, "is_active": False},
            headers=admin_headers,
        )
        assert updated.json()["base_fare"] == 7.5
        inactive = await client.get(
            "/api/v1/admin/pricing-rules/active", headers=admin_headers
        )
        assert inactive.json() is None

        deleted = await client.delete(
            f"/api/v1/admin/pricing-rules/{rule_id}", headers=admin_headers
        )
        assert deleted.status_code == 200
        assert {"PRICING_RULE_CREATED", "PRICING_RULE_UPDATED", "PRICING_RULE_DELETED"} <= set(
            await _actions(session_factory)
        )

    @pytest.mark.asyncio
    async def test_invalid_window(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/admin/pricing-rules",
            json={**RULE, "valid_from": "2026-06-01T00:00:00", "valid_to": "2026-01-01T00:00:00"},
            headers=admin_headers,
        )
        assert resp.status_code == 422

        rule = await client.post(
            "/api/v1/admin/pricing-rules",
            json={**RULE, "valid_to": "2026-01-01T00:00:00"},
            headers=admin_headers,
        )
        patched = await client.patch(
            f"/api/v1/admin/pricing-rules/{rule.json()['id']}",
            json={"valid_from": "2026-06-01T00:00:00"},
            headers=admin_headers,
        )
        assert patched.status_code == 400

    @pytest.mark.asyncio
    async def test_required_field_cannot_be_cleared(self, client, admin_headers):
        rule = await client.post(
            "/api/v1/admin/pricing-rules", json=RULE, headers=admin_headers
        )
        resp = await client.patch(
            f"/api/v1/admin/pricing-rules/{rule.json()['id']}",
            json={"base_fare": None},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_rule_drives_quotes_when_simple_pricing_off(self, client, admin_headers):
        await client.post("/api/v1/admin/pricing-rules", json=RULE, headers=admin_headers)
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "use_simple_pricing", "value": False, "data_type": "boolean"},
            headers=admin_headers,
        )

        resp = await client.post(
            "/api/v1/quotes",
            json={
                "pickup_address": "A",
                "dropoff_address": "B",
                "distance_meters": 16_093.4,
                "duration_seconds": 1_200,
                "pickup_date": "2026-10-21",
                "pickup_time": "12:00",
            },
        )
        assert resp.json()["fare"]["strategy"] == "rule"
        assert resp.json()["fare"]["total_fare"] == 36.0

    @pytest.mark.asyncio
    async def test_not_found(self, client, admin_headers):
        resp = await client.get("/api/v1/admin/pricing-rules/404", headers=admin_headers)
        assert resp.status_code == 404


# ── Settings ──────────────────────────────────────────────────────────


class TestSettingsApi:
    @pytest.mark.asyncio
    async def test_sensitive_value_is_masked(self, client, admin_headers):
        saved = await client.post(
            "/api/v1/admin/settings",
            json={"key": "stripe_secret_key", "value": "sk_live_1",
                  "category": "payments", "is_sensitive": True},
            headers=admin_headers,
        )
        assert saved.status_code == 200
        assert saved.json()["value"] == "***HIDDEN***"

        listed = await client.get(
            "/api/v1/admin/settings", params={"category": "payments"}, headers=admin_headers
        )
        assert listed.json()[0]["value"] == "***HIDDEN***"
        assert "sk_live_1" not in listed.text

    @pytest.mark.asyncio
    async def test_update_by_value_keeps_secret_masked(self, client, admin_headers):
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "stripe_secret_key", "value": "sk_live_1",
                  "category": "payments", "is_sensitive": True},
            headers=admin_headers,
        )
        rotated = await client.post(
            "/api/v1/admin/settings",
            json={"key": "stripe_secret_key", "value": "sk_live_2"},
            headers=admin_headers,
        )
        assert rotated.status_code == 200

        listed = await client.get("/api/v1/admin/settings", headers=admin_headers)
        entry = next(s for s in listed.json() if s["key"] == "stripe_secret_key")
        assert entry["value"] == "***HIDDEN***"
        assert entry["is_sensitive"] is True
        assert entry["is_encrypted"] is True
        assert "sk_live_2" not in listed.text

    @pytest.mark.asyncio
    async def test_simple_pricing_flag_without_type(self, client, admin_headers):
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "use_simple_pricing", "value": "true", "category": "pricing",
                  "data_type": "string"},
            headers=admin_headers,
        )
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "use_simple_pricing", "value": False, "category": "pricing"},
            headers=admin_headers,
        )

        public = await client.get("/api/v1/settings/pricing")
        quote = await client.post(
            "/api/v1/quotes",
            json={
                "pickup_address": "A",
                "dropoff_address": "B",
                "distance_meters": 10_000,
                "duration_seconds": 900,
            },
        )
        assert public.json()["use_simple_pricing"] is False
        assert quote.json()["fare"]["strategy"] == "tiered"

    @pytest.mark.asyncio
    async def test_number_validation(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/admin/settings",
            json={"key": "base_fare", "value": "cheap", "data_type": "number"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_bulk_skips_incomplete_entries(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/admin/settings/bulk",
            json={"settings": [
                {"key": "currency", "value": "USD", "category": "business"},
                {"key": "app_name"},
                {"value": "orphan"},
            ]},
            headers=admin_headers,
        )
        assert resp.json() == {"updated": ["currency"], "skipped": 2}

    @pytest.mark.asyncio
    async def test_initialize_and_missing(self, client, admin_headers, plain_admin_headers):
        missing = await client.get("/api/v1/admin/settings/missing", headers=admin_headers)
        assert missing.json()["configured"] is False

        forbidden = await client.post(
            "/api/v1/admin/settings/initialize", headers=plain_admin_headers
        )
        assert forbidden.status_code == 403

        first = await client.post("/api/v1/admin/settings/initialize", headers=admin_headers)
        second = await client.post("/api/v1/admin/settings/initialize", headers=admin_headers)
        assert "currency" in first.json()["created"]
        assert second.json() == {"created": []}

    @pytest.mark.asyncio
    async def test_delete(self, client, admin_headers):
        await client.post(
            "/api/v1/admin/settings", json={"key": "app_name", "value": "Rides"},
            headers=admin_headers,
        )
        ok = await client.delete("/api/v1/admin/settings/app_name", headers=admin_headers)
        gone = await client.delete("/api/v1/admin/settings/app_name", headers=admin_headers)
        assert ok.status_code == 200
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_currency_setting_flows_into_bookings(
        self, client, admin_headers, make_booking
    ):
        await client.post(
            "/api/v1/admin/settings",
            json={"key": "currency", "value": "USD", "category": "business"},
            headers=admin_headers,
        )
        booking = await _book(client, make_booking)
        assert booking["currency"] == "USD"


# ── Drivers, dashboard, audit ─────────────────────────────────────────


DRIVER = {
    "name": "Sita Gurung",
    "email": "sita@example.com",
    "phone": "+9779800000002",
    "vehicle_model": "Hyundai Creta",
    "vehicle_plate": "BA 2 PA 5678",
}


class TestDrivers:
    @pytest.mark.asyncio
    async def test_create_and_update(self, client, admin_headers):
        created = await client.post("/api/v1/admin/drivers", json=DRIVER, headers=admin_headers)
        assert created.status_code == 201
        driver_id = created.json()["id"]

        duplicate = await client.post(
            "/api/v1/admin/drivers", json={**DRIVER, "email": "SITA@example.com"},
            headers=admin_headers,
        )
        assert duplicate.status_code == 409

        updated = await client.patch(
            f"/api/v1/admin/drivers/{driver_id}",
            json={"is_active": False, "name": None},
            headers=admin_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["is_active"] is False
        assert updated.json()["name"] == "Sita Gurung"

        active = await client.get(
            "/api/v1/admin/drivers", params={"active": True}, headers=admin_headers
        )
        assert active.json() == []

    @pytest.mark.asyncio
    async def test_invalid_phone(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/admin/drivers", json={**DRIVER, "phone": "nope"}, headers=admin_headers
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_inactive_driver_cannot_be_assigned(
        self, client, admin_headers, make_booking, driver
    ):
        await client.patch(
            f"/api/v1/admin/drivers/{driver.id}", json={"is_active": False},
            headers=admin_headers,
        )
        booking = await _book(client, make_booking)
        resp = await client.patch(
            f"/api/v1/admin/bookings/{booking['id']}",
            json={"driver_id": driver.id},
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestDashboard:
    @pytest.mark.asyncio
    async def test_shape(self, client, admin_headers, make_booking, driver):
        booking = await _book(client, make_booking)
        await client.patch(
            f"/api/v1/admin/bookings/{booking['id']}",
            json={"payment_status": "PAID"},
            headers=admin_headers,
        )

        resp = await client.get("/api/v1/admin/dashboard", headers=admin_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["stats"]["total_bookings"] == 1
        assert data["stats"]["total_revenue"] == booking["estimated_fare"]
        assert data["stats"]["active_drivers"] == 1
        assert data["recent_bookings"][0]["id"] == booking["id"]
        assert data["top_locations"] == [{"pickup_address": "1 Airport Rd", "count": 1}]
        assert set(data["charts"]) == {"revenue", "status_distribution", "payment_distribution"}
        assert data["period"] == 30

    @pytest.mark.asyncio
    async def test_period_bounds(self, client, admin_headers):
        resp = await client.get(
            "/api/v1/admin/dashboard", params={"period": 0}, headers=admin_headers
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_audit_logs(self, client, admin_headers, make_booking):
        await _book(client, make_booking)
        await client.post("/api/v1/admin/drivers", json=DRIVER, headers=admin_headers)

        resp = await client.get(
            "/api/v1/admin/audit-logs",
            params={"action": "DRIVER_CREATED"},
            headers=admin_headers,
        )
        logs = resp.json()["logs"]
        assert resp.json()["total"] == 1
        assert logs[0]["resource"] == "driver"


# ── Pages ─────────────────────────────────────────────────────────────


class TestPages:
    @pytest.mark.asyncio
    async def test_booking_form(self, client):
        resp = await client.get("/book")
        assert resp.status_code == 200
        assert "Book Your Ride" in resp.text
        assert "not fully configured" in resp.text

    @pytest.mark.asyncio
    async def test_success_page_shows_booking(self, client, make_booking):
        booking = await _book(client, make_booking)
        resp = await client.get(
            "/book/success",
            params={"booking": booking["booking_number"], "email": "jane@example.com"},
        )
        assert resp.status_code == 200
        assert booking["booking_number"] in resp.text
        assert "Thank you!" in resp.text

    @pytest.mark.asyncio
    async def test_cancel_page(self, client):
        resp = await client.get("/book/cancel")
        assert resp.status_code == 200
        assert "Payment was cancelled" in resp.text
