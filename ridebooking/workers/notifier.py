"""
Background Notification Worker
==============================

Runs every ``NOTIFICATION_INTERVAL_SECONDS`` (default 10 s).

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the delivery
  cycle at a time across multiple API processes.
* **SELECT ... FOR UPDATE SKIP LOCKED** on ``email_outbox`` keeps a slow
  cycle that outlived its lock from sending the same message twice.

Algorithm per cycle
-------------------
1. Load the SMTP configuration from the settings store.
2. Fetch PENDING outbox rows, oldest first.
3. Send each one; mark it SENT, or count the attempt and mark it FAILED
   after ``EMAIL_MAX_ATTEMPTS``.
4. Record ``EMAIL_SENT`` / ``EMAIL_FAILED`` in the audit log.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib

from ridebooking.config import settings
from ridebooking.domain.entities import utcnow
from ridebooking.domain.enums import EmailStatus
from ridebooking.infrastructure.database import async_session_factory
from ridebooking.infrastructure.locks import DistributedLock
from ridebooking.infrastructure.mailer import build_message, deliver
from ridebooking.infrastructure.redis_client import get_redis
from ridebooking.infrastructure.repositories import (
    AuditLogRepository,
    EmailOutboxRepository,
)
from ridebooking.services.settings_store import SettingsService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_notification_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification worker started (interval=%ds)",
        settings.notification_interval_seconds,
    )


async def stop_notification_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Notification worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a delivery cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_notification_cycle()
        except Exception:
            logger.exception("Unhandled error in notification cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.notification_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_notification_cycle(session_factory=None, redis=None) -> int:
    """Execute one delivery cycle.  Returns the number of e-mails sent."""
    redis = redis or await get_redis()
    session_factory = session_factory or async_session_factory
    lock = DistributedLock(redis, "notifier", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    sent = 0
    try:
        async with session_factory() as session:
            outbox = EmailOutboxRepository(session)
            audit = AuditLogRepository(session)

            pending = await outbox.get_pending_for_update()
            if not pending:
                await session.commit()
                return 0

            smtp = await SettingsService(session).smtp_config()
            if not smtp.host:
                logger.warning(
                    "SMTP host not configured; %d e-mails waiting", len(pending)
                )
                await session.commit()
                return 0

            for message in pending:
                message.attempts += 1
                try:
                    message_id = await deliver(
                        smtp,
                        build_message(
                            smtp,
                            message.to_address,
                            message.subject,
                            message.html_body,
                            message.text_body,
                        ),
                    )
                except (smtplib.SMTPException, OSError) as exc:
                    message.last_error = str(exc)
                    logger.warning(
                        "E-mail %d to %s failed (attempt %d): %s",
                        message.id, message.to_address, message.attempts, exc,
                    )
                    if message.attempts >= settings.email_max_attempts:
                        message.status = EmailStatus.FAILED
                        await audit.record(
                            "EMAIL_FAILED", "email", message.id,
                            new_values={
                                "to": message.to_address,
                                "template": message.template,
                                "error": message.last_error,
                            },
                        )
                    continue

                message.status = EmailStatus.SENT
                message.sent_at = utcnow()
                message.last_error = None
                await audit.record(
                    "EMAIL_SENT", "email", message.id,
                    new_values={
                        "to": message.to_address,
                        "template": message.template,
                        "message_id": message_id,
                    },
                )
                sent += 1

            await session.commit()
            if sent:
                logger.info("Notification cycle: %d e-mails sent", sent)
    except Exception:
        logger.exception("Error in notification cycle")
    finally:
        await lock.release()

    return sent
