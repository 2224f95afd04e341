"""
SMTP delivery.

STARTTLS on the submission port, implicit TLS on 465.  ``smtplib`` is
blocking, so ``deliver`` runs it in a worker thread.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid


@dataclass(frozen=True)
class SMTPConfig:
    host: str
    port: int = 587
    username: str = ""
    password: str = ""
    from_email: str = "noreply@ridebooking.com"
    from_name: str = "Ride Booking"
    timeout: float = 30.0

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_email))


def build_message(
    config: SMTPConfig, to: str, subject: str, html: str, text: str | None = None
) -> EmailMessage:
    message = EmailMessage()
    message["From"] = config.sender
    message["To"] = to
    message["Subject"] = subject
    message["Message-ID"] = make_msgid(domain=config.from_email.split("@")[-1])
    message.set_content(text or "This message requires an HTML capable mail client.")
    message.add_alternative(html, subtype="html")
    return message


def send_message(config: SMTPConfig, message: EmailMessage) -> str:
    """Send synchronously and return the Message-ID."""
    context = ssl.create_default_context()
    if config.port == 465:
        server = smtplib.SMTP_SSL(
            config.host, config.port, context=context, timeout=config.timeout
        )
    else:
        server = smtplib.SMTP(config.host, config.port, timeout=config.timeout)
    try:
        if config.port != 465:
            server.starttls(context=context)
        if config.username:
            server.login(config.username, config.password)
        server.send_message(message)
    finally:
        server.quit()
    return message["Message-ID"]


async def deliver(config: SMTPConfig, message: EmailMessage) -> str:
    return await asyncio.to_thread(send_message, config, message)
