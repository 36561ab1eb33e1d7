# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP delivery of composed messages.

Every message gets its own session: the client connects, optionally
negotiates STARTTLS or implicit TLS and authenticates with ``AUTH PLAIN``,
sends one envelope and closes. Nothing is pooled or reused between
messages.

TLS and authentication only apply when both ``user`` and ``password`` are
configured; otherwise the session is plain and anonymous.

Example:
    Sending one message::

        sender = MailSender(DeliveryConfig(host="smtp.example.com", to="ops@example.com"))
        response = await sender.send(ComposedMessage("Alert", "disk full"))
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from zoneinfo import ZoneInfo

import aiosmtplib

from .composer import ComposedMessage
from .errors import DeliveryError
from .logger import get_logger

DEFAULT_FROM = "localhost@localdomain"
DEFAULT_DOMAIN = "localdomain"

TRANSPORT_ERRORS = (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError, ValueError)


def split_addresses(value: str | None) -> list[str]:
    """Split a comma separated address list, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass(frozen=True)
class DeliveryConfig:
    """SMTP connection, authentication and recipient settings.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port.
        domain: Name announced in EHLO/HELO.
        user: Username for ``AUTH PLAIN``.
        password: Password for ``AUTH PLAIN``.
        from_addr: Envelope sender and ``From`` header.
        to: Comma separated ``To`` addresses.
        cc: Comma separated ``Cc`` addresses.
        bcc: Comma separated ``Bcc`` addresses.
        use_starttls: Upgrade the connection with STARTTLS before auth.
        use_tls: Use implicit TLS from the first byte.
        time_locale: IANA zone used for the ``Date`` header, local time if None.
    """

    host: str
    port: int = 25
    domain: str = DEFAULT_DOMAIN
    user: str | None = None
    password: str | None = None
    from_addr: str = DEFAULT_FROM
    to: str = ""
    cc: str = ""
    bcc: str = ""
    use_starttls: bool = False
    use_tls: bool = False
    time_locale: str | None = None

    @property
    def authenticated(self) -> bool:
        return bool(self.user and self.password)

    @property
    def recipients(self) -> list[str]:
        """Union of To, Cc and Bcc addresses, in that order."""
        return split_addresses(self.to) + split_addresses(self.cc) + split_addresses(self.bcc)


def render_date(time_locale: str | None = None, now: datetime | None = None) -> str:
    """Render an RFC 5322 date for ``now`` in ``time_locale`` (local zone if None).

    The zone is passed explicitly; no process-wide setting is touched.
    """
    moment = now or datetime.now(timezone.utc)
    zone = ZoneInfo(time_locale) if time_locale else None
    return format_datetime(moment.astimezone(zone))


def make_message_id() -> str:
    return f"<{uuid.uuid4()}@{uuid.uuid4()}>"


def build_envelope(config: DeliveryConfig, subject: str, body: str, now: datetime | None = None) -> str:
    """Build the full message text: headers, blank line, body."""
    headers = [
        f"Date: {render_date(config.time_locale, now)}",
        f"From: {config.from_addr}",
        f"To: {config.to}",
        f"Cc: {config.cc}",
        f"Bcc: {config.bcc}",
        f"Subject: {subject}",
        f"Message-Id: {make_message_id()}",
        "Mime-Version: 1.0",
        "Content-Type: text/plain; charset=utf-8",
    ]
    return "\n".join(headers) + "\n\n" + body + "\n"


class MailSender:
    """Deliver composed messages over SMTP, one session per message.

    Attributes:
        config: Delivery settings.
        logger: Logger instance for diagnostic output.
    """

    def __init__(self, config: DeliveryConfig, logger: logging.Logger | None = None):
        self.config = config
        self.logger = logger or get_logger("MailSender")

    def _create_client(self) -> aiosmtplib.SMTP:
        """Create an unconnected client.

        Opportunistic STARTTLS is disabled: encryption is only negotiated
        for authenticated sessions and only when configured.
        """
        secure = self.config.authenticated
        return aiosmtplib.SMTP(
            hostname=self.config.host,
            port=self.config.port,
            local_hostname=self.config.domain,
            use_tls=secure and self.config.use_tls,
            start_tls=secure and self.config.use_starttls,
        )

    async def send(self, message: ComposedMessage) -> str:
        """Send one message and return the server's final response text.

        Raises:
            DeliveryError: If connecting, authenticating or sending fails.
        """
        smtp = self._create_client()
        try:
            await smtp.connect()
            if self.config.authenticated:
                await smtp.ehlo()
                await smtp.auth_plain(self.config.user, self.config.password)
            content = build_envelope(self.config, message.subject, message.body)
            _refused, response = await smtp.sendmail(
                self.config.from_addr,
                self.config.recipients,
                content.encode("utf-8"),
            )
        except TRANSPORT_ERRORS as exc:
            raise DeliveryError(self.config.host, self.config.port, exc) from exc
        finally:
            await self._close(smtp)

        self.logger.debug("mail_notifier: content: %s", content.replace("\n", "\\n"))
        self.logger.debug("mail_notifier: email send response: %s", str(response).rstrip())
        return response

    async def _close(self, smtp: aiosmtplib.SMTP) -> None:
        """Close the session; failures are logged and swallowed."""
        if not smtp.is_connected:
            return
        try:
            await smtp.quit()
        except TRANSPORT_ERRORS as exc:
            self.logger.debug("mail_notifier: QUIT to %s:%s failed (%s), closing transport", self.config.host, self.config.port, exc)
            smtp.close()
