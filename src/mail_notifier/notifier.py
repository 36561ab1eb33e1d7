# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Batch entry point called by the host log pipeline.

``MailNotifier.emit`` receives all records of one tag, composes a message
for each of them and sends the messages one after the other. Failures are
isolated per message: an event that cannot be rendered, or a message the
SMTP server does not accept, is logged and dropped while the rest of the
batch goes on. Nothing is retried.

Example:
    Wiring the notifier from raw settings::

        notifier = MailNotifier.from_settings({
            "host": "smtp.example.com",
            "to": "ops@example.com",
            "message": "%s: %s",
            "message_out_keys": "tag,msg",
        })
        await notifier.emit("app.error", [(1700000000, {"msg": "disk full"})])
"""

from __future__ import annotations

import json
import logging
import traceback
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from .composer import ComposedMessage, Event, MessageComposer
from .errors import DeliveryError
from .logger import get_logger
from .models import NotifierConfig, configure
from .prometheus import MailMetrics
from .sender import MailSender

Entry = tuple[int, Mapping[str, Any]]


def _origin_frame(exc: BaseException) -> str:
    """Describe the frame where ``exc`` was raised."""
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return "-"
    frame = frames[-1]
    return f"{frame.filename}:{frame.lineno}:in `{frame.name}'"


class MailNotifier:
    """Compose and deliver one notification per log record.

    Attributes:
        config: Validated notifier configuration.
        composer: Builds subject and body for each event.
        sender: Delivers composed messages.
        metrics: Prometheus counters.
        logger: Logger instance for diagnostic output.
    """

    def __init__(
        self,
        config: NotifierConfig,
        *,
        composer: MessageComposer | None = None,
        sender: MailSender | None = None,
        metrics: MailMetrics | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.logger = logger or get_logger("MailNotifier")
        self.composer = composer or MessageComposer.from_config(config, logger=self.logger)
        self.sender = sender or MailSender(config.delivery, logger=self.logger)
        self.metrics = metrics or MailMetrics()

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], **kwargs: Any) -> MailNotifier:
        """Validate ``settings`` and build a notifier.

        Raises:
            ConfigurationError: If the settings are invalid.
        """
        return cls(configure(settings), **kwargs)

    @staticmethod
    def format_record(tag: str, timestamp: int, record: Mapping[str, Any]) -> str:
        """Render one record as a tab separated buffer line."""
        when = datetime.fromtimestamp(timestamp).strftime("%Y/%m/%d %H:%M:%S")
        return f"{when}\t{tag}\t{json.dumps(dict(record), default=str, ensure_ascii=False)}\n"

    def compose_batch(self, tag: str, entries: Iterable[Entry]) -> list[ComposedMessage]:
        """Compose every entry, skipping (and logging) those that fail to render."""
        messages: list[ComposedMessage] = []
        for timestamp, record in entries:
            event = Event(tag=tag, timestamp=timestamp, fields=record)
            try:
                messages.append(self.composer.compose(event))
            except Exception as exc:
                self.metrics.inc_compose_error(tag)
                self.logger.warning(
                    "mail_notifier: failed to compose notice for tag %s at %s, record: %s, "
                    "error_class: %s, error_message: %s",
                    tag,
                    timestamp,
                    dict(record),
                    type(exc).__name__,
                    exc,
                )
        return messages

    async def emit(self, tag: str, entries: Iterable[Entry]) -> int:
        """Handle one batch of records sharing ``tag``.

        Args:
            tag: Tag of the batch.
            entries: ``(timestamp, record)`` pairs in arrival order.

        Returns:
            Number of messages accepted by the SMTP server.
        """
        sent = 0
        for message in self.compose_batch(tag, entries):
            if await self._deliver(tag, message):
                sent += 1
        return sent

    async def _deliver(self, tag: str, message: ComposedMessage) -> bool:
        try:
            await self.sender.send(message)
        except Exception as exc:
            cause = exc.cause if isinstance(exc, DeliveryError) else exc
            self.metrics.inc_error(tag)
            self.logger.warning(
                "mail_notifier: failed to send notice to %s:%s, subject: %s, message: %s, "
                "error_class: %s, error_message: %s, error_backtrace: %s",
                self.config.host,
                self.config.port,
                message.subject,
                message.body,
                type(cause).__name__,
                cause,
                _origin_frame(cause),
            )
            return False
        self.metrics.inc_sent(tag)
        return True
