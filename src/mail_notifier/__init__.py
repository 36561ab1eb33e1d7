# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Email notifications for structured log events.

This package turns log records into plain-text emails and delivers them
over SMTP:

- Subject and body rendered from ``%s`` templates or as ``key: value`` lines
- Malformed text repaired once before giving up on a record
- One SMTP session per message, with optional STARTTLS/TLS and AUTH PLAIN
- Per-message failure isolation: a bad record or a refused send never
  aborts the rest of the batch
- Prometheus counters and a click command line

Example:
    Basic usage from a log pipeline::

        from mail_notifier import MailNotifier

        notifier = MailNotifier.from_settings({
            "host": "smtp.example.com",
            "to": "ops@example.com",
            "out_keys": "level,message",
        })
        await notifier.emit("app.error", [(1700000000, {"level": "error", "message": "boom"})])
"""

from .composer import ComposedMessage, Event, MessageComposer, TemplateSpec
from .errors import ConfigurationError, DeliveryError, EncodingError, NotifierError
from .models import NotifierConfig, configure
from .notifier import MailNotifier
from .sender import DeliveryConfig, MailSender

__version__ = "0.1.0"

__all__ = [
    "ComposedMessage",
    "ConfigurationError",
    "DeliveryConfig",
    "DeliveryError",
    "EncodingError",
    "Event",
    "MailNotifier",
    "MailSender",
    "MessageComposer",
    "NotifierConfig",
    "NotifierError",
    "TemplateSpec",
    "configure",
]
