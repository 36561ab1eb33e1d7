# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for the mail notifier.

Configuration problems are fatal and raised before any event is handled.
Encoding and delivery problems are per message: the notifier logs them and
moves on to the next message of the batch.
"""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for all mail notifier errors."""


class ConfigurationError(NotifierError, ValueError):
    """Raised when the notifier configuration is incomplete or inconsistent."""

    def __init__(self, message: str = "Invalid mail notifier configuration"):
        super().__init__(message)
        self.code = "invalid_configuration"


class EncodingError(NotifierError, ValueError):
    """Raised when a template cannot be rendered even after scrubbing its values."""

    def __init__(self, message: str, values: tuple[str, ...] = ()):
        super().__init__(message)
        self.values = values
        self.code = "invalid_encoding"


class DeliveryError(NotifierError):
    """Raised when a message cannot be handed over to the SMTP server.

    Attributes:
        host: SMTP server the session was opened against.
        port: SMTP server port.
        cause: The underlying transport or protocol exception.
    """

    def __init__(self, host: str, port: int, cause: BaseException):
        super().__init__(f"Delivery to {host}:{port} failed: {cause}")
        self.host = host
        self.port = port
        self.cause = cause
        self.code = "delivery_failed"
