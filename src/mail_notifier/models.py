# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic configuration model for the mail notifier.

All settings are validated once, before any event is handled. Comma
separated key lists are accepted either as strings or as sequences.
Cross-field rules (body strategy, placeholder counts, TLS exclusivity)
are checked by a model validator; ``configure()`` turns any validation
failure into a ``ConfigurationError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .composer import TemplateSpec
from .errors import ConfigurationError
from .sender import DEFAULT_DOMAIN, DEFAULT_FROM, DeliveryConfig

DEFAULT_SUBJECT = "MailNotifier notification"
DEFAULT_TAG_KEY = "tag"

KeyList = tuple[str, ...]


def split_keys(value: Any) -> KeyList:
    """Normalise a comma separated string or a sequence into a key tuple."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(item) for item in value]
    return tuple(item.strip() for item in items if item and item.strip())


class NotifierConfig(BaseModel):
    """Complete notifier configuration.

    Attributes:
        out_keys: Keys rendered as ``key: value`` lines (key/value mode).
        message: Body template (template mode).
        message_out_keys: Keys feeding the body template.
        time_key: Key resolving to the formatted event timestamp.
        time_format: strftime format for the time key.
        localtime: Render formatted timestamps in local time instead of UTC.
        tag_key: Key resolving to the event tag.
        host: SMTP server hostname.
        port: SMTP server port.
        domain: Name announced in EHLO/HELO.
        user: SMTP username.
        password: SMTP password.
        from_: Sender address (``from`` in settings).
        to: Comma separated recipients.
        cc: Comma separated carbon copy recipients.
        bcc: Comma separated blind carbon copy recipients.
        subject: Subject template.
        subject_out_keys: Keys feeding the subject template.
        use_starttls: Negotiate STARTTLS for authenticated sessions.
        use_tls: Use implicit TLS for authenticated sessions.
        time_locale: IANA zone name for the ``Date`` header.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    out_keys: Annotated[KeyList, Field(default=(), description="Keys for key/value mode")]
    message: Annotated[str | None, Field(default=None, description="Body template")]
    message_out_keys: Annotated[KeyList, Field(default=(), description="Keys for the body template")]
    time_key: Annotated[str | None, Field(default=None, description="Key resolving to the event time")]
    time_format: Annotated[str | None, Field(default=None, description="strftime format for the time key")]
    localtime: Annotated[bool, Field(default=True, description="Format times in local time")]
    tag_key: Annotated[str, Field(default=DEFAULT_TAG_KEY, description="Key resolving to the event tag")]

    host: Annotated[str, Field(min_length=1, description="SMTP server hostname")]
    port: Annotated[int, Field(default=25, ge=1, le=65535, description="SMTP server port")]
    domain: Annotated[str, Field(default=DEFAULT_DOMAIN, description="EHLO/HELO name")]
    user: Annotated[str | None, Field(default=None, description="SMTP username")]
    password: Annotated[str | None, Field(default=None, description="SMTP password")]
    use_starttls: Annotated[bool, Field(default=False, description="Negotiate STARTTLS")]
    use_tls: Annotated[bool, Field(default=False, description="Use implicit TLS")]

    from_: Annotated[str, Field(default=DEFAULT_FROM, alias="from", description="Sender address")]
    to: Annotated[str, Field(default="", description="Comma separated To addresses")]
    cc: Annotated[str, Field(default="", description="Comma separated Cc addresses")]
    bcc: Annotated[str, Field(default="", description="Comma separated Bcc addresses")]
    subject: Annotated[str, Field(default=DEFAULT_SUBJECT, description="Subject template")]
    subject_out_keys: Annotated[KeyList, Field(default=(), description="Keys for the subject template")]
    time_locale: Annotated[str | None, Field(default=None, description="Timezone for the Date header")]

    @field_validator("out_keys", "message_out_keys", "subject_out_keys", mode="before")
    @classmethod
    def parse_key_list(cls, v: Any) -> KeyList:
        return split_keys(v)

    @field_validator("to", "cc", "bcc", mode="before")
    @classmethod
    def join_address_list(cls, v: Any) -> str:
        """Accept address sequences as well as comma joined strings."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        return ",".join(str(item) for item in v)

    @field_validator("user", "password", "message", "time_key", "time_format", "time_locale")
    @classmethod
    def empty_as_none(cls, v: str | None) -> str | None:
        return v if v else None

    @field_validator("time_locale")
    @classmethod
    def known_timezone(cls, v: str | None) -> str | None:
        """Validate that time_locale names an available timezone."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone '{v}'") from exc
        return v

    @model_validator(mode="after")
    def check_consistency(self) -> NotifierConfig:
        if not self.out_keys and self.message is None:
            raise ValueError("Either 'message' or 'out_keys' must be specified.")
        # TemplateSpec raises ConfigurationError, a ValueError, on mismatch
        for template, keys, name in (
            (self.subject, self.subject_out_keys, "subject"),
            (self.message, self.message_out_keys, "message"),
        ):
            if template is not None:
                TemplateSpec(template, keys, name=name)
        if self.use_starttls and self.use_tls:
            raise ValueError("'use_starttls' and 'use_tls' are mutually exclusive")
        return self

    @property
    def subject_spec(self) -> TemplateSpec:
        return TemplateSpec(self.subject, self.subject_out_keys, name="subject")

    @property
    def message_spec(self) -> TemplateSpec | None:
        if self.message is None:
            return None
        return TemplateSpec(self.message, self.message_out_keys, name="message")

    @property
    def delivery(self) -> DeliveryConfig:
        return DeliveryConfig(
            host=self.host,
            port=self.port,
            domain=self.domain,
            user=self.user,
            password=self.password,
            from_addr=self.from_,
            to=self.to,
            cc=self.cc,
            bcc=self.bcc,
            use_starttls=self.use_starttls,
            use_tls=self.use_tls,
            time_locale=self.time_locale,
        )


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(item) for item in err.get("loc", ()))
        message = str(err.get("msg", "")).removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def configure(settings: Mapping[str, Any]) -> NotifierConfig:
    """Validate raw settings into a ``NotifierConfig``.

    Args:
        settings: Mapping of configuration keys (``from`` or ``from_``).

    Raises:
        ConfigurationError: If any setting is missing, malformed or inconsistent.
    """
    try:
        return NotifierConfig.model_validate(dict(settings))
    except ValidationError as exc:
        raise ConfigurationError(_describe(exc)) from exc
