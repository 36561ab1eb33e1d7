# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Message composition: turn one log event into a subject and a body.

Two body strategies are supported:

- **Template mode**: a ``message`` template with one ``%s`` placeholder per
  entry of ``message_out_keys``. After substitution the literal two-character
  sequence ``\\n`` is turned into a real newline.
- **Key/value mode**: one ``key: value`` line per entry of ``out_keys``.

The subject is always rendered from the ``subject`` template and
``subject_out_keys``.

Values are resolved per key with a fixed rule: the configured time key
yields the formatted event timestamp, the tag key yields the event tag, any
other key yields the record field as text (missing fields render empty).

Substitution is guarded against malformed text. ``bytes`` field values are
decoded with ``surrogateescape``, so invalid sequences survive until the
rendered text is checked for UTF-8 validity. On failure every value is
scrubbed (invalid runs replaced by ``?``) and the substitution is attempted
once more.

Example:
    Composing a message from a record::

        composer = MessageComposer(
            TemplateSpec("[%s] alert", ("tag",), name="subject"),
            message=TemplateSpec("%s says %s", ("tag", "msg"), name="message"),
        )
        composed = composer.compose(Event("app.log", 1700000000, {"msg": "hello"}))
        # ComposedMessage(subject='[app.log] alert', body='app.log says hello')
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError, EncodingError
from .logger import get_logger

if TYPE_CHECKING:
    from .models import NotifierConfig

REPLACEMENT_CHAR = "?"
SCRUB_ERROR_HANDLER = "mail_notifier.scrub"

TimeFormatter = Callable[[int], str]


def _replace_invalid(exc: UnicodeError) -> tuple[str, int]:
    return REPLACEMENT_CHAR, exc.end  # type: ignore[attr-defined]


codecs.register_error(SCRUB_ERROR_HANDLER, _replace_invalid)


@dataclass(frozen=True)
class Event:
    """One log record as delivered by the host pipeline."""

    tag: str
    timestamp: int
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ComposedMessage:
    """Subject and body ready to be handed to the sender."""

    subject: str
    body: str


def placeholders_match(template: str, count: int) -> bool:
    """Tell whether ``template`` takes exactly ``count`` positional values."""
    try:
        template % (("1",) * count)
    except (TypeError, ValueError):
        return False
    return True


@dataclass(frozen=True)
class TemplateSpec:
    """A ``%s`` template together with the ordered keys feeding it.

    Raises:
        ConfigurationError: If the number of placeholders differs from the
            number of keys.
    """

    template: str
    keys: tuple[str, ...] = ()
    name: str = "template"

    def __post_init__(self) -> None:
        if not placeholders_match(self.template, len(self.keys)):
            raise ConfigurationError(
                f"string specifier '%s' of {self.name} and {self.name}_out_keys specification mismatch"
            )


def build_time_formatter(time_format: str | None = None, localtime: bool = True) -> TimeFormatter:
    """Build the timestamp renderer used for the time key.

    Without a format the timestamp is rendered as its decimal string.
    """
    if not time_format:
        return str
    tz = None if localtime else timezone.utc

    def _format(timestamp: int) -> str:
        return datetime.fromtimestamp(timestamp, tz).strftime(time_format)

    return _format


def to_text(value: Any) -> str:
    """Convert a record value to text; ``None`` renders empty."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return str(value)


def scrub(value: str) -> str:
    """Replace every run of text that is not valid UTF-8 with ``?``."""
    return value.encode("utf-8", SCRUB_ERROR_HANDLER).decode("utf-8")


def resolve_value(
    key: str,
    event: Event,
    time_key: str | None,
    tag_key: str | None,
    time_formatter: TimeFormatter,
) -> str:
    """Resolve the text for one key: time key, then tag key, then record field."""
    if time_key is not None and key == time_key:
        return time_formatter(event.timestamp)
    if tag_key is not None and key == tag_key:
        return event.tag
    return to_text(event.fields.get(key))


def unescape_newlines(text: str) -> str:
    return text.replace("\\n", "\n")


def substitute(
    template: str,
    values: Sequence[str],
    postprocess: Callable[[str], str] | None = None,
    logger: logging.Logger | None = None,
) -> str:
    """Fill ``template`` positionally, repairing malformed values at most once.

    Args:
        template: Template with one ``%s`` per value.
        values: Resolved values, in key order.
        postprocess: Optional transformation applied to the rendered text.
        logger: Logger receiving the repair diagnostic.

    Returns:
        The rendered text, guaranteed to be encodable as UTF-8.

    Raises:
        EncodingError: If the text is still malformed after scrubbing.
    """
    logger = logger or get_logger("MessageComposer")
    current = tuple(values)
    attempts_left = 2
    while True:
        attempts_left -= 1
        try:
            rendered = template % current
            if postprocess is not None:
                rendered = postprocess(rendered)
            rendered.encode("utf-8")
            return rendered
        except UnicodeError as exc:
            if not attempts_left:
                raise EncodingError(f"Cannot render template {scrub(template)!r}: {exc}", current) from exc
            current = tuple(scrub(value) for value in current)
            logger.info("mail_notifier: invalid byte sequence is replaced in %s", ", ".join(current))


class MessageComposer:
    """Build ``ComposedMessage`` instances from events.

    Attributes:
        subject: Subject template and its keys.
        message: Body template and its keys, or None for key/value mode.
        out_keys: Keys rendered in key/value mode.
        time_key: Key that resolves to the formatted event timestamp.
        tag_key: Key that resolves to the event tag.
        time_formatter: Renderer for timestamps, built once.
    """

    def __init__(
        self,
        subject: TemplateSpec,
        *,
        message: TemplateSpec | None = None,
        out_keys: Sequence[str] = (),
        time_key: str | None = None,
        time_format: str | None = None,
        localtime: bool = True,
        tag_key: str | None = "tag",
        logger: logging.Logger | None = None,
    ):
        if message is None and not out_keys:
            raise ConfigurationError("Either 'message' or 'out_keys' must be specified.")
        self.subject = subject
        self.message = message
        self.out_keys = tuple(out_keys)
        self.time_key = time_key
        self.tag_key = tag_key
        self.time_formatter = build_time_formatter(time_format if time_key else None, localtime)
        self.logger = logger or get_logger("MessageComposer")

    @classmethod
    def from_config(cls, config: NotifierConfig, logger: logging.Logger | None = None) -> MessageComposer:
        return cls(
            config.subject_spec,
            message=config.message_spec,
            out_keys=config.out_keys,
            time_key=config.time_key,
            time_format=config.time_format,
            localtime=config.localtime,
            tag_key=config.tag_key,
            logger=logger,
        )

    def resolve(self, key: str, event: Event) -> str:
        return resolve_value(key, event, self.time_key, self.tag_key, self.time_formatter)

    def _values(self, keys: Sequence[str], event: Event) -> list[str]:
        return [self.resolve(key, event) for key in keys]

    def render_key_value_body(self, event: Event) -> str:
        template = "\n".join(f"{key.replace('%', '%%')}: %s" for key in self.out_keys)
        return substitute(
            template,
            self._values(self.out_keys, event),
            logger=self.logger,
        )

    def render_template_body(self, event: Event) -> str:
        if self.message is None:
            raise ConfigurationError("No message template configured")
        return substitute(
            self.message.template,
            self._values(self.message.keys, event),
            postprocess=unescape_newlines,
            logger=self.logger,
        )

    def render_subject(self, event: Event) -> str:
        return substitute(self.subject.template, self._values(self.subject.keys, event), logger=self.logger)

    def compose(self, event: Event) -> ComposedMessage:
        """Render subject and body for one event.

        Template mode is used whenever a message template is configured.
        """
        if self.message is not None:
            body = self.render_template_body(event)
        else:
            body = self.render_key_value_body(event)
        return ComposedMessage(subject=self.render_subject(event), body=body)
