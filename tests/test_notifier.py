# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the batch entry point: failure isolation, logging, metrics."""

import json
import logging
from datetime import datetime

import pytest

from mail_notifier.errors import ConfigurationError, DeliveryError
from mail_notifier.models import configure
from mail_notifier.notifier import MailNotifier

SETTINGS = {
    "host": "smtp.local",
    "port": 2525,
    "to": "ops@example.com",
    "subject": "[%s] %s",
    "subject_out_keys": "tag,id",
    "message": "event %s: %s",
    "message_out_keys": "id,msg",
}


class FlakySender:
    """Records attempts and fails the ones listed in ``fail_at`` (1-based)."""

    def __init__(self, fail_at=(), error=None):
        self.fail_at = set(fail_at)
        self.error = error
        self.attempts = []

    async def send(self, message):
        self.attempts.append(message)
        if len(self.attempts) in self.fail_at:
            if self.error is not None:
                raise self.error
            try:
                raise ConnectionRefusedError("connection refused")
            except ConnectionRefusedError as exc:
                raise DeliveryError("smtp.local", 2525, exc) from exc
        return "2.0.0 Ok"


def sample_value(notifier, name, tag):
    return notifier.metrics.registry.get_sample_value(name, {"tag": tag})


@pytest.mark.asyncio
async def test_failed_send_does_not_abort_batch(caplog):
    caplog.set_level(logging.WARNING)
    sender = FlakySender(fail_at={2})
    notifier = MailNotifier(configure(SETTINGS), sender=sender)

    entries = [(1000 + i, {"id": i, "msg": f"m{i}"}) for i in (1, 2, 3)]
    sent = await notifier.emit("app", entries)

    assert sent == 2
    assert [m.subject for m in sender.attempts] == ["[app] 1", "[app] 2", "[app] 3"]
    assert "failed to send notice to smtp.local:2525" in caplog.text
    assert "subject: [app] 2, message: event 2: m2" in caplog.text
    assert "error_class: ConnectionRefusedError" in caplog.text
    assert "error_message: connection refused" in caplog.text
    assert "in `send'" in caplog.text
    assert sample_value(notifier, "lmn_sent_total", "app") == 2.0
    assert sample_value(notifier, "lmn_errors_total", "app") == 1.0


@pytest.mark.asyncio
async def test_unexpected_error_is_isolated_too(caplog):
    caplog.set_level(logging.WARNING)
    sender = FlakySender(fail_at={1}, error=RuntimeError("boom"))
    notifier = MailNotifier(configure(SETTINGS), sender=sender)

    sent = await notifier.emit("app", [(1, {"id": 1}), (2, {"id": 2})])

    assert sent == 1
    assert len(sender.attempts) == 2
    assert "error_class: RuntimeError" in caplog.text


@pytest.mark.asyncio
async def test_composition_failure_skips_only_that_event(caplog):
    caplog.set_level(logging.WARNING)
    settings = dict(SETTINGS, message="%c", message_out_keys="msg")
    sender = FlakySender()
    notifier = MailNotifier(configure(settings), sender=sender)

    sent = await notifier.emit("app", [(1, {"id": 1, "msg": "x"}), (2, {"id": 2, "msg": "xx"}), (3, {"id": 3, "msg": "z"})])

    assert sent == 2
    assert [m.body for m in sender.attempts] == ["x", "z"]
    assert "failed to compose notice for tag app" in caplog.text
    assert sample_value(notifier, "lmn_compose_errors_total", "app") == 1.0


@pytest.mark.asyncio
async def test_key_value_mode_end_to_end(smtp_factory):
    notifier = MailNotifier.from_settings(
        {"host": "smtp.local", "to": "a@x,b@x", "out_keys": "level,msg", "subject": "alert"}
    )

    sent = await notifier.emit("app", [(1000, {"level": "error", "msg": "boom"})])

    assert sent == 1
    sender, recipients, content = smtp_factory.last.sent
    assert sender == "localhost@localdomain"
    assert recipients == ["a@x", "b@x"]
    assert content.endswith(b"\n\nlevel: error\nmsg: boom\n")
    assert b"Subject: alert\n" in content


@pytest.mark.asyncio
async def test_delivery_failure_end_to_end(smtp_factory, caplog):
    caplog.set_level(logging.WARNING)
    smtp_factory.fail_on = "connect"
    smtp_factory.error = ConnectionRefusedError("refused")
    notifier = MailNotifier.from_settings({"host": "smtp.local", "out_keys": "msg"})

    sent = await notifier.emit("app", [(1, {"msg": "a"}), (2, {"msg": "b"})])

    assert sent == 0
    assert len(smtp_factory.created) == 2
    assert "error_class: ConnectionRefusedError" in caplog.text


@pytest.mark.asyncio
async def test_empty_batch():
    sender = FlakySender()
    notifier = MailNotifier(configure(SETTINGS), sender=sender)
    assert await notifier.emit("app", []) == 0
    assert sender.attempts == []


def test_from_settings_rejects_invalid_configuration():
    with pytest.raises(ConfigurationError):
        MailNotifier.from_settings({"host": "smtp.local"})


def test_format_record():
    line = MailNotifier.format_record("app.log", 1700000000, {"msg": "hello", "n": 1})

    when, tag, payload = line.rstrip("\n").split("\t")
    assert when == datetime.fromtimestamp(1700000000).strftime("%Y/%m/%d %H:%M:%S")
    assert tag == "app.log"
    assert json.loads(payload) == {"msg": "hello", "n": 1}
    assert line.endswith("\n")
