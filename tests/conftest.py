# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: an in-memory stand-in for ``aiosmtplib.SMTP``."""

import pytest


class DummySMTP:
    def __init__(self, hostname=None, port=None, local_hostname=None, use_tls=False, start_tls=None, **kwargs):
        self.hostname = hostname
        self.port = port
        self.local_hostname = local_hostname
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.calls = []
        self.credentials = None
        self.sent = None
        self.is_connected = False
        self.fail_on = None
        self.error = None

    def _step(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise self.error

    async def connect(self):
        self._step("connect")
        self.is_connected = True

    async def ehlo(self):
        self._step("ehlo")

    async def auth_plain(self, username, password):
        self._step("auth_plain")
        self.credentials = (username, password)

    async def sendmail(self, sender, recipients, message):
        self._step("sendmail")
        self.sent = (sender, list(recipients), message)
        return {}, "2.0.0 Ok: queued as 4F1A2B\n"

    async def quit(self):
        self._step("quit")
        self.is_connected = False

    def close(self):
        self.calls.append("close")
        self.is_connected = False


class SMTPFactory:
    """Replacement for the ``aiosmtplib.SMTP`` class, recording every client."""

    def __init__(self):
        self.created = []
        self.fail_on = None
        self.error = None

    def __call__(self, **kwargs):
        smtp = DummySMTP(**kwargs)
        smtp.fail_on = self.fail_on
        smtp.error = self.error
        self.created.append(smtp)
        return smtp

    @property
    def last(self):
        return self.created[-1]


@pytest.fixture
def smtp_factory(monkeypatch):
    factory = SMTPFactory()
    monkeypatch.setattr("mail_notifier.sender.aiosmtplib.SMTP", factory)
    return factory
