# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for INI configuration loading with environment fallbacks."""

import pytest

from mail_notifier.config_loader import load_config, load_settings, resolve_config_path
from mail_notifier.errors import ConfigurationError

CONFIG = """
[compose]
subject = [%s] alert
subject_out_keys = tag
message = %s\\nmessage: %s
message_out_keys = time,message
time_key = time
time_format = %Y-%m-%d

[smtp]
host = smtp.example.com
port = 587
user = notifier@example.com
password = secret
use_starttls = yes

[envelope]
from = notifier@example.com
to = ops@example.com,oncall@example.com
time_locale = Europe/Rome
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("LMN_CONFIG", "LMN_HOST", "LMN_TO", "LMN_PORT", "LMN_OUT_KEYS", "LMN_PASSWORD"):
        monkeypatch.delenv(key, raising=False)


def test_load_settings_reads_all_sections(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text(CONFIG)

    settings = load_settings(str(config_file))

    assert settings["subject"] == "[%s] alert"
    assert settings["message"] == "%s\\nmessage: %s"
    assert settings["time_format"] == "%Y-%m-%d"
    assert settings["host"] == "smtp.example.com"
    assert settings["port"] == "587"
    assert settings["from"] == "notifier@example.com"
    assert "cc" not in settings


def test_load_config_validates(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text(CONFIG)

    config = load_config(str(config_file))

    assert config.port == 587
    assert config.use_starttls is True
    assert config.message_spec.keys == ("time", "message")
    assert config.delivery.recipients == ["ops@example.com", "oncall@example.com"]
    assert config.delivery.time_locale == "Europe/Rome"


def test_environment_fills_missing_keys(tmp_path, monkeypatch):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[smtp]\nhost = smtp.example.com\n")
    monkeypatch.setenv("LMN_HOST", "ignored.example.com")
    monkeypatch.setenv("LMN_OUT_KEYS", "level,msg")
    monkeypatch.setenv("LMN_TO", "env@example.com")

    config = load_config(str(config_file))

    assert config.host == "smtp.example.com"
    assert config.out_keys == ("level", "msg")
    assert config.to == "env@example.com"


def test_environment_only(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LMN_HOST", "smtp.env")
    monkeypatch.setenv("LMN_OUT_KEYS", "msg")

    assert load_config().host == "smtp.env"


def test_config_path_from_environment(tmp_path, monkeypatch):
    config_file = tmp_path / "custom.ini"
    monkeypatch.setenv("LMN_CONFIG", str(config_file))
    assert resolve_config_path() == config_file


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "missing.ini"))


def test_invalid_config_raises_configuration_error(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[smtp]\nhost = smtp.example.com\n")

    with pytest.raises(ConfigurationError):
        load_config(str(config_file))


def test_unknown_keys_are_reported(tmp_path, caplog):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[smtp]\nhost = h\nhostname = typo\n[compose]\nout_keys = msg\n[extra]\nx = 1\n")

    load_settings(str(config_file))

    assert "Unknown key 'hostname' in [smtp] section" in caplog.text
    assert "Ignoring unknown section [extra]" in caplog.text
