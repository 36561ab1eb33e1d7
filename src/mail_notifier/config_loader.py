# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for INI files with environment variable fallbacks.

Settings are grouped in three sections. Every key can also be supplied
through an ``LMN_<KEY>`` environment variable, used when the file does not
set it.

Example:
    Configuration file format (config.ini)::

        [compose]
        subject = [%s] alert
        subject_out_keys = tag
        message = %s\\nhost: %s\\nmessage: %s
        message_out_keys = time,host,message
        time_key = time
        time_format = %Y-%m-%d %H:%M:%S

        [smtp]
        host = smtp.example.com
        port = 587
        user = notifier@example.com
        password = secret
        use_starttls = true

        [envelope]
        from = notifier@example.com
        to = ops@example.com,oncall@example.com
        time_locale = Europe/Rome

    Loading it::

        config = load_config("/etc/mail-notifier/config.ini")
"""

from __future__ import annotations

import configparser
import os
from pathlib import Path
from typing import Any

from .logger import get_logger
from .models import NotifierConfig, configure

ENV_PREFIX = "LMN_"
DEFAULT_CONFIG_PATH = "config.ini"

SECTIONS: dict[str, tuple[str, ...]] = {
    "compose": (
        "out_keys",
        "message",
        "message_out_keys",
        "time_key",
        "time_format",
        "localtime",
        "tag_key",
        "subject",
        "subject_out_keys",
    ),
    "smtp": (
        "host",
        "port",
        "domain",
        "user",
        "password",
        "use_starttls",
        "use_tls",
    ),
    "envelope": (
        "from",
        "to",
        "cc",
        "bcc",
        "time_locale",
    ),
}

logger = get_logger("ConfigLoader")


def resolve_config_path(config_path: str | None = None) -> Path:
    """Return the explicit path, ``$LMN_CONFIG`` or ``config.ini``."""
    return Path(config_path or os.getenv(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_PATH)).expanduser()


def load_settings(config_path: str | None = None) -> dict[str, Any]:
    """Read raw settings from an INI file and the environment.

    Args:
        config_path: Path to the INI file. When omitted, ``$LMN_CONFIG`` or
            ``config.ini`` is tried and may be absent.

    Returns:
        Dict of the settings that were found; unset keys are left out so
        that model defaults apply.

    Raises:
        FileNotFoundError: If ``config_path`` is given and does not exist.
    """
    path = resolve_config_path(config_path)
    parser = configparser.ConfigParser(interpolation=None)
    if path.exists():
        parser.read(path)
    elif config_path:
        raise FileNotFoundError(f"Config file not found: {path}")
    else:
        logger.debug("No config file at %s, using environment only", path)

    for section in parser.sections():
        if section not in SECTIONS:
            logger.warning(f"Ignoring unknown section [{section}] in {path}")

    settings: dict[str, Any] = {}
    for section, keys in SECTIONS.items():
        for key in keys:
            if parser.has_option(section, key):
                settings[key] = parser.get(section, key)
                continue
            value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
            if value is not None:
                settings[key] = value
        if parser.has_section(section):
            for key in parser.options(section):
                if key not in keys:
                    logger.warning(f"Unknown key '{key}' in [{section}] section")
    return settings


def load_config(config_path: str | None = None) -> NotifierConfig:
    """Load and validate the notifier configuration.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        ConfigurationError: If the settings are invalid.
    """
    settings = load_settings(config_path)
    config = configure(settings)
    logger.info(f"Loaded mail notifier configuration for {config.host}:{config.port}")
    return config
