"""Logging utilities for the mail notifier.

The library never installs handlers; level, handlers and format are set up
with ``logging.basicConfig()`` by the entry point (see ``mail_notifier.cli``).

Example:
    Typical usage in a module::

        from mail_notifier.logger import get_logger

        logger = get_logger("MailSender")
        logger.debug("mail_notifier: session closed")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "MailNotifier") -> logging.Logger:
    """Return the standard library logger bound to ``name``.

    Args:
        name: The logger name. Defaults to "MailNotifier".
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command line usage.

    Args:
        level: Level name such as "DEBUG" or "WARNING". Unknown names fall
            back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
