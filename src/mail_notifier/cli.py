# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for log-mail-notifier.

Usage:
    mail-notifier check --config config.ini
    mail-notifier emit --tag app.error --config config.ini records.jsonl
    tail -F app.jsonl | mail-notifier emit --tag app.log --time-field ts

Each input line of ``emit`` is one JSON object; the whole input is handled
as a single batch.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
from pathlib import Path
from typing import IO, Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config_loader import load_config
from .errors import ConfigurationError
from .logger import configure_logging
from .models import NotifierConfig
from .notifier import MailNotifier

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def _load_or_exit(config_path: str | None) -> NotifierConfig:
    try:
        return load_config(config_path)
    except (ConfigurationError, FileNotFoundError) as exc:
        print_error(str(exc))
        sys.exit(1)


def read_entries(stream: IO[str], time_field: str | None = None) -> list[tuple[int, dict[str, Any]]]:
    """Parse JSON-lines records into ``(timestamp, record)`` pairs.

    Blank lines are ignored; invalid lines are reported and skipped.
    """
    entries: list[tuple[int, dict[str, Any]]] = []
    for lineno, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            print_error(f"line {lineno}: invalid JSON ({exc.msg})")
            continue
        if not isinstance(record, dict):
            print_error(f"line {lineno}: expected a JSON object")
            continue
        timestamp = int(time.time())
        if time_field and time_field in record:
            try:
                timestamp = int(float(record[time_field]))
            except (TypeError, ValueError):
                print_error(f"line {lineno}: invalid timestamp in '{time_field}', using current time")
        entries.append((timestamp, record))
    return entries


@click.group()
@click.version_option(package_name="log-mail-notifier")
@click.option(
    "--log-level",
    default=lambda: os.getenv("LMN_LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Logging level (also $LMN_LOG_LEVEL).",
)
def main(log_level: str) -> None:
    """log-mail-notifier CLI - turn log records into email notifications."""
    configure_logging(log_level)


@main.command("check")
@click.option("--config", "-c", "config_path", default=None, help="Path to config.ini.")
def check_cmd(config_path: str | None) -> None:
    """Validate the configuration and show the resolved settings."""
    config = _load_or_exit(config_path)

    table = Table(title="Mail notifier configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.model_dump(by_alias=True).items():
        if name == "password" and value:
            value = "********"
        elif isinstance(value, tuple):
            value = ", ".join(value)
        table.add_row(name, "-" if value in (None, "") else escape(str(value)))
    console.print(table)

    mode = "template" if config.message is not None else "key/value"
    recipients = len(config.delivery.recipients)
    print_success(f"Configuration valid ({mode} body, {recipients} recipient(s))")


@main.command("emit")
@click.option("--tag", "-t", required=True, help="Tag attached to every record.")
@click.option("--config", "-c", "config_path", default=None, help="Path to config.ini.")
@click.option("--time-field", default=None, help="Record field holding the epoch timestamp.")
@click.option("--dry-run", is_flag=True, help="Print composed messages instead of sending.")
@click.option("--metrics-file", type=click.Path(dir_okay=False), default=None,
              help="Write Prometheus metrics to this file after the batch.")
@click.argument("source", type=click.File("r"), default="-")
def emit_cmd(
    tag: str,
    config_path: str | None,
    time_field: str | None,
    dry_run: bool,
    metrics_file: str | None,
    source: IO[str],
) -> None:
    """Send one notification per JSON record read from SOURCE (default stdin)."""
    config = _load_or_exit(config_path)
    notifier = MailNotifier(config)
    entries = read_entries(source, time_field)
    if not entries:
        console.print("[yellow]No records to process[/yellow]")
        return

    if dry_run:
        for message in notifier.compose_batch(tag, entries):
            console.rule(f"[bold]{escape(message.subject)}")
            console.print(message.body, markup=False, highlight=False)
        return

    sent = run_async(notifier.emit(tag, entries))
    if metrics_file:
        Path(metrics_file).write_bytes(notifier.metrics.generate_latest())
    if sent == len(entries):
        print_success(f"Sent {sent} notification(s) to {config.host}:{config.port}")
    else:
        err_console.print(f"[yellow]Sent {sent} of {len(entries)} notification(s)[/yellow]")
        sys.exit(2)


if __name__ == "__main__":
    main()
