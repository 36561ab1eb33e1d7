# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for the mail notifier.

All metrics use the ``lmn_`` prefix (log-mail-notifier) and are labelled
by event tag.

Metrics exposed:
    - ``lmn_sent_total``: Counter of messages accepted by the SMTP server.
    - ``lmn_errors_total``: Counter of failed deliveries.
    - ``lmn_compose_errors_total``: Counter of events that could not be rendered.

Example:
    Writing metrics for the node exporter textfile collector::

        Path("/var/lib/node_exporter/lmn.prom").write_bytes(metrics.generate_latest())
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class MailMetrics:
    """Prometheus metrics collector for the mail notifier.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        sent: Counter tracking delivered messages.
        errors: Counter tracking failed deliveries.
        compose_errors: Counter tracking events skipped at composition.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. A private
                registry is created when omitted.
        """
        self.registry = registry or CollectorRegistry()
        self.sent = Counter(
            "lmn_sent_total",
            "Total sent notifications",
            ["tag"],
            registry=self.registry,
        )
        self.errors = Counter(
            "lmn_errors_total",
            "Total failed deliveries",
            ["tag"],
            registry=self.registry,
        )
        self.compose_errors = Counter(
            "lmn_compose_errors_total",
            "Total events that could not be composed",
            ["tag"],
            registry=self.registry,
        )

    def inc_sent(self, tag: str) -> None:
        self.sent.labels(tag=tag or "unknown").inc()

    def inc_error(self, tag: str) -> None:
        self.errors.labels(tag=tag or "unknown").inc()

    def inc_compose_error(self, tag: str) -> None:
        self.compose_errors.labels(tag=tag or "unknown").inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
