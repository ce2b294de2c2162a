"""Metrics module for the routing engine.

Counts matches and misses, times the table scan and exposes the table size
in Prometheus format.
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from routetable.core.config import MetricsConfig
from routetable.core.matched import MatchedRoute


class RoutingMetrics:
    """Routing metrics collector using Prometheus."""

    def __init__(self, config: MetricsConfig, registry: Optional[CollectorRegistry] = None):
        """Initialize the metrics collector.

        Args:
            config: Metrics configuration
            registry: Registry to register collectors with (default: global)
        """
        self.config = config
        self.registry = registry if registry is not None else REGISTRY
        prefix = config.namespace

        self.matches_total = Counter(
            f"{prefix}_matches_total",
            "Total number of requests matched to a rule",
            ["route", "target_type"],
            registry=self.registry,
        )

        self.misses_total = Counter(
            f"{prefix}_misses_total",
            "Total number of requests that matched no rule",
            ["reason"],
            registry=self.registry,
        )

        self.match_duration = Histogram(
            f"{prefix}_match_duration_seconds",
            "Time spent scanning the rule table",
            buckets=(0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05),
            registry=self.registry,
        )

        self.table_rules = Gauge(
            f"{prefix}_table_rules",
            "Number of rules in the active table",
            registry=self.registry,
        )

    def record_match(self, matched: MatchedRoute, duration_seconds: float) -> None:
        """Record a successful match.

        Args:
            matched: The matched route
            duration_seconds: Time spent matching
        """
        if not self.config.enabled:
            return

        self.matches_total.labels(
            route=matched.name or "unnamed", target_type=matched.target_type.value
        ).inc()
        self.match_duration.observe(duration_seconds)

    def record_miss(self, method_not_allowed: bool, duration_seconds: float) -> None:
        """Record a request that matched no rule.

        Args:
            method_not_allowed: Whether the path matched under other methods
            duration_seconds: Time spent matching
        """
        if not self.config.enabled:
            return

        reason = "method_not_allowed" if method_not_allowed else "not_found"
        self.misses_total.labels(reason=reason).inc()
        self.match_duration.observe(duration_seconds)

    def set_table_size(self, count: int) -> None:
        self.table_rules.set(count)

    def export_metrics(self) -> bytes:
        """Export metrics in Prometheus format."""
        return generate_latest(self.registry)
