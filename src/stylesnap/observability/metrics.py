"""
Defines and manages Prometheus metrics for the extractor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from stylesnap.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (test collection, reloads) must not
# raise duplicate registration errors.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race; fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Gauge = _duplicate_safe_factory(_OrigGauge)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "extractions_total": Counter(
            "stylesnap_extractions_total",
            "Total number of finished extractions by outcome",
            ["outcome"],
        ),
        "extraction_duration_seconds": Histogram(
            "stylesnap_extraction_duration_seconds",
            "Wall-clock duration of an extraction",
            ["outcome"],
            buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, 180.0],
        ),
        "active_extractions": Gauge(
            "stylesnap_active_extractions",
            "Number of extractions currently tracked by the ledger",
        ),
        "navigation_attempts": Counter(
            "stylesnap_navigation_attempts_total",
            "Navigation attempts by readiness strategy and result",
            ["strategy", "result"],
        ),
        "page_leases": Counter(
            "stylesnap_page_leases_total",
            "Pages leased and returned by the orchestrator",
            ["event"],
        ),
        "login_submissions": Counter(
            "stylesnap_login_submissions_total",
            "Login forms submitted, by the strategy that succeeded",
            ["strategy"],
        ),
        "elements_extracted": Histogram(
            "stylesnap_elements_extracted",
            "Number of style elements in an assembled snapshot",
            buckets=[0, 10, 50, 100, 250, 500, 1000, 1500],
        ),
        "screenshot_failures": Counter(
            "stylesnap_screenshot_failures_total",
            "Screenshots that could not be captured after all attempts",
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def start_metrics_server(config: MonitoringConfig) -> bool:
    """Start the Prometheus exporter if a port is configured."""
    if not config.prometheus_port:
        return False
    start_http_server(config.prometheus_port)
    logger.info("Prometheus metrics server started", port=config.prometheus_port)
    return True
