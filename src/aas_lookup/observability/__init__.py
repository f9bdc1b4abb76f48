"""Observability components: logging, metrics, health checks and the diagnostic observer."""

from aas_lookup.observability.events import LoggingObserver, LookupObserver
from aas_lookup.observability.health import HealthServer, create_health_checker
from aas_lookup.observability.logging import setup_logging
from aas_lookup.observability.metrics import METRICS, MetricsServer

__all__ = [
    "setup_logging",
    "METRICS",
    "MetricsServer",
    "HealthServer",
    "create_health_checker",
    "LookupObserver",
    "LoggingObserver",
]
