"""Prometheus metrics for the AAS lookup service."""

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)


class LookupMetrics:
    """Collection of Prometheus metrics for lookup and matching."""

    def __init__(self) -> None:
        """Initialize metrics."""
        self.upstream_requests_total = Counter(
            "aas_lookup_upstream_requests_total",
            "Outbound requests to collaborator services",
            ["service", "outcome"],  # discovery/registry/environment; ok/not_found/error
        )

        self.fetch_total = Counter(
            "aas_lookup_fetch_total",
            "AAS fetch chains by result",
            ["result"],  # found, discovery_miss, no_endpoint, shell_unavailable, malformed
        )

        self.submodels_skipped_total = Counter(
            "aas_lookup_submodels_skipped_total",
            "Referenced submodels that could not be inlined",
            ["reason"],  # absent or error
        )

        self.match_requests_total = Counter(
            "aas_lookup_match_requests_total",
            "Match requests by orchestrator state",
            ["state"],
        )

        self.matches_emitted_total = Counter(
            "aas_lookup_matches_emitted_total",
            "Match results emitted",
            ["kind"],
        )

        self.registration_writes_total = Counter(
            "aas_lookup_registration_writes_total",
            "Write operations issued while registering environments",
            ["target", "result"],  # shells/submodels/registry/discovery; created/exists/failed
        )

        self.errors_total = Counter(
            "aas_lookup_errors_total",
            "Total number of errors",
            ["error_type"],
        )

        self.fetch_duration_seconds = Histogram(
            "aas_lookup_fetch_duration_seconds",
            "Duration of one discovery -> registry -> environment chain",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
        )

        self.match_duration_seconds = Histogram(
            "aas_lookup_match_duration_seconds",
            "Duration of a whole match request",
            buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
        )


# Global metrics instance
METRICS = LookupMetrics()


class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for Prometheus metrics endpoint."""

    def do_GET(self) -> None:
        """Handle GET requests."""
        if self.path == "/metrics":
            self.send_response(200)
            self.send_header("Content-Type", CONTENT_TYPE_LATEST)
            self.end_headers()
            self.wfile.write(generate_latest())
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        """Suppress request logging."""
        pass


class MetricsServer:
    """HTTP server for Prometheus metrics."""

    def __init__(self, port: int = 9090):
        """Initialize the metrics server.

        Args:
            port: Port to listen on.
        """
        self.port = port
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the metrics server in a background thread."""
        self._server = HTTPServer(("0.0.0.0", self.port), MetricsHandler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the metrics server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
