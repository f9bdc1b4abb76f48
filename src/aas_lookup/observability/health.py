"""Health check endpoint for the AAS lookup service."""

import json
import threading
import time
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

import httpx


class HealthHandler(BaseHTTPRequestHandler):
    """HTTP handler for health check endpoint."""

    check_func: Callable[[], dict[str, Any]] | None = None

    def do_GET(self) -> None:
        """Handle GET requests."""
        if self.path == "/health":
            self._handle_health()
        elif self.path == "/ready":
            self._handle_ready()
        elif self.path == "/live":
            self._handle_live()
        else:
            self.send_response(404)
            self.end_headers()

    def _check(self) -> dict[str, Any]:
        return self.check_func() if self.check_func else {"status": "unknown"}

    def _handle_health(self) -> None:
        """Handle /health endpoint."""
        health = self._check()
        status_code = 200 if health.get("status") == "healthy" else 503

        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(health).encode())

    def _handle_ready(self) -> None:
        """Handle /ready endpoint (Kubernetes readiness probe)."""
        ready = self._check().get("status") == "healthy"
        self.send_response(200 if ready else 503)
        self.end_headers()

    def _handle_live(self) -> None:
        """Handle /live endpoint (Kubernetes liveness probe)."""
        self.send_response(200)
        self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        """Suppress request logging."""
        pass


class HealthServer:
    """HTTP server for health checks."""

    def __init__(
        self,
        port: int = 8080,
        check_func: Callable[[], dict[str, Any]] | None = None,
    ):
        """Initialize the health server.

        Args:
            port: Port to listen on.
            check_func: Function that returns health status dict.
        """
        self.port = port
        self._check_func = check_func
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the health server in a background thread."""
        check_func = self._check_func

        class Handler(HealthHandler):
            pass

        # staticmethod keeps the zero-argument check from being bound to the handler
        if check_func:
            Handler.check_func = staticmethod(check_func)  # type: ignore[assignment]

        self._server = HTTPServer(("0.0.0.0", self.port), Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the health server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()


def create_health_checker(
    collaborators: dict[str, str],
    timeout: float = 2.0,
    transport: httpx.BaseTransport | None = None,
) -> Callable[[], dict[str, Any]]:
    """Create a health check function probing the collaborator services.

    A collaborator counts as reachable when it answers at all; any HTTP status
    below 500 is fine since base URLs rarely serve a resource of their own.

    Args:
        collaborators: Service name -> base URL.
        timeout: Per-probe timeout in seconds.
        transport: Optional httpx transport (tests).

    Returns:
        Function that returns health status dict.
    """

    def check() -> dict[str, Any]:
        reachable: dict[str, bool] = {}
        with httpx.Client(timeout=timeout, transport=transport) as client:
            for name, url in collaborators.items():
                try:
                    reachable[name] = client.get(url).status_code < 500
                except httpx.HTTPError:
                    reachable[name] = False

        return {
            "status": "healthy" if all(reachable.values()) else "degraded",
            "timestamp": int(time.time() * 1000),
            "collaborators": reachable,
        }

    return check
