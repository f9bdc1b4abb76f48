"""HTTP API exposing lookup, match and environment upload."""

import json
import logging
import threading
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from aas_lookup.domain.errors import InvalidRequestError, MatchTimeoutError, UpstreamWriteError
from aas_lookup.observability.metrics import METRICS
from aas_lookup.service import LookupService

logger = logging.getLogger(__name__)

LOOKUP_PATH = "/AASLookup/lookup"
MATCH_PATH = "/AASSubmodelMatch/match"
UPLOAD_PATH = "/AASPostService/uploadJSON"


def parse_flag(params: dict[str, list[str]], name: str, default: bool) -> bool:
    """Read a boolean query parameter; unknown spellings are a client error."""
    values = params.get(name)
    if not values:
        return default
    value = values[-1].strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise InvalidRequestError(f"Query parameter {name} must be true or false.")


def _identifier(value: Any, field: str) -> str | None:
    """Body identifiers are strings or ``{"name", "value"}`` objects."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    raise InvalidRequestError(f"{field} must be a string or a specific asset id object.")


def parse_match_body(body: Any) -> tuple[str | None, list[str], list[str]]:
    """Split a match request body into article, adapter and device identifiers.

    Raises:
        InvalidRequestError: If the body does not have the expected shape.
    """
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object.")

    def identifiers(field: str) -> list[str]:
        values = body.get(field) or []
        if not isinstance(values, list):
            raise InvalidRequestError(f"{field} must be a list.")
        return [v for v in (_identifier(value, field) for value in values) if v is not None]

    article = _identifier(body.get("articleAssetId"), "articleAssetId")
    return article, identifiers("testAdapterAssetIds"), identifiers("testDeviceAssetIds")


class ApiHandler(BaseHTTPRequestHandler):
    """Request handler dispatching to a ``LookupService``."""

    service: LookupService | None = None

    def do_GET(self) -> None:
        url = urlsplit(self.path)
        if url.path == LOOKUP_PATH:
            self._dispatch("lookup", lambda: self._lookup(parse_qs(url.query)))
        else:
            self._send_json(404, {"error": f"Unknown path {url.path}"})

    def do_POST(self) -> None:
        url = urlsplit(self.path)
        if url.path == MATCH_PATH:
            self._dispatch("match", self._match)
        elif url.path == UPLOAD_PATH:
            self._dispatch("upload", lambda: self._upload(parse_qs(url.query)))
        else:
            self._send_json(404, {"error": f"Unknown path {url.path}"})

    def _service(self) -> LookupService:
        if self.service is None:
            raise RuntimeError("ApiHandler used without a LookupService")
        return self.service

    def _lookup(self, params: dict[str, list[str]]) -> Any:
        asset_id = (params.get("assetId") or [""])[-1]
        include_submodels = parse_flag(params, "submodels", False)
        envelopes = self._service().lookup(asset_id, include_submodels)
        return [envelope.to_dict() for envelope in envelopes]

    def _match(self) -> Any:
        article, adapters, devices = parse_match_body(self._read_json())
        return self._service().match(article, adapters, devices).to_dict()

    def _upload(self, params: dict[str, list[str]]) -> Any:
        register = parse_flag(params, "register", True)
        discover = parse_flag(params, "discover", True)
        message = self._service().upload_environment(self._read_json(), register, discover)
        return {"message": message}

    def _read_json(self) -> Any:
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length > 0 else b""
        if not raw:
            raise InvalidRequestError("Request body is required.")
        try:
            return json.loads(raw)
        except ValueError as e:
            raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e

    def _dispatch(self, operation: str, handler: Callable[[], Any]) -> None:
        """Run an operation and map its exceptions to HTTP statuses."""
        try:
            result = handler()
        except InvalidRequestError as e:
            METRICS.errors_total.labels(error_type="invalid_request").inc()
            self._send_json(400, {"error": str(e)})
        except MatchTimeoutError as e:
            METRICS.errors_total.labels(error_type="match_timeout").inc()
            logger.warning("%s timed out: %s", operation, e)
            self._send_json(504, {"error": str(e)})
        except UpstreamWriteError as e:
            METRICS.errors_total.labels(error_type="upstream_write").inc()
            status = e.status_code if e.status_code and e.status_code >= 400 else 500
            self._send_json(status, {"error": str(e)})
        except Exception as e:
            METRICS.errors_total.labels(error_type="internal").inc()
            logger.exception("%s failed", operation)
            self._send_json(500, {"error": f"Internal error: {e}"})
        else:
            self._send_json(200, result)

    def _send_json(self, status: int, payload: Any) -> None:
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        """Route access logs through logging instead of stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)


class ApiServer:
    """Threaded HTTP server for the lookup API."""

    def __init__(self, service: LookupService, host: str = "0.0.0.0", port: int = 8000):
        """Initialize the API server.

        Args:
            service: Service handling the requests.
            host: Interface to bind.
            port: Port to listen on; 0 picks a free port.
        """
        self.host = host
        self.port = port
        self._service = service
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving in a background thread."""
        service = self._service

        class Handler(ApiHandler):
            pass

        Handler.service = service

        self._server = ThreadingHTTPServer((self.host, self.port), Handler)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("API server listening on %s:%d", self.host, self.port)

    def stop(self) -> None:
        """Stop the API server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
        if self._thread:
            self._thread.join(timeout=5)
