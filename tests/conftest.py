"""Shared pytest fixtures for AAS lookup tests."""

import base64
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from aas_lookup.config import ServiceConfig
from aas_lookup.observability.events import LookupObserver

# Test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

DISCOVERY_HOST = "aas-discovery-service"
REGISTRY_HOST = "aas-registry-v3"
ENVIRONMENT_HOST = "aas-environment-v3"
REGISTRY_PREFIX = "/api/v3.0"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers.

    Note: Markers are also defined in pyproject.toml [tool.pytest.ini_options].
    This function ensures they're registered even when running pytest directly.
    """
    config.addinivalue_line(
        "markers", "integration: tests that exercise the HTTP surface against fake collaborators"
    )
    config.addinivalue_line("markers", "slow: slow-running tests")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def decode_id(encoded: str) -> str:
    """Inverse of Base64URL-without-padding identifier encoding."""
    return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode()


def encode(identifier: str) -> str:
    return base64.urlsafe_b64encode(identifier.encode()).decode().rstrip("=")


class FakeAasServices:
    """In-memory discovery, registry and environment behind an httpx.MockTransport.

    Routing follows the host names of the default ``ServiceConfig``; registry
    descriptors advertise ``localhost:8082`` so the default endpoint rewrite
    is exercised on every fetch.
    """

    def __init__(self) -> None:
        self.discovery: dict[str, list[str]] = {}
        self.descriptors: dict[str, dict[str, Any]] = {}
        self.shells: dict[str, dict[str, Any]] = {}
        self.submodels: dict[str, dict[str, Any]] = {}

        # Failure injection: request path -> status code
        self.fail_paths: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.written: dict[str, list[Any]] = {
            "discovery": [],
            "registry": [],
            "shells": [],
            "submodels": [],
        }

    # -- population -------------------------------------------------------

    def add_bundle(self, bundle: dict[str, Any]) -> None:
        """Serve an ``{"assetId", "shell", "submodels"}`` fixture bundle."""
        self.add_asset(bundle["assetId"], bundle["shell"], bundle.get("submodels", []))

    def add_asset(
        self,
        asset_key: str,
        shell: dict[str, Any],
        submodels: list[dict[str, Any]] | None = None,
        advertised: str = "http://localhost:8082",
    ) -> None:
        shell_id = shell["id"]
        self.discovery.setdefault(asset_key, []).append(shell_id)
        self.descriptors[shell_id] = {
            "id": shell_id,
            "idShort": shell.get("idShort"),
            "endpoints": [
                {
                    "interface": "AAS-3.0",
                    "protocolInformation": {"href": f"{advertised}/shells/{encode(shell_id)}"},
                }
            ],
        }
        shell = dict(shell)
        shell.setdefault(
            "submodels",
            [
                {"type": "ModelReference", "keys": [{"type": "Submodel", "value": sm["id"]}]}
                for sm in submodels or []
            ],
        )
        self.shells[shell_id] = shell
        for submodel in submodels or []:
            self.submodels[submodel["id"]] = submodel

    def fail(self, path: str, status: int) -> None:
        self.fail_paths[path] = status

    # -- transport --------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self, host: str) -> list[str]:
        return [r.url.path for r in self.requests if r.url.host == host]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail_paths:
            return httpx.Response(self.fail_paths[path], text=f"injected failure at {path}")

        host = request.url.host
        if host == DISCOVERY_HOST:
            return self._discovery(request, path)
        if host == REGISTRY_HOST and path.startswith(REGISTRY_PREFIX):
            return self._registry(request, path[len(REGISTRY_PREFIX) :])
        if host == ENVIRONMENT_HOST:
            return self._environment(request, path)
        return httpx.Response(502, text=f"unknown host {host}")

    def _discovery(self, request: httpx.Request, path: str) -> httpx.Response:
        if request.method == "GET" and path == "/lookup/shells":
            key = decode_id(request.url.params["assetIds"])
            return httpx.Response(200, json={"result": self.discovery.get(key, [])})
        if request.method == "POST" and path.startswith("/lookup/shells/"):
            shell_id = decode_id(path.rsplit("/", 1)[1])
            return self._store("discovery", (shell_id, json.loads(request.content)))
        return httpx.Response(404)

    def _registry(self, request: httpx.Request, path: str) -> httpx.Response:
        if request.method == "GET" and path.startswith("/shell-descriptors/"):
            descriptor = self.descriptors.get(decode_id(path.rsplit("/", 1)[1]))
            return httpx.Response(200, json=descriptor) if descriptor else httpx.Response(404)
        if request.method == "POST" and path == "/shell-descriptors":
            return self._store("registry", json.loads(request.content))
        return httpx.Response(404)

    def _environment(self, request: httpx.Request, path: str) -> httpx.Response:
        parts = path.strip("/").split("/")
        if request.method == "POST" and path in ("/shells", "/submodels"):
            return self._store(parts[0], json.loads(request.content))
        if request.method != "GET" or len(parts) < 2:
            return httpx.Response(404)

        identifier = decode_id(parts[1])
        if parts[0] == "shells":
            shell = self.shells.get(identifier)
            if shell is None:
                return httpx.Response(404)
            if parts[2:] == ["submodel-refs"]:
                return httpx.Response(200, json={"result": shell.get("submodels", [])})
            return httpx.Response(200, json=shell)
        if parts[0] == "submodels" and identifier in self.submodels:
            return httpx.Response(200, json=self.submodels[identifier])
        return httpx.Response(404)

    def _store(self, target: str, document: Any) -> httpx.Response:
        self.written[target].append(document)
        return httpx.Response(201, json={})


class RecordingObserver(LookupObserver):
    """Observer that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.events.append((name, args))

    def names(self, name: str) -> list[tuple[Any, ...]]:
        return [args for event, args in self.events if event == name]

    def upstream_call(self, service: str, outcome: str, detail: str = "") -> None:
        self._record("upstream_call", service, outcome)

    def fetch_completed(self, asset_id: str, result: str, duration: float) -> None:
        self._record("fetch_completed", asset_id, result)

    def malformed_payload(self, service: str, detail: str) -> None:
        self._record("malformed_payload", service)

    def discovery_ambiguous(self, asset_id: str, shell_ids: list[str]) -> None:
        self._record("discovery_ambiguous", asset_id, len(shell_ids))

    def submodel_refs_fallback(self, href: str, detail: str) -> None:
        self._record("submodel_refs_fallback", href)

    def submodel_skipped(self, submodel_id: str, reason: str, detail: str = "") -> None:
        self._record("submodel_skipped", submodel_id, reason)

    def participant_excluded(self, role: str, asset_id: str, reason: str) -> None:
        self._record("participant_excluded", role, asset_id, reason)

    def match_started(self, state: str) -> None:
        self._record("match_started", state)

    def match_completed(self, kind: str, count: int, duration: float) -> None:
        self._record("match_completed", kind, count)

    def registration_write(self, target: str, result: str, identifier: str) -> None:
        self._record("registration_write", target, result, identifier)


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return FIXTURES_DIR


@pytest.fixture
def load_fixture(fixtures_dir: Path) -> Callable[[str], Any]:
    """Load a JSON document from the fixtures directory."""

    def load(name: str) -> Any:
        with open(fixtures_dir / name) as f:
            return json.load(f)

    return load


@pytest.fixture
def fake_services() -> FakeAasServices:
    """Empty fake collaborators."""
    return FakeAasServices()


@pytest.fixture
def bench(fake_services: FakeAasServices, load_fixture: Callable[[str], Any]) -> FakeAasServices:
    """Fake collaborators serving the article, adapter and device fixtures."""
    for name in (
        "article.json",
        "article_single_housing.json",
        "adapter_compatible.json",
        "adapter_wrong_protocol.json",
        "adapter_wrong_surface.json",
        "device_compatible.json",
        "device_other_version.json",
        "device_bare.json",
        "adapter_bare.json",
    ):
        fake_services.add_bundle(load_fixture(name))
    return fake_services


@pytest.fixture
def config() -> ServiceConfig:
    """Default configuration, matching the fake collaborators' host names."""
    return ServiceConfig()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()
