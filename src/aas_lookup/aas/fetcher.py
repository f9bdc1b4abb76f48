"""Resolve an asset identifier into one aggregated AAS envelope.

The chain is discovery -> registry -> environment: discovery maps the asset
identifier to shell IDs, the registry maps the first shell ID to an endpoint,
and the environment serves the shell (and, on request, its submodels). Every
miss along the way yields ``EMPTY_ENVELOPE``; nothing here raises for a
participant that simply cannot be resolved.
"""

import time
from collections.abc import Mapping
from typing import Any, Self
from urllib.parse import urlsplit, urlunsplit

import httpx

from aas_lookup.aas.clients import (
    CollaboratorError,
    DiscoveryClient,
    EnvironmentClient,
    MalformedPayloadError,
    RegistryClient,
)
from aas_lookup.aas.tree import reference_key_values, try_get_list
from aas_lookup.config import ServiceConfig
from aas_lookup.deadline import Deadline
from aas_lookup.domain.models import EMPTY_ENVELOPE, AasEnvelope, AssetIdentifier
from aas_lookup.observability.events import LookupObserver


def rewrite_endpoint(href: str, rewrites: Mapping[str, str]) -> str:
    """Replace an advertised host:port with the internally reachable one.

    Registries hand out the addresses clients outside the deployment use
    (``localhost:8082``); inside the network the environment service has a
    different name. Hrefs whose host:port is not in ``rewrites`` pass through.
    """
    parts = urlsplit(href)
    internal = rewrites.get(parts.netloc)
    if internal is None:
        return href
    return urlunsplit(parts._replace(netloc=internal))


class AasFetcher:
    """Aggregates shell and submodel payloads from the three collaborators.

    A fetcher owns its HTTP clients and is meant to live for a single request.
    """

    def __init__(
        self,
        discovery: DiscoveryClient,
        registry: RegistryClient,
        environment: EnvironmentClient,
        endpoint_rewrites: Mapping[str, str] | None = None,
        observer: LookupObserver | None = None,
        http_timeout: float | None = None,
    ):
        """Initialize the fetcher.

        Args:
            discovery: Discovery service client.
            registry: Shell registry client.
            environment: Environment (repository) client.
            endpoint_rewrites: Advertised host:port -> internal host:port.
            observer: Receives diagnostic events.
            http_timeout: Per-call timeout in seconds. A request deadline can
                shorten it but never lengthen it. None keeps the client default.
        """
        self._discovery = discovery
        self._registry = registry
        self._environment = environment
        self._rewrites = dict(endpoint_rewrites or {})
        self._observer = observer or LookupObserver()
        self._http_timeout = http_timeout

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        observer: LookupObserver | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "AasFetcher":
        """Create a fetcher with fresh clients for all three collaborators."""
        token = config.http.auth_token.get_secret_value() if config.http.auth_token else None
        common: dict[str, Any] = {
            "auth_token": token,
            "timeout": config.http.timeout_seconds,
            "transport": transport,
            "observer": observer,
        }
        return cls(
            discovery=DiscoveryClient(config.discovery.base_url, **common),
            registry=RegistryClient(config.registry.base_url, **common),
            environment=EnvironmentClient(config.environment.base_url, **common),
            endpoint_rewrites=config.environment.endpoint_rewrites,
            observer=observer,
            http_timeout=config.http.timeout_seconds,
        )

    def close(self) -> None:
        """Close all collaborator clients."""
        self._discovery.close()
        self._registry.close()
        self._environment.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def lookup(
        self, asset_id: AssetIdentifier, include_submodels: bool = False
    ) -> list[AasEnvelope]:
        """Lookup surface: a list with the resolved envelope, or an empty list."""
        envelope = self.fetch(asset_id, include_submodels)
        return [] if envelope.is_empty else [envelope]

    def fetch(
        self,
        asset_id: AssetIdentifier,
        include_submodels: bool = False,
        deadline: Deadline | None = None,
    ) -> AasEnvelope:
        """Resolve ``asset_id`` into an envelope.

        Args:
            asset_id: Identifier as supplied by the caller (unencoded).
            include_submodels: Also fetch and inline the shell's submodels.
            deadline: Optional request deadline bounding every outbound call.

        Returns:
            The envelope, or ``EMPTY_ENVELOPE`` if any required step fails.
        """
        start = time.perf_counter()
        envelope, result = self._fetch(asset_id, include_submodels, deadline)
        self._observer.fetch_completed(str(asset_id), result, time.perf_counter() - start)
        return envelope

    def _timeout(self, deadline: Deadline | None) -> float | None:
        if deadline is None:
            return self._http_timeout
        return deadline.clamp(self._http_timeout)

    def _fetch(
        self,
        asset_id: AssetIdentifier,
        include_submodels: bool,
        deadline: Deadline | None,
    ) -> tuple[AasEnvelope, str]:
        try:
            shell_ids = self._discovery.lookup_shells(asset_id, timeout=self._timeout(deadline))
        except MalformedPayloadError as e:
            self._observer.malformed_payload("discovery", str(e))
            return EMPTY_ENVELOPE, "malformed"
        except CollaboratorError:
            return EMPTY_ENVELOPE, "discovery_error"
        if not shell_ids:
            return EMPTY_ENVELOPE, "discovery_miss"

        # First hit wins; multiple shells per asset are not disambiguated
        shell_id = shell_ids[0]
        if len(shell_ids) > 1:
            self._observer.discovery_ambiguous(str(asset_id), shell_ids)

        try:
            descriptor = self._registry.get_shell_descriptor(
                shell_id, timeout=self._timeout(deadline)
            )
        except MalformedPayloadError as e:
            self._observer.malformed_payload("registry", str(e))
            return EMPTY_ENVELOPE, "malformed"
        except CollaboratorError:
            return EMPTY_ENVELOPE, "registry_error"
        if descriptor is None:
            return EMPTY_ENVELOPE, "no_descriptor"

        href = descriptor.first_href()
        if href is None:
            return EMPTY_ENVELOPE, "no_endpoint"
        href = rewrite_endpoint(href, self._rewrites)

        try:
            shell = self._environment.get_shell(href, timeout=self._timeout(deadline))
        except MalformedPayloadError as e:
            self._observer.malformed_payload("environment", str(e))
            return EMPTY_ENVELOPE, "malformed"
        except CollaboratorError:
            return EMPTY_ENVELOPE, "shell_unavailable"
        if not shell.get("id"):
            self._observer.malformed_payload("environment", f"shell at {href} has no id")
            return EMPTY_ENVELOPE, "malformed"

        submodels: list[dict[str, Any]] = []
        if include_submodels:
            submodels = self._fetch_submodels(href, shell, deadline)
        return AasEnvelope.from_shell(shell, submodels), "found"

    def _submodel_ids(
        self, href: str, shell: Mapping[str, Any], deadline: Deadline | None
    ) -> list[str]:
        try:
            ids = self._environment.get_submodel_refs(href, timeout=self._timeout(deadline))
        except CollaboratorError as e:
            self._observer.submodel_refs_fallback(href, str(e))
            ids = reference_key_values(try_get_list(shell, "submodels"))
        return list(dict.fromkeys(ids))

    def _fetch_submodels(
        self, href: str, shell: Mapping[str, Any], deadline: Deadline | None
    ) -> list[dict[str, Any]]:
        submodels: list[dict[str, Any]] = []
        for submodel_id in self._submodel_ids(href, shell, deadline):
            try:
                submodel = self._environment.get_submodel(
                    submodel_id, timeout=self._timeout(deadline)
                )
            except CollaboratorError as e:
                self._observer.submodel_skipped(submodel_id, "error", str(e))
                continue
            if submodel is None:
                self._observer.submodel_skipped(submodel_id, "absent")
                continue
            submodels.append(submodel)
        return submodels
