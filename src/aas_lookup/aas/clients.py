"""REST clients for the discovery, registry and environment collaborators.

All three follow the DotAAS Part 2 HTTP API. Identifiers used as path or
query segments are Base64URL encoded without padding.
"""

import base64
from typing import Any, Self

import httpx
from pydantic import ValidationError

from aas_lookup.aas.descriptors import ShellDescriptor, SpecificAssetId
from aas_lookup.aas.tree import reference_key_values, try_get_list
from aas_lookup.domain.errors import UpstreamWriteError
from aas_lookup.domain.models import AssetIdentifier
from aas_lookup.observability.events import LookupObserver

Timeout = float | None


def encode_id(identifier: str) -> str:
    """Base64URL encode an identifier for API paths (RFC 4648 §5, no padding)."""
    return base64.urlsafe_b64encode(identifier.encode()).decode().rstrip("=")


class CollaboratorError(Exception):
    """Raised when a read from a collaborator fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedPayloadError(CollaboratorError):
    """Raised when a collaborator answers with an unexpected JSON shape."""


class _CollaboratorClient:
    """Shared plumbing: one httpx client per collaborator and request scope."""

    service = "collaborator"

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        observer: LookupObserver | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the collaborator service.
            auth_token: Optional bearer token for authentication.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (tests, custom TLS).
            observer: Receives one event per outbound request.
        """
        self.base_url = base_url.rstrip("/")
        self._observer = observer or LookupObserver()

        headers: dict[str, str] = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        timeout: Timeout = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, reporting the outcome to the observer.

        Raises:
            httpx.HTTPError: On transport failures.
        """
        try:
            response = self._client.request(
                method,
                url,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                **kwargs,
            )
        except httpx.HTTPError as e:
            self._observer.upstream_call(self.service, "error", f"{method} {url}: {e}")
            raise

        if response.is_success:
            outcome = "ok"
        elif response.status_code == 404:
            outcome = "not_found"
        elif response.status_code == 409:
            outcome = "conflict"
        else:
            outcome = "error"
        self._observer.upstream_call(
            self.service, outcome, f"{method} {url} -> {response.status_code}"
        )
        return response

    def _get_json(self, url: str, timeout: Timeout = None, **kwargs: Any) -> Any:
        """GET a JSON document.

        Raises:
            CollaboratorError: On transport failures or non-2xx statuses.
            MalformedPayloadError: If the body is not JSON.
        """
        try:
            response = self._request("GET", url, timeout=timeout, **kwargs)
        except httpx.HTTPError as e:
            raise CollaboratorError(f"GET {url} failed: {e}") from e
        if not response.is_success:
            raise CollaboratorError(
                f"GET {url} returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedPayloadError(f"GET {url} returned non-JSON body: {e}") from e

    def _post_json(self, url: str, payload: Any, what: str) -> bool:
        """POST a JSON document, treating 409 Conflict as "already present".

        Returns:
            True if created, False if it already existed.

        Raises:
            UpstreamWriteError: On transport failures or any other non-2xx status.
        """
        try:
            response = self._request("POST", url, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamWriteError(f"Failed to post {what}: {e}", status_code=None) from e
        if response.status_code == 409:
            return False
        if not response.is_success:
            raise UpstreamWriteError(
                f"Failed to post {what}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return True


class DiscoveryClient(_CollaboratorClient):
    """Client for the AAS discovery service (asset ID -> shell ID links)."""

    service = "discovery"

    def lookup_shells(self, asset_id: AssetIdentifier, timeout: Timeout = None) -> list[str]:
        """Look up shell IDs linked to an asset identifier.

        Raises:
            CollaboratorError: If the lookup fails or the answer is malformed.
        """
        data = self._get_json(
            "/lookup/shells",
            timeout=timeout,
            params={"assetIds": encode_id(asset_id.query_key())},
        )
        # Paged format {"result": [...]} or a bare list
        if isinstance(data, dict):
            data = data.get("result", [])
        if not isinstance(data, list):
            raise MalformedPayloadError(f"discovery answer is not a list: {type(data).__name__}")
        return [item for item in data if isinstance(item, str) and item]

    def link_asset_ids(self, shell_id: str, asset_ids: list[SpecificAssetId]) -> bool:
        """Register specific asset IDs for a shell.

        Returns:
            True if linked, False if discovery already held the link.

        Raises:
            UpstreamWriteError: If discovery rejects the link.
        """
        payload = [asset_id.model_dump() for asset_id in asset_ids]
        return self._post_json(
            f"/lookup/shells/{encode_id(shell_id)}", payload, f"discovery link for {shell_id}"
        )


class RegistryClient(_CollaboratorClient):
    """Client for the AAS shell registry."""

    service = "registry"

    def get_shell_descriptor(
        self, shell_id: str, timeout: Timeout = None
    ) -> ShellDescriptor | None:
        """Fetch the descriptor of a shell.

        Returns:
            The descriptor, or None if the registry does not know the shell.

        Raises:
            CollaboratorError: On transport failures or unexpected statuses.
            MalformedPayloadError: If the descriptor does not validate.
        """
        try:
            data = self._get_json(f"/shell-descriptors/{encode_id(shell_id)}", timeout=timeout)
        except CollaboratorError as e:
            if e.status_code == 404:
                return None
            raise
        try:
            return ShellDescriptor.model_validate(data)
        except ValidationError as e:
            raise MalformedPayloadError(f"invalid shell descriptor for {shell_id}: {e}") from e

    def register_shell_descriptor(self, descriptor: ShellDescriptor) -> bool:
        """Register a shell descriptor.

        Returns:
            True if created, False if it was already registered.

        Raises:
            UpstreamWriteError: If the registry rejects the descriptor.
        """
        return self._post_json(
            "/shell-descriptors", descriptor.to_wire(), f"shell descriptor {descriptor.id}"
        )


class EnvironmentClient(_CollaboratorClient):
    """Client for the AAS environment (shell and submodel repository)."""

    service = "environment"

    def get_shell(self, href: str, timeout: Timeout = None) -> dict[str, Any]:
        """Fetch a shell document from its (already rewritten) endpoint.

        Raises:
            CollaboratorError: On failures or if the document is not an object.
        """
        data = self._get_json(href, timeout=timeout)
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"shell at {href} is not a JSON object")
        return data

    def get_submodel_refs(self, href: str, timeout: Timeout = None) -> list[str]:
        """Submodel IDs referenced by the shell at ``href``.

        Raises:
            CollaboratorError: If the references cannot be read.
        """
        data = self._get_json(f"{href.rstrip('/')}/submodel-refs", timeout=timeout)
        if isinstance(data, list):
            return reference_key_values(data)
        return reference_key_values(try_get_list(data, "result"))

    def get_submodel(self, submodel_id: str, timeout: Timeout = None) -> dict[str, Any] | None:
        """Fetch a submodel document.

        Returns:
            The submodel, or None if the environment does not hold it.

        Raises:
            CollaboratorError: On other failures or a non-object document.
        """
        try:
            data = self._get_json(f"/submodels/{encode_id(submodel_id)}", timeout=timeout)
        except CollaboratorError as e:
            if e.status_code == 404:
                return None
            raise
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"submodel {submodel_id} is not a JSON object")
        return data

    def post_shell(self, shell: dict[str, Any]) -> bool:
        """Store a shell. Returns False if it already exists."""
        return self._post_json("/shells", shell, f"shell {shell.get('id')}")

    def post_submodel(self, submodel: dict[str, Any]) -> bool:
        """Store a submodel. Returns False if it already exists."""
        return self._post_json("/submodels", submodel, f"submodel {submodel.get('id')}")
