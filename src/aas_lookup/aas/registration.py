"""Upload an AAS environment and make it findable.

Stores shells and submodels in the environment service, registers a shell
descriptor per shell and links each shell's asset IDs in discovery. Unlike the
read paths, write failures are hard: the first rejected write aborts the
upload with an ``UpstreamWriteError`` carrying the collaborator's status.
"""

import copy
import logging
from collections.abc import Callable, Mapping
from functools import partial
from typing import Any, Self

import httpx

from aas_lookup.aas.clients import DiscoveryClient, EnvironmentClient, RegistryClient, encode_id
from aas_lookup.aas.descriptors import (
    AdministrativeInformation,
    Endpoint,
    LangString,
    ProtocolInformation,
    ShellDescriptor,
    SpecificAssetId,
)
from aas_lookup.aas.tree import try_get, try_get_list, try_get_str
from aas_lookup.config import RegistrationConfig, ServiceConfig
from aas_lookup.domain.errors import InvalidRequestError, UpstreamWriteError
from aas_lookup.observability.events import LookupObserver

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("assetAdministrationShells", "submodels", "conceptDescriptions")


def with_display_name(shell: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``shell`` whose empty display name is filled from its idShort."""
    result = copy.deepcopy(dict(shell))
    id_short = try_get_str(shell, "idShort")
    if id_short is None:
        return result
    if try_get_str(shell, "displayName", 0, "text") is None:
        result["displayName"] = [
            {"language": "en", "text": id_short},
            {"language": "de", "text": id_short},
        ]
    return result


def build_shell_descriptor(
    shell: Mapping[str, Any],
    advertised_url: str,
    settings: RegistrationConfig,
) -> ShellDescriptor:
    """Registry descriptor pointing at the shell's advertised environment endpoint.

    Raises:
        InvalidRequestError: If the shell has no id.
    """
    aas_id = try_get_str(shell, "id")
    if aas_id is None:
        raise InvalidRequestError("Asset Administration Shell without id cannot be registered")

    revision = try_get_str(shell, "administration", "revision")
    version = try_get_str(shell, "administration", "version")
    administration = (
        AdministrativeInformation(version=version, revision=revision)
        if revision is not None or version is not None
        else None
    )

    return ShellDescriptor(
        id=aas_id,
        id_short=try_get_str(shell, "idShort"),
        asset_kind=try_get_str(shell, "assetInformation", "assetKind"),
        global_asset_id=try_get_str(shell, "assetInformation", "globalAssetId"),
        administration=administration,
        endpoints=[
            Endpoint(
                interface=settings.interface,
                protocol_information=ProtocolInformation(
                    href=f"{advertised_url.rstrip('/')}/shells/{encode_id(aas_id)}",
                    endpoint_protocol=settings.endpoint_protocol,
                    subprotocol=settings.subprotocol,
                ),
            )
        ],
        description=[LangString(language=settings.description_language, text=settings.description)],
    )


def discovery_links(shell: Mapping[str, Any]) -> tuple[str, list[SpecificAssetId]]:
    """Shell id and the asset IDs under which discovery should find it.

    The global asset ID is always linked; the shell's own specific asset IDs
    are linked alongside it.

    Raises:
        InvalidRequestError: If the shell lacks an id or a global asset ID.
    """
    aas_id = try_get_str(shell, "id")
    global_asset_id = try_get_str(shell, "assetInformation", "globalAssetId")
    if aas_id is None or global_asset_id is None:
        raise InvalidRequestError("Global Asset ID and AAS ID are required for discovery.")

    links = [SpecificAssetId(name="globalAssetId", value=global_asset_id)]
    for entry in try_get_list(shell, "assetInformation", "specificAssetIds"):
        name = try_get_str(entry, "name")
        value = try_get_str(entry, "value")
        if name is not None and value is not None:
            links.append(SpecificAssetId(name=name, value=value))
    return aas_id, links


def upload_message(register: bool, discover: bool) -> str:
    if register and discover:
        return "JSON uploaded, registered and linked in Discovery."
    if register:
        return "JSON uploaded and registered."
    if discover:
        return "JSON uploaded and linked in Discovery."
    return "JSON uploaded."


class EnvironmentRegistrar:
    """Writes an uploaded environment to the three collaborators."""

    def __init__(
        self,
        discovery: DiscoveryClient,
        registry: RegistryClient,
        environment: EnvironmentClient,
        advertised_url: str,
        settings: RegistrationConfig | None = None,
        observer: LookupObserver | None = None,
    ):
        self._discovery = discovery
        self._registry = registry
        self._environment = environment
        self._advertised_url = advertised_url
        self._settings = settings or RegistrationConfig()
        self._observer = observer or LookupObserver()

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        observer: LookupObserver | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "EnvironmentRegistrar":
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
            advertised_url=config.environment.advertised_url,
            settings=config.registration,
            observer=observer,
        )

    def close(self) -> None:
        self._discovery.close()
        self._registry.close()
        self._environment.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def upload_environment(
        self,
        environment: Any,
        register: bool = True,
        discover: bool = True,
    ) -> str:
        """Store, register and link every shell of an AAS environment document.

        Args:
            environment: Decoded AAS environment JSON.
            register: Create shell descriptors in the registry.
            discover: Link asset IDs in discovery.

        Returns:
            Human-readable summary of what was done.

        Raises:
            InvalidRequestError: If the document is not an AAS environment.
            UpstreamWriteError: If a collaborator rejects a write.
        """
        sections = {name: try_get(environment, name) for name in REQUIRED_SECTIONS}
        if any(not isinstance(section, list) for section in sections.values()):
            raise InvalidRequestError("Invalid JSON structure.")
        shells = [s for s in sections["assetAdministrationShells"] if isinstance(s, Mapping)]
        submodels = [s for s in sections["submodels"] if isinstance(s, Mapping)]

        # Validate everything that can be validated before the first write
        descriptors = []
        if register:
            descriptors = [
                build_shell_descriptor(shell, self._advertised_url, self._settings)
                for shell in shells
            ]
        links = [discovery_links(shell) for shell in shells] if discover else []

        for shell in shells:
            payload = with_display_name(shell)
            self._write(
                "shells", str(shell.get("id")), partial(self._environment.post_shell, payload)
            )

        for index, submodel in enumerate(submodels, start=1):
            identifier = str(submodel.get("id") or f"#{index}")
            document = dict(submodel)
            self._write("submodels", identifier, partial(self._environment.post_submodel, document))

        for descriptor in descriptors:
            self._write(
                "registry",
                descriptor.id,
                partial(self._registry.register_shell_descriptor, descriptor),
            )

        for aas_id, asset_ids in links:
            self._write(
                "discovery",
                aas_id,
                partial(self._discovery.link_asset_ids, aas_id, asset_ids),
            )

        logger.info(
            "Uploaded environment: %d shell(s), %d submodel(s), register=%s, discover=%s",
            len(shells),
            len(submodels),
            register,
            discover,
        )
        return upload_message(register, discover)

    def _write(self, target: str, identifier: str, write: Callable[[], bool]) -> None:
        """Run one write, reporting it; a rejected write propagates."""
        try:
            created = write()
        except UpstreamWriteError:
            self._observer.registration_write(target, "failed", identifier)
            raise
        self._observer.registration_write(target, "created" if created else "exists", identifier)
