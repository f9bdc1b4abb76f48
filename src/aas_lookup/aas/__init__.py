"""AAS collaborator access: REST clients, the fetch chain and JSON tree helpers."""

from aas_lookup.aas.clients import (
    CollaboratorError,
    DiscoveryClient,
    EnvironmentClient,
    MalformedPayloadError,
    RegistryClient,
    encode_id,
)
from aas_lookup.aas.fetcher import AasFetcher, rewrite_endpoint
from aas_lookup.aas.registration import EnvironmentRegistrar

__all__ = [
    "AasFetcher",
    "CollaboratorError",
    "DiscoveryClient",
    "EnvironmentClient",
    "EnvironmentRegistrar",
    "MalformedPayloadError",
    "RegistryClient",
    "encode_id",
    "rewrite_endpoint",
]
