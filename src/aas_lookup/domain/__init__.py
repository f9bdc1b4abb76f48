"""Domain models for AAS lookup and matching."""

from aas_lookup.domain.errors import InvalidRequestError, MatchTimeoutError, UpstreamWriteError
from aas_lookup.domain.models import (
    EMPTY_ENVELOPE,
    AasEnvelope,
    AssetIdentifier,
    MatchOutcome,
    PairOutcome,
    ParticipantList,
    PropertyMap,
    Role,
    TripleOutcome,
)

__all__ = [
    "EMPTY_ENVELOPE",
    "AasEnvelope",
    "AssetIdentifier",
    "InvalidRequestError",
    "MatchOutcome",
    "MatchTimeoutError",
    "PairOutcome",
    "ParticipantList",
    "PropertyMap",
    "Role",
    "TripleOutcome",
    "UpstreamWriteError",
]
