"""Property extraction, compatibility predicates and match orchestration."""

from aas_lookup.matching.compatibility import (
    is_adapter_compatible_with_article,
    is_device_compatible_with_adapter,
)
from aas_lookup.matching.extractor import extract, extract_device_properties
from aas_lookup.matching.orchestrator import MatchOrchestrator, MatchRequest, resolve_state

__all__ = [
    "MatchOrchestrator",
    "MatchRequest",
    "extract",
    "extract_device_properties",
    "is_adapter_compatible_with_article",
    "is_device_compatible_with_adapter",
    "resolve_state",
]
