"""Diagnostic observer injected into fetching, matching and registration.

Business logic reports what happened through a ``LookupObserver`` instead of
logging directly, so it stays testable without capturing log output. The base
class ignores every event; ``LoggingObserver`` writes log lines and metrics.
"""

import logging

from aas_lookup.observability.metrics import METRICS

logger = logging.getLogger("aas_lookup.events")


class LookupObserver:
    """No-op observer. Subclasses override the events they care about."""

    def upstream_call(self, service: str, outcome: str, detail: str = "") -> None:
        """An outbound call to a collaborator finished."""

    def fetch_completed(self, asset_id: str, result: str, duration: float) -> None:
        """A discovery -> registry -> environment chain finished."""

    def malformed_payload(self, service: str, detail: str) -> None:
        """A collaborator answered with an unexpected JSON shape."""

    def discovery_ambiguous(self, asset_id: str, shell_ids: list[str]) -> None:
        """Discovery linked several shells to one asset; the first is used."""

    def submodel_refs_fallback(self, href: str, detail: str) -> None:
        """Submodel refs were unavailable, so the shell's own references are used."""

    def submodel_skipped(self, submodel_id: str, reason: str, detail: str = "") -> None:
        """A referenced submodel could not be inlined."""

    def participant_excluded(self, role: str, asset_id: str, reason: str) -> None:
        """A participant dropped out of a match (not found or incompatible)."""

    def match_started(self, state: str) -> None:
        """The orchestrator resolved the request state."""

    def match_completed(self, kind: str, count: int, duration: float) -> None:
        """The orchestrator assembled its outcome."""

    def registration_write(self, target: str, result: str, identifier: str) -> None:
        """A write during environment registration finished."""


class LoggingObserver(LookupObserver):
    """Observer that logs via stdlib logging and records Prometheus metrics."""

    def upstream_call(self, service: str, outcome: str, detail: str = "") -> None:
        METRICS.upstream_requests_total.labels(service=service, outcome=outcome).inc()
        if outcome == "error":
            METRICS.errors_total.labels(error_type=f"{service}_request").inc()
            logger.warning("%s request failed: %s", service, detail)
        else:
            logger.debug("%s request %s %s", service, outcome, detail)

    def fetch_completed(self, asset_id: str, result: str, duration: float) -> None:
        METRICS.fetch_total.labels(result=result).inc()
        METRICS.fetch_duration_seconds.observe(duration)
        if result == "found":
            logger.debug("Resolved AAS for asset %s in %.3fs", asset_id, duration)
        else:
            logger.info("No AAS for asset %s (%s)", asset_id, result)

    def malformed_payload(self, service: str, detail: str) -> None:
        METRICS.errors_total.labels(error_type="malformed_payload").inc()
        logger.warning("Malformed %s payload: %s", service, detail)

    def discovery_ambiguous(self, asset_id: str, shell_ids: list[str]) -> None:
        logger.debug(
            "Discovery returned %d shells for %s, using %s", len(shell_ids), asset_id, shell_ids[0]
        )

    def submodel_refs_fallback(self, href: str, detail: str) -> None:
        logger.debug("Submodel refs unavailable at %s (%s), using shell references", href, detail)

    def submodel_skipped(self, submodel_id: str, reason: str, detail: str = "") -> None:
        METRICS.submodels_skipped_total.labels(reason=reason).inc()
        if reason == "absent":
            logger.debug("Submodel %s not present in environment", submodel_id)
        else:
            logger.warning("Skipping submodel %s: %s", submodel_id, detail)

    def participant_excluded(self, role: str, asset_id: str, reason: str) -> None:
        logger.debug("Excluded %s %s: %s", role, asset_id, reason)

    def match_started(self, state: str) -> None:
        METRICS.match_requests_total.labels(state=state).inc()
        logger.info("Match request state: %s", state)

    def match_completed(self, kind: str, count: int, duration: float) -> None:
        METRICS.matches_emitted_total.labels(kind=kind).inc(count)
        METRICS.match_duration_seconds.observe(duration)
        logger.info("Match %s produced %d result(s) in %.3fs", kind, count, duration)

    def registration_write(self, target: str, result: str, identifier: str) -> None:
        METRICS.registration_writes_total.labels(target=target, result=result).inc()
        if result == "failed":
            logger.error("Writing %s %s failed", target, identifier)
        elif result == "exists":
            logger.info("%s %s already exists", target, identifier)
        else:
            logger.debug("Wrote %s %s", target, identifier)
