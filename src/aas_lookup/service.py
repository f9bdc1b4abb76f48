"""Entry points shared by the HTTP API and the CLI.

Each call builds its own collaborator clients from the configuration and
closes them when done, so no connection state outlives a request.
"""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from aas_lookup.aas.fetcher import AasFetcher
from aas_lookup.aas.registration import EnvironmentRegistrar
from aas_lookup.config import ServiceConfig
from aas_lookup.domain.errors import InvalidRequestError
from aas_lookup.domain.models import AasEnvelope, AssetIdentifier, MatchOutcome
from aas_lookup.matching.orchestrator import MatchOrchestrator, MatchRequest
from aas_lookup.observability.events import LoggingObserver, LookupObserver

logger = logging.getLogger(__name__)


class LookupService:
    """Lookup, match and upload operations over the configured collaborators."""

    def __init__(
        self,
        config: ServiceConfig,
        observer: LookupObserver | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the service.

        Args:
            config: Service configuration.
            observer: Diagnostic observer; defaults to logging plus metrics.
            transport: Optional httpx transport handed to every client (tests).
        """
        self.config = config
        self._observer = observer if observer is not None else LoggingObserver()
        self._transport = transport

    def _fetcher(self) -> AasFetcher:
        return AasFetcher.from_config(self.config, self._observer, self._transport)

    def lookup(
        self, asset_id: str | AssetIdentifier, include_submodels: bool = False
    ) -> list[AasEnvelope]:
        """Resolve one asset identifier into at most one envelope.

        Raises:
            InvalidRequestError: If the identifier is blank.
        """
        if isinstance(asset_id, str):
            if not asset_id.strip():
                raise InvalidRequestError("assetId is required.")
            asset_id = AssetIdentifier.parse(asset_id)
        with self._fetcher() as fetcher:
            return fetcher.lookup(asset_id, include_submodels)

    def match(
        self,
        article: str | None = None,
        adapters: Sequence[str] | None = None,
        devices: Sequence[str] | None = None,
    ) -> MatchOutcome:
        """Run a compatibility match.

        Raises:
            InvalidRequestError: If the identifier combination is not matchable.
            MatchTimeoutError: If the request exceeds its deadline.
        """
        request = MatchRequest.from_raw(article, adapters, devices)
        with self._fetcher() as fetcher:
            orchestrator = MatchOrchestrator(
                fetcher,
                workers=self.config.matching.workers,
                deadline_seconds=self.config.matching.deadline_seconds,
                observer=self._observer,
            )
            return orchestrator.match(request)

    def upload_environment(
        self, environment: Any, register: bool = True, discover: bool = True
    ) -> str:
        """Store an AAS environment and optionally register and link its shells.

        Raises:
            InvalidRequestError: If the document is not an AAS environment.
            UpstreamWriteError: If a collaborator rejects a write.
        """
        registrar = EnvironmentRegistrar.from_config(self.config, self._observer, self._transport)
        with registrar:
            return registrar.upload_environment(environment, register, discover)
