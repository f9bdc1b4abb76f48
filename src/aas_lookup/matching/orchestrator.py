"""Drive a match request from supplied identifiers to a match outcome.

Which identifiers are present decides the request state and therefore the
outcome variant:

* article + adapters + devices -> ``TripleOutcome``
* article + adapters, or article + devices -> ``ParticipantList``
* adapters + devices, no article -> ``PairOutcome``
* anything else -> ``InvalidRequestError`` before any network call

Every participant is fetched exactly once. Results follow the order in which
participants were supplied.
"""

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Literal

from aas_lookup.aas.fetcher import AasFetcher
from aas_lookup.deadline import Deadline
from aas_lookup.domain.errors import InvalidRequestError, MatchTimeoutError
from aas_lookup.domain.models import (
    AasEnvelope,
    AssetIdentifier,
    MatchOutcome,
    MatchState,
    PairMatch,
    PairOutcome,
    Participant,
    ParticipantList,
    PropertyMap,
    Role,
    TripleMatch,
    TripleOutcome,
)
from aas_lookup.matching.compatibility import (
    is_adapter_compatible_with_article,
    is_device_compatible_with_adapter,
)
from aas_lookup.matching.extractor import extract, extract_device_properties
from aas_lookup.observability.events import LookupObserver

logger = logging.getLogger(__name__)

INVALID_STATE_MESSAGES = {
    MatchState.ARTICLE_ONLY_INVALID: (
        "An article asset id needs test adapter and/or test device asset ids to match against."
    ),
    MatchState.NOTHING_PROVIDED: (
        "Provide an article asset id, or both test adapter and test device asset ids."
    ),
}


def resolve_state(has_article: bool, has_adapters: bool, has_devices: bool) -> MatchState:
    """Map the presence of each identifier group to a request state."""
    if has_article:
        if has_adapters and has_devices:
            return MatchState.ARTICLE_ADAPTERS_DEVICES
        if has_adapters:
            return MatchState.ARTICLE_AND_ADAPTERS
        if has_devices:
            return MatchState.ARTICLE_AND_DEVICES
        return MatchState.ARTICLE_ONLY_INVALID
    if has_adapters and has_devices:
        return MatchState.ADAPTERS_AND_DEVICES_ONLY
    return MatchState.NOTHING_PROVIDED


@dataclass(frozen=True, slots=True)
class MatchRequest:
    """Identifiers supplied by a caller, in the order supplied."""

    article: AssetIdentifier | None = None
    adapters: tuple[AssetIdentifier, ...] = ()
    devices: tuple[AssetIdentifier, ...] = ()

    @classmethod
    def from_raw(
        cls,
        article: str | None = None,
        adapters: Sequence[str] | None = None,
        devices: Sequence[str] | None = None,
    ) -> "MatchRequest":
        """Build a request from raw strings; blank entries are ignored."""
        return cls(
            article=AssetIdentifier.parse(article) if article and article.strip() else None,
            adapters=tuple(AssetIdentifier.parse(a) for a in adapters or () if a and a.strip()),
            devices=tuple(AssetIdentifier.parse(d) for d in devices or () if d and d.strip()),
        )

    @property
    def state(self) -> MatchState:
        return resolve_state(self.article is not None, bool(self.adapters), bool(self.devices))


@dataclass(frozen=True, slots=True)
class _Fetched:
    asset_id: AssetIdentifier
    envelope: AasEnvelope

    @property
    def found(self) -> bool:
        return not self.envelope.is_empty

    @property
    def participant(self) -> Participant:
        return Participant(self.asset_id, self.envelope.id or None)


class MatchOrchestrator:
    """Runs one match request against a request-scoped fetcher."""

    def __init__(
        self,
        fetcher: AasFetcher,
        workers: int = 1,
        deadline_seconds: float = 60.0,
        observer: LookupObserver | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Fetcher owning this request's collaborator clients.
            workers: Parallel participant fetches; 1 fetches sequentially.
            deadline_seconds: Upper bound for the whole request.
            observer: Receives diagnostic events.
            clock: Monotonic clock (tests).
        """
        self._fetcher = fetcher
        self._workers = max(1, workers)
        self._deadline_seconds = deadline_seconds
        self._observer = observer or LookupObserver()
        self._clock = clock

    def match(self, request: MatchRequest) -> MatchOutcome:
        """Evaluate a match request.

        Raises:
            InvalidRequestError: If the supplied identifiers do not form a valid request.
            MatchTimeoutError: If the request deadline passes.
        """
        state = request.state
        if state.is_terminal_error:
            raise InvalidRequestError(INVALID_STATE_MESSAGES[state], state=state.value)

        self._observer.match_started(state.value)
        start = time.perf_counter()
        deadline = Deadline(self._deadline_seconds, self._clock)

        outcome: MatchOutcome
        if state is MatchState.ARTICLE_ADAPTERS_DEVICES:
            assert request.article is not None
            outcome = self._match_triples(
                request.article, request.adapters, request.devices, deadline
            )
        elif state is MatchState.ARTICLE_AND_ADAPTERS:
            assert request.article is not None
            outcome = self._match_article(
                request.article, request.adapters, "testAdapter", deadline
            )
        elif state is MatchState.ARTICLE_AND_DEVICES:
            assert request.article is not None
            outcome = self._match_article(request.article, request.devices, "testDevice", deadline)
        else:
            outcome = self._match_pairs(request.adapters, request.devices, deadline)

        self._observer.match_completed(outcome.kind, len(outcome), time.perf_counter() - start)
        return outcome

    def _match_triples(
        self,
        article_id: AssetIdentifier,
        adapter_ids: Sequence[AssetIdentifier],
        device_ids: Sequence[AssetIdentifier],
        deadline: Deadline,
    ) -> TripleOutcome:
        article = self._fetch_all([article_id], deadline)[0]
        if not article.found:
            self._observer.participant_excluded("article", str(article_id), "not found")
            return TripleOutcome()
        article_props = extract(article.envelope, Role.ARTICLE)

        adapters = [
            adapter
            for adapter in self._fetch_all(adapter_ids, deadline)
            if self._accepted_by_article(article_props, adapter, "testAdapter")
        ]
        # Devices are only worth fetching once some adapter fits the article
        if not adapters:
            return TripleOutcome()

        devices = self._electrical_maps(self._fetch_all(device_ids, deadline), "testDevice")
        matches: list[TripleMatch] = []
        for adapter in adapters:
            adapter_props = extract_device_properties(adapter.envelope)
            for device, device_props in devices:
                if is_device_compatible_with_adapter(adapter_props, device_props):
                    matches.append(
                        TripleMatch(article.participant, adapter.participant, device.participant)
                    )
        return TripleOutcome(tuple(matches))

    def _match_article(
        self,
        article_id: AssetIdentifier,
        candidate_ids: Sequence[AssetIdentifier],
        role: Literal["testAdapter", "testDevice"],
        deadline: Deadline,
    ) -> ParticipantList:
        article = self._fetch_all([article_id], deadline)[0]
        if not article.found:
            self._observer.participant_excluded("article", str(article_id), "not found")
            return ParticipantList(article=article.participant, role=role)
        article_props = extract(article.envelope, Role.ARTICLE)

        accepted = tuple(
            candidate.participant
            for candidate in self._fetch_all(candidate_ids, deadline)
            if self._accepted_by_article(article_props, candidate, role)
        )
        return ParticipantList(article=article.participant, role=role, participants=accepted)

    def _match_pairs(
        self,
        adapter_ids: Sequence[AssetIdentifier],
        device_ids: Sequence[AssetIdentifier],
        deadline: Deadline,
    ) -> PairOutcome:
        adapters = self._electrical_maps(self._fetch_all(adapter_ids, deadline), "testAdapter")
        if not adapters:
            return PairOutcome()
        devices = self._electrical_maps(self._fetch_all(device_ids, deadline), "testDevice")

        matches = tuple(
            PairMatch(adapter.participant, device.participant)
            for adapter, adapter_props in adapters
            for device, device_props in devices
            if is_device_compatible_with_adapter(adapter_props, device_props)
        )
        return PairOutcome(matches)

    def _accepted_by_article(
        self, article_props: PropertyMap, candidate: _Fetched, role: str
    ) -> bool:
        if not candidate.found:
            self._observer.participant_excluded(role, str(candidate.asset_id), "not found")
            return False
        props = extract(candidate.envelope, Role.NON_ARTICLE)
        if not is_adapter_compatible_with_article(article_props, props):
            self._observer.participant_excluded(role, str(candidate.asset_id), "incompatible")
            return False
        return True

    def _electrical_maps(
        self, fetched: Sequence[_Fetched], role: str
    ) -> list[tuple[_Fetched, PropertyMap]]:
        maps: list[tuple[_Fetched, PropertyMap]] = []
        for item in fetched:
            if not item.found:
                self._observer.participant_excluded(role, str(item.asset_id), "not found")
                continue
            maps.append((item, extract_device_properties(item.envelope)))
        return maps

    def _check_deadline(self, deadline: Deadline) -> None:
        if deadline.expired():
            raise MatchTimeoutError(deadline.seconds)

    def _fetch_all(
        self, asset_ids: Sequence[AssetIdentifier], deadline: Deadline
    ) -> list[_Fetched]:
        """Fetch participants with submodels, results in input order.

        Raises:
            MatchTimeoutError: If the deadline passes before all fetches finish.
        """
        if self._workers == 1 or len(asset_ids) <= 1:
            results: list[_Fetched] = []
            for asset_id in asset_ids:
                self._check_deadline(deadline)
                results.append(_Fetched(asset_id, self._fetcher.fetch(asset_id, True, deadline)))
            self._check_deadline(deadline)
            return results

        self._check_deadline(deadline)
        pool = ThreadPoolExecutor(
            max_workers=min(self._workers, len(asset_ids)), thread_name_prefix="aas-fetch"
        )
        try:
            futures: list[Future[AasEnvelope]] = [
                pool.submit(self._fetcher.fetch, asset_id, True, deadline) for asset_id in asset_ids
            ]
            _, pending = wait(futures, timeout=deadline.remaining())
            if pending:
                raise MatchTimeoutError(deadline.seconds)
            self._check_deadline(deadline)
            # Index order, not completion order
            return [
                _Fetched(asset_id, future.result())
                for asset_id, future in zip(asset_ids, futures, strict=True)
            ]
        finally:
            # Running fetches end within their deadline-clamped call timeout
            pool.shutdown(wait=True, cancel_futures=True)
