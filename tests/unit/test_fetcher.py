"""Unit tests for the discovery -> registry -> environment fetch chain."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from conftest import FakeAasServices, RecordingObserver, encode

from aas_lookup.aas.clients import DiscoveryClient, encode_id
from aas_lookup.aas.fetcher import AasFetcher, rewrite_endpoint
from aas_lookup.config import HttpConfig, ServiceConfig
from aas_lookup.deadline import Deadline
from aas_lookup.domain.models import EMPTY_ENVELOPE, AssetIdentifier

ARTICLE = AssetIdentifier.parse("urn:example:article:4711")
ARTICLE_AAS = "https://example.com/aas/article-4711"


@pytest.fixture
def make_fetcher(
    config: ServiceConfig, observer: RecordingObserver
) -> Callable[[FakeAasServices], AasFetcher]:
    def make(services: FakeAasServices) -> AasFetcher:
        return AasFetcher.from_config(config, observer, services.transport())

    return make


class TestRewriteEndpoint:
    """Tests for advertised -> internal endpoint rewriting."""

    def test_rewrites_matching_host(self) -> None:
        rewrites = {"localhost:8082": "aas-environment-v3:8081"}
        assert (
            rewrite_endpoint("http://localhost:8082/shells/abc", rewrites)
            == "http://aas-environment-v3:8081/shells/abc"
        )

    def test_other_hosts_pass_through(self) -> None:
        href = "https://repo.example.com/shells/abc"
        assert rewrite_endpoint(href, {"localhost:8082": "internal:1"}) == href


def test_encode_id_is_unpadded_base64url() -> None:
    assert encode_id("https://example.com/aas/1") == "aHR0cHM6Ly9leGFtcGxlLmNvbS9hYXMvMQ"
    assert "=" not in encode_id("ab")


class TestFetch:
    """Tests for AasFetcher.fetch."""

    def test_found_with_submodels(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        with make_fetcher(bench) as fetcher:
            envelope = fetcher.fetch(ARTICLE, include_submodels=True)

        assert envelope.id == ARTICLE_AAS
        assert envelope.id_short == "Article4711"
        assert [sm["idShort"] for sm in envelope.submodels] == ["TechnicalData", "Nameplate"]
        assert observer.names("fetch_completed") == [(str(ARTICLE), "found")]
        # The advertised localhost:8082 endpoint was rewritten to the internal host
        assert bench.paths("localhost") == []
        assert f"/shells/{encode(ARTICLE_AAS)}" in bench.paths("aas-environment-v3")

    def test_without_submodels(
        self, bench: FakeAasServices, make_fetcher: Callable[[FakeAasServices], AasFetcher]
    ) -> None:
        with make_fetcher(bench) as fetcher:
            envelope = fetcher.fetch(ARTICLE)

        assert envelope.id == ARTICLE_AAS
        assert envelope.submodels == ()
        assert not any("/submodels/" in p for p in bench.paths("aas-environment-v3"))

    def test_discovery_miss(
        self,
        fake_services: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        with make_fetcher(fake_services) as fetcher:
            assert fetcher.fetch(AssetIdentifier.parse("urn:unknown")) is EMPTY_ENVELOPE

        assert observer.names("fetch_completed") == [("urn:unknown", "discovery_miss")]
        assert fake_services.paths("aas-registry-v3") == []

    def test_discovery_failure_is_a_miss(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        bench.fail("/lookup/shells", 500)
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).is_empty
        assert observer.names("fetch_completed") == [(str(ARTICLE), "discovery_error")]

    def test_unknown_descriptor(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        del bench.descriptors[ARTICLE_AAS]
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).is_empty
        assert observer.names("fetch_completed") == [(str(ARTICLE), "no_descriptor")]

    def test_descriptor_without_endpoints(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        bench.descriptors[ARTICLE_AAS]["endpoints"] = []
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).is_empty
        assert observer.names("fetch_completed") == [(str(ARTICLE), "no_endpoint")]

    def test_malformed_descriptor(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        bench.descriptors[ARTICLE_AAS]["endpoints"] = "not a list"
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).is_empty
        assert observer.names("malformed_payload") == [("registry",)]

    def test_shell_unavailable(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        del bench.shells[ARTICLE_AAS]
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).is_empty
        assert observer.names("fetch_completed") == [(str(ARTICLE), "shell_unavailable")]

    def test_first_discovery_hit_wins(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        bench.discovery[str(ARTICLE)].append("https://example.com/aas/article-4712")
        with make_fetcher(bench) as fetcher:
            assert fetcher.fetch(ARTICLE).id == ARTICLE_AAS
        assert observer.names("discovery_ambiguous") == [(str(ARTICLE), 2)]

    def test_missing_submodel_is_skipped(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        del bench.submodels["https://example.com/sm/article-4711/nameplate"]
        with make_fetcher(bench) as fetcher:
            envelope = fetcher.fetch(ARTICLE, include_submodels=True)

        assert [sm["idShort"] for sm in envelope.submodels] == ["TechnicalData"]
        assert observer.names("submodel_skipped") == [
            ("https://example.com/sm/article-4711/nameplate", "absent")
        ]

    def test_failing_submodel_is_skipped(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        submodel_id = "https://example.com/sm/article-4711/technical-data"
        bench.fail(f"/submodels/{encode(submodel_id)}", 500)
        with make_fetcher(bench) as fetcher:
            envelope = fetcher.fetch(ARTICLE, include_submodels=True)

        assert [sm["idShort"] for sm in envelope.submodels] == ["Nameplate"]
        assert observer.names("submodel_skipped") == [(submodel_id, "error")]

    def test_submodel_refs_fall_back_to_shell_references(
        self,
        bench: FakeAasServices,
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
        observer: RecordingObserver,
    ) -> None:
        href = f"http://aas-environment-v3:8081/shells/{encode(ARTICLE_AAS)}"
        bench.fail(f"/shells/{encode(ARTICLE_AAS)}/submodel-refs", 404)
        with make_fetcher(bench) as fetcher:
            envelope = fetcher.fetch(ARTICLE, include_submodels=True)

        assert len(envelope.submodels) == 2
        assert observer.names("submodel_refs_fallback") == [(href,)]

    def test_structured_identifier_query(
        self,
        fake_services: FakeAasServices,
        load_fixture: Callable[[str], Any],
        make_fetcher: Callable[[FakeAasServices], AasFetcher],
    ) -> None:
        bundle = load_fixture("device_bare.json")
        fake_services.add_asset('{"name":"serialNumber","value":"SN-9"}', bundle["shell"])

        with make_fetcher(fake_services) as fetcher:
            envelope = fetcher.fetch(
                AssetIdentifier.parse('{"name": "serialNumber", "value": "SN-9"}')
            )

        assert envelope.id == bundle["shell"]["id"]

    def test_http_timeout_applies_under_long_deadline(
        self, bench: FakeAasServices, observer: RecordingObserver
    ) -> None:
        config = ServiceConfig(http=HttpConfig(timeout_seconds=2.0))
        with AasFetcher.from_config(config, observer, bench.transport()) as fetcher:
            fetcher.fetch(ARTICLE, include_submodels=True, deadline=Deadline(60.0))

        timeouts = {r.extensions["timeout"]["read"] for r in bench.requests}
        assert timeouts == {2.0}

    def test_deadline_shortens_http_timeout(
        self, bench: FakeAasServices, make_fetcher: Callable[[FakeAasServices], AasFetcher]
    ) -> None:
        with make_fetcher(bench) as fetcher:
            fetcher.fetch(ARTICLE, deadline=Deadline(5.0))

        timeouts = [r.extensions["timeout"]["read"] for r in bench.requests]
        assert timeouts
        assert all(t is not None and t <= 5.0 for t in timeouts)

    def test_http_timeout_without_deadline(
        self, bench: FakeAasServices, observer: RecordingObserver
    ) -> None:
        config = ServiceConfig(http=HttpConfig(timeout_seconds=2.0))
        with AasFetcher.from_config(config, observer, bench.transport()) as fetcher:
            fetcher.fetch(ARTICLE)

        assert {r.extensions["timeout"]["read"] for r in bench.requests} == {2.0}


def test_lookup_returns_list(
    bench: FakeAasServices, make_fetcher: Callable[[FakeAasServices], AasFetcher]
) -> None:
    with make_fetcher(bench) as fetcher:
        assert [e.id for e in fetcher.lookup(ARTICLE)] == [ARTICLE_AAS]
        assert fetcher.lookup(AssetIdentifier.parse("urn:unknown")) == []


def test_discovery_accepts_bare_list() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["aas-1", "", 3]))
    with DiscoveryClient("http://discovery", transport=transport) as client:
        assert client.lookup_shells(AssetIdentifier.parse("x")) == ["aas-1"]
