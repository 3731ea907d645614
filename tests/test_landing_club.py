from __future__ import annotations

import httpx
import pytest

from jobmatch.adapters.landing_club import (
    LandingClubAdapter,
    SponsorApiConfig,
    extract_candidates,
    map_sponsor_entry,
    pick_best_candidate,
)
from jobmatch.errors import SponsorProviderError, SponsorProviderNotConfigured


def test_map_entry_reads_fields_in_priority_order() -> None:
    entry = {
        "name": "Fallback Name",
        "companyName": "Acme, Inc.",
        "visaSuccessScore": 87.6,
        "score": 10,
        "h1b_last_year": 2024,
        "total_filings": 31,
        "supportedVisas": ["H-1B", "", "O-1"],
        "news": [{"headline": "Filed 12 LCAs", "date": "2026-09-01"}, {"summary": "older"}],
        "slug": "acme",
    }
    cand = map_sponsor_entry(entry)
    assert cand is not None
    assert cand.name == "Acme, Inc."
    assert cand.normalized_name == "acme inc"
    assert cand.sponsorship_confidence == 88
    assert cand.last_year_sponsored == 2024
    assert cand.total_filings == 31
    assert cand.visa_types == ["H-1B", "O-1"]
    assert cand.latest_update is not None
    assert cand.latest_update.summary == "Filed 12 LCAs"
    assert cand.latest_update.occurred_at == "2026-09-01"
    assert cand.id == "acme"
    assert cand.raw == entry


def test_map_entry_normalizes_provider_supplied_key() -> None:
    cand = map_sponsor_entry({"company": "Globex", "normalized_name": "GLOBEX Corp."})
    assert cand.normalized_name == "globex corp"
    assert cand.id == "globex corp"


@pytest.mark.parametrize("entry", [None, "Acme", {"companyName": 42}, {"score": 90}])
def test_map_entry_drops_entries_without_a_name(entry) -> None:
    assert map_sponsor_entry(entry) is None


def test_map_entry_ignores_non_numeric_confidence() -> None:
    cand = map_sponsor_entry({"name": "Acme", "sponsorshipConfidence": "high", "visaTypes": "H-1B"})
    assert cand.sponsorship_confidence is None
    assert cand.visa_types is None


@pytest.mark.parametrize(
    "payload",
    [
        {"results": [{"name": "A"}]},
        {"companies": [{"name": "A"}]},
        [{"name": "A"}],
    ],
)
def test_extract_candidates_accepts_known_envelopes(payload) -> None:
    assert extract_candidates(payload) == [{"name": "A"}]


def test_extract_candidates_unknown_shape_is_empty() -> None:
    assert extract_candidates({"data": [1]}) == []
    assert extract_candidates(None) == []


def _adapter(handler, api_key: str | None = "secret") -> LandingClubAdapter:
    config = SponsorApiConfig(base_url="https://sponsors.test/v1/", api_key=api_key, timeout=2.0)
    return LandingClubAdapter(config, transport=httpx.MockTransport(handler))


def test_search_companies_sends_auth_and_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"companies": [{"name": "Acme Inc", "score": 70}, {"nope": 1}]})

    results = _adapter(handler).search_companies("Acme, Inc.")
    assert [c.name for c in results] == ["Acme Inc"]
    request = seen[0]
    assert request.url.path == "/v1/companies/search"
    assert request.url.params["query"] == "Acme, Inc."
    assert request.url.params["limit"] == "5"
    assert request.headers["Authorization"] == "Bearer secret"


def test_search_companies_non_2xx_is_provider_error() -> None:
    adapter = _adapter(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(SponsorProviderError, match="500"):
        adapter.search_companies("Acme")


def test_search_companies_network_failure_is_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(SponsorProviderError):
        _adapter(handler).search_companies("Acme")


def test_search_companies_invalid_json_is_provider_error() -> None:
    adapter = _adapter(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(SponsorProviderError):
        adapter.search_companies("Acme")


def test_unconfigured_adapter_refuses_remote_calls() -> None:
    adapter = _adapter(lambda request: httpx.Response(200, json=[]), api_key=None)
    assert not adapter.is_configured()
    with pytest.raises(SponsorProviderNotConfigured):
        adapter.search_companies("Acme")


def test_empty_query_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    assert _adapter(handler).search_companies("") == []


def test_pick_best_candidate_prefers_exact_normalized_match() -> None:
    top = map_sponsor_entry({"name": "Acme Robotics"})
    exact = map_sponsor_entry({"name": "ACME, Inc"})
    assert pick_best_candidate("Acme Inc.", [top, exact]) is exact
    assert pick_best_candidate("Acme Holdings", [top, exact]) is top
    assert pick_best_candidate("Acme", []) is None
