"""
Provider HTTP clients against httpx.MockTransport.
"""

import asyncio
import json
from datetime import date

import httpx
import pytest

from leadsweep.core.config import settings
from leadsweep.core.errors import ConfigurationError, UpstreamError
from leadsweep.services.ads_library_client import (
    AdsLibraryClient,
    clamp_period_days,
    looks_like_company_match,
    period_window,
    resolve_provider,
)
from leadsweep.services.places_client import PlacesClient, assert_places_configured, to_lead_candidate
from leadsweep.services.verifier_client import AnymailVerifierClient, normalize_status

from conftest import place_detail


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestPlacesClient:
    def test_search_returns_results(self):
        def handler(request):
            assert request.url.path.endswith("/textsearch/json")
            assert request.url.params["query"] == "probate lawyer in Durham, NC"
            assert request.url.params["key"] == "k"
            return httpx.Response(200, json={"results": [{"place_id": "p1"}, {"place_id": "p2"}]})

        places = PlacesClient(api_key="k", client=mock_client(handler))
        results = asyncio.run(places.search("probate lawyer in Durham, NC"))
        assert [r["place_id"] for r in results] == ["p1", "p2"]

    def test_search_failure_is_upstream_error(self):
        places = PlacesClient(api_key="k", client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(places.search("q"))
        assert exc.value.status == 500
        assert exc.value.provider == "google_places"

    def test_details_failure_returns_none(self):
        places = PlacesClient(api_key="k", client=mock_client(lambda r: httpx.Response(503)))
        assert asyncio.run(places.get_details("p1")) is None

    def test_details_result(self):
        detail = place_detail("p1", "Doe Law")
        places = PlacesClient(api_key="k", client=mock_client(lambda r: httpx.Response(200, json={"result": detail})))
        assert asyncio.run(places.get_details("p1"))["name"] == "Doe Law"

    def test_missing_key_is_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_PLACES_API_KEY", "")
        with pytest.raises(ConfigurationError):
            assert_places_configured("")

    def test_candidate_from_details(self):
        candidate = to_lead_candidate(place_detail("p1", "Doe Law", website="https://doelaw.com"), "q", "radius:x")
        assert candidate.city == "Durham"
        assert candidate.state == "NC"
        assert candidate.zip == "27701"
        assert candidate.google_place_id == "p1"
        assert candidate.source_geo_label == "radius:x"


@pytest.mark.unit
class TestVerifierClient:
    @pytest.mark.parametrize("raw,expected", [
        ("VALID", "valid"),
        ("catch-all", "catch_all"),
        ("deliverable", "valid"),
        ("undeliverable", "invalid"),
        ("bogus", "unknown"),
        (None, "unknown"),
    ])
    def test_normalize_status(self, raw, expected):
        assert normalize_status(raw) == expected

    def test_verify_posts_with_bearer_token(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer k"
            assert json.loads(request.content) == {"email": "jane@doefirm.com"}
            return httpx.Response(200, json={"status": "Deliverable", "confidence": 0.97})

        client = AnymailVerifierClient(api_key="k", client=mock_client(handler))
        result = asyncio.run(client.verify_email("jane@doefirm.com"))
        assert result.status == "valid"
        assert result.confidence == 0.97
        assert result.provider_response["status"] == "Deliverable"

    def test_non_2xx_is_upstream_error(self):
        client = AnymailVerifierClient(api_key="k", client=mock_client(lambda r: httpx.Response(429)))
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(client.verify_email("jane@doefirm.com"))
        assert exc.value.status == 429

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ANYMAIL_SEARCH_API_KEY", "")
        with pytest.raises(ConfigurationError):
            AnymailVerifierClient(client=mock_client(lambda r: httpx.Response(200))).assert_configured()


@pytest.mark.unit
class TestAdsHelpers:
    def test_clamp_period_days(self):
        assert clamp_period_days(0) == 1
        assert clamp_period_days(30) == 30
        assert clamp_period_days(1000) == 365

    def test_period_window(self):
        assert period_window(30, today=date(2026, 3, 31)) == (date(2026, 3, 1), date(2026, 3, 31))

    def test_company_match(self):
        assert looks_like_company_match("Doe Law, PLLC", "doe law pllc")
        assert looks_like_company_match("Doe Law", "The Doe Law Group")
        assert not looks_like_company_match("Doe Law", "Smith Dental")
        assert not looks_like_company_match("", "Doe")

    def test_unconfigured_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "ADS_LIBRARY_PROVIDER", "")
        with pytest.raises(ConfigurationError):
            resolve_provider()

    def test_custom_http_requires_url(self, monkeypatch):
        monkeypatch.setattr(settings, "ADS_LIBRARY_API_URL", "")
        with pytest.raises(ConfigurationError):
            resolve_provider("custom_http")

    def test_dataforseo_requires_credentials(self, monkeypatch):
        monkeypatch.setattr(settings, "DATAFORSEO_LOGIN", "")
        with pytest.raises(ConfigurationError):
            resolve_provider("dataforseo")


@pytest.mark.unit
class TestAdsLibraryClient:
    def test_custom_http_lookup(self, monkeypatch):
        monkeypatch.setattr(settings, "ADS_LIBRARY_API_KEY", "secret")

        def handler(request):
            assert str(request.url) == "http://ads.test/lookup"
            assert request.headers["Authorization"] == "Bearer secret"
            body = json.loads(request.content)
            assert body["company_name"] == "Doe Law"
            assert body["period_days"] == 365
            return httpx.Response(200, json={
                "advertiser_name": "Doe Law PLLC",
                "ads_count_active": 2,
                "ads_count_in_period": "7",
                "first_seen_at": "2026-01-04T10:00:00Z",
                "evidence_url": "https://ads.example/doe",
            })

        client = AdsLibraryClient(provider="custom_http", client=mock_client(handler))
        result = asyncio.run(client.lookup("Doe Law", "https://doelaw.com", "Durham", "NC", 900))

        assert result.provider == "custom_http"
        assert result.advertiser_name == "Doe Law PLLC"
        assert result.ads_count_in_period == 7
        assert result.first_seen_at == "2026-01-04"
        assert result.last_seen_at is None
        assert (result.period_end - result.period_start).days == 365

    def test_custom_http_error_message(self):
        handler = lambda r: httpx.Response(402, json={"error": "quota exhausted"})  # noqa: E731
        client = AdsLibraryClient(provider="custom_http", client=mock_client(handler))
        with pytest.raises(UpstreamError, match="quota exhausted") as exc:
            asyncio.run(client.lookup("Doe Law", None, None, None, 30))
        assert exc.value.status == 402

    def test_dataforseo_advertiser_then_ads_search(self, monkeypatch):
        monkeypatch.setattr(settings, "DATAFORSEO_LOGIN", "login")
        monkeypatch.setattr(settings, "DATAFORSEO_PASSWORD", "pw")
        calls = []

        def handler(request):
            calls.append(request.url.path)
            assert request.headers["Authorization"].startswith("Basic ")
            if request.url.path.endswith("/ads_advertisers/live/advanced"):
                return httpx.Response(200, json={"tasks": [{"result": [{"items": [
                    {"advertiser_name": "Smith Dental", "ads_count": 40},
                    {"advertiser_name": "Doe Law PLLC", "ads_count": 3, "domain": "doelaw.com"},
                ]}]}]})
            task = json.loads(request.content)[0]
            assert task["target"] == "doelaw.com"
            return httpx.Response(200, json={"tasks": [{"result": [{"items_count": 5, "items": [
                {"first_shown": "2026-02-01 00:00:00"},
                {"last_shown": "2026-02-20 00:00:00"},
            ]}]}]})

        client = AdsLibraryClient(provider="dataforseo", client=mock_client(handler))
        result = asyncio.run(client.lookup("Doe Law", None, "Durham", "NC", 30))

        assert len(calls) == 2
        assert result.advertiser_name == "Doe Law PLLC"
        assert result.ads_count_in_period == 5
        assert result.ads_count_active == 3
        assert result.first_seen_at == "2026-02-01"
        assert result.last_seen_at == "2026-02-20"
        assert "ads_search" in result.raw

    def test_dataforseo_ads_search_failure_keeps_advertiser_counts(self, monkeypatch):
        monkeypatch.setattr(settings, "DATAFORSEO_LOGIN", "login")
        monkeypatch.setattr(settings, "DATAFORSEO_PASSWORD", "pw")

        def handler(request):
            if request.url.path.endswith("/ads_advertisers/live/advanced"):
                return httpx.Response(200, json={"tasks": [{"result": [{"items": [
                    {"advertiser_name": "Doe Law", "ads_count": 4, "domain": "doelaw.com"},
                ]}]}]})
            return httpx.Response(500, json={})

        client = AdsLibraryClient(provider="dataforseo", client=mock_client(handler))
        result = asyncio.run(client.lookup("Doe Law", None, None, None, 30))
        assert result.ads_count_in_period == 4
