"""Unit tests for the geocoding client: cache hit/miss, normalization, retries."""
import time
from unittest.mock import patch

import httpx
import pytest

from agriguru.geocode.client import (
    GEOCODE_CACHE_MAX_ENTRIES,
    OpenWeatherGeocoder,
    _normalize_place,
    _normalize_reverse,
    _TTLCache,
)

# --- Cache ---


def test_ttl_cache_miss_then_hit():
    cache = _TTLCache(ttl_seconds=60)
    assert cache.get("k1") is None
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"


def test_ttl_cache_expiry():
    cache = _TTLCache(ttl_seconds=1)
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"
    time.sleep(1.1)
    assert cache.get("k1") is None


def test_ttl_cache_evicts_oldest_past_max_entries():
    cache = _TTLCache(ttl_seconds=60, max_entries=3)
    for i in range(10):
        cache.set(f"k{i}", i)
    assert len(cache) == 3
    assert cache.get("k0") is None
    assert cache.get("k9") == 9


def test_ttl_cache_set_drops_expired_entries():
    cache = _TTLCache(ttl_seconds=1)
    cache.set("old", "v")
    time.sleep(1.1)
    cache.set("new", "v")
    assert len(cache) == 1


def test_ttl_cache_expired_get_is_safe_when_key_already_gone():
    cache = _TTLCache(ttl_seconds=1)
    cache.set("k1", "v1")
    time.sleep(1.1)
    assert cache.get("k1") is None
    assert cache.get("k1") is None


# --- Normalization ---


def test_normalize_reverse():
    raw = [{"name": "Pune", "state": "Maharashtra", "country": "IN", "lat": 18.52, "lon": 73.85}]
    assert _normalize_reverse(raw) == {"state": "Maharashtra", "district": "Pune", "country": "IN"}


@pytest.mark.parametrize("raw", [[], None, {"cod": 401}, ["oops"]])
def test_normalize_reverse_unknown(raw):
    assert _normalize_reverse(raw) == {"state": "Unknown", "district": "Unknown", "country": "Unknown"}


def test_normalize_place():
    raw = {"name": "Nashik", "lat": 19.9975, "lon": 73.7898, "country": "IN", "state": "Maharashtra"}
    assert _normalize_place(raw) == {
        "latitude": 19.9975,
        "longitude": 73.7898,
        "name": "Nashik",
        "state": "Maharashtra",
        "country": "IN",
    }


# --- Client ---


def _mock_get(mock_client_cls):
    return mock_client_cls.return_value.__enter__.return_value.get


def test_reverse_cache_miss_then_hit():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls:
        mock_resp = _mock_get(mock_client_cls).return_value
        mock_resp.json.return_value = [{"name": "Hisar", "state": "Haryana", "country": "IN"}]
        mock_resp.raise_for_status = lambda: None

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        first = geocoder.reverse(29.1492, 75.7217)
        assert first["state"] == "Haryana"
        assert _mock_get(mock_client_cls).call_count == 1
        # Same ~100 m cell: served from cache
        geocoder.reverse(29.14921, 75.72171)
        assert _mock_get(mock_client_cls).call_count == 1
        params = _mock_get(mock_client_cls).call_args.kwargs["params"]
        assert params["appid"] == "test-key"
        assert params["limit"] == 1


def test_search_adds_country_hint_and_caches_case_insensitively():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls:
        mock_resp = _mock_get(mock_client_cls).return_value
        mock_resp.json.return_value = [{"name": "Nashik", "lat": 19.99, "lon": 73.79, "country": "IN"}]
        mock_resp.raise_for_status = lambda: None

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        place = geocoder.search("Nashik")
        assert place["latitude"] == 19.99
        assert _mock_get(mock_client_cls).call_args.kwargs["params"]["q"] == "Nashik,IN"
        geocoder.search("  nashik ")
        assert _mock_get(mock_client_cls).call_count == 1


def test_search_no_results_raises_lookup_error():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls:
        mock_resp = _mock_get(mock_client_cls).return_value
        mock_resp.json.return_value = []
        mock_resp.raise_for_status = lambda: None

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        with pytest.raises(LookupError):
            geocoder.search("Atlantis")


def test_retries_then_raises_runtime_error():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls, patch(
        "agriguru.geocode.client.time.sleep"
    ) as mock_sleep:
        _mock_get(mock_client_cls).side_effect = httpx.ConnectTimeout("timed out")

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        with pytest.raises(RuntimeError, match="unavailable"):
            geocoder.reverse(18.52, 73.85)
        assert _mock_get(mock_client_cls).call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


def test_recovers_after_transient_error():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls, patch(
        "agriguru.geocode.client.time.sleep"
    ):
        ok = _mock_get(mock_client_cls).return_value
        ok.json.return_value = [{"name": "Pune", "state": "Maharashtra", "country": "IN"}]
        ok.raise_for_status = lambda: None
        _mock_get(mock_client_cls).side_effect = [httpx.ConnectError("refused"), ok]

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        assert geocoder.reverse(18.52, 73.85)["district"] == "Pune"
        assert _mock_get(mock_client_cls).call_count == 2


def test_search_cache_stays_bounded_under_distinct_queries():
    with patch("agriguru.geocode.client.httpx.Client") as mock_client_cls:
        mock_resp = _mock_get(mock_client_cls).return_value
        mock_resp.json.return_value = [{"name": "Somewhere", "lat": 20.0, "lon": 78.0, "country": "IN"}]
        mock_resp.raise_for_status = lambda: None

        geocoder = OpenWeatherGeocoder(api_key="test-key")
        for i in range(GEOCODE_CACHE_MAX_ENTRIES + 200):
            geocoder.search(f"place{i}")
        assert len(geocoder._search_cache) == GEOCODE_CACHE_MAX_ENTRIES
