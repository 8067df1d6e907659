"""
OpenWeather geocoding client (place name <-> coordinates) with in-memory TTL cache.
Includes timeouts, retry with exponential backoff, and clear error handling.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Any

import httpx

logger = logging.getLogger(__name__)

OPENWEATHER_GEO_BASE = "https://api.openweathermap.org/geo/1.0"
REVERSE_CACHE_TTL_SECONDS = 3600
SEARCH_CACHE_TTL_SECONDS = 86400
GEOCODE_REQUEST_TIMEOUT_SECONDS = 10.0
GEOCODE_RETRY_ATTEMPTS = 3
GEOCODE_RETRY_BASE_DELAY_SECONDS = 1.0
GEOCODE_RETRY_MAX_DELAY_SECONDS = 8.0
GEOCODE_CACHE_MAX_ENTRIES = 1024

UNKNOWN_LOCATION = {"state": "Unknown", "district": "Unknown", "country": "Unknown"}


class _TTLCache:
    """In-memory TTL cache shared across request threads. Oldest entries are evicted past max_entries."""

    def __init__(self, ttl_seconds: int, max_entries: int = GEOCODE_CACHE_MAX_ENTRIES):
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() >= expires_at:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        now = time.monotonic()
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = (value, now + self._ttl)
            # Insertion order is expiry order (one TTL), so expired entries sit at the front
            while self._store:
                _, (_, expires_at) = next(iter(self._store.items()))
                if expires_at > now and len(self._store) <= self._max_entries:
                    break
                self._store.popitem(last=False)


def _normalize_reverse(raw: Any) -> dict[str, str]:
    """First reverse-geocoding hit as { state, district, country }."""
    if not isinstance(raw, list) or not raw or not isinstance(raw[0], dict):
        return dict(UNKNOWN_LOCATION)
    first = raw[0]
    return {
        "state": first.get("state") or "Unknown",
        "district": first.get("name") or "Unknown",
        "country": first.get("country") or "Unknown",
    }


def _normalize_place(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "latitude": float(raw.get("lat") or 0),
        "longitude": float(raw.get("lon") or 0),
        "name": raw.get("name") or "",
        "state": raw.get("state"),
        "country": raw.get("country"),
    }


class OpenWeatherGeocoder:
    """Reverse (coordinates -> state/district) and forward (place -> coordinates) lookups."""

    def __init__(self, api_key: str, base_url: str = OPENWEATHER_GEO_BASE, country_hint: str = "IN"):
        self._api_key = api_key
        self._base = base_url.rstrip("/")
        self._country_hint = country_hint
        self._reverse_cache = _TTLCache(ttl_seconds=REVERSE_CACHE_TTL_SECONDS)
        self._search_cache = _TTLCache(ttl_seconds=SEARCH_CACHE_TTL_SECONDS)

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self._base}/{path}"
        params = {**params, "appid": self._api_key}
        last_error: Exception | None = None
        for attempt in range(GEOCODE_RETRY_ATTEMPTS):
            try:
                with httpx.Client(timeout=GEOCODE_REQUEST_TIMEOUT_SECONDS) as client:
                    resp = client.get(url, params=params)
                    resp.raise_for_status()
                    return resp.json()
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning("telemetry geocode_timeout attempt=%s path=%s", attempt + 1, path)
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    "telemetry geocode_api_error attempt=%s path=%s error=%s",
                    attempt + 1,
                    path,
                    str(e),
                )
            if attempt < GEOCODE_RETRY_ATTEMPTS - 1:
                delay = min(
                    GEOCODE_RETRY_BASE_DELAY_SECONDS * (2**attempt),
                    GEOCODE_RETRY_MAX_DELAY_SECONDS,
                )
                time.sleep(delay)
        msg = "Geocoding service unavailable (timeout or error after retries)."
        if last_error:
            raise RuntimeError(msg) from last_error
        raise RuntimeError(msg)

    def reverse(self, lat: float, lon: float) -> dict[str, str]:
        """
        State, district and country for a coordinate. Cached per ~100 m cell.
        An empty provider answer yields "Unknown" fields rather than an error.
        """
        key = f"rev:{round(lat, 3)}:{round(lon, 3)}"
        cached = self._reverse_cache.get(key)
        if cached is not None:
            logger.info("telemetry geocode_reverse cache_hit=true")
            return cached
        logger.info("telemetry geocode_reverse cache_hit=false")
        data = self._get("reverse", {"lat": lat, "lon": lon, "limit": 1})
        result = _normalize_reverse(data)
        self._reverse_cache.set(key, result)
        return result

    def search(self, query: str) -> dict[str, Any]:
        """First match for a place name; raises LookupError when the provider has none."""
        q = query.strip()
        key = f"q:{q.lower()}"
        cached = self._search_cache.get(key)
        if cached is not None:
            logger.info("telemetry geocode_search cache_hit=true")
            return cached
        logger.info("telemetry geocode_search cache_hit=false")
        contextual = q if "," in q or not self._country_hint else f"{q},{self._country_hint}"
        data = self._get("direct", {"q": contextual, "limit": 1})
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise LookupError(f'No results for "{q[:80]}".')
        result = _normalize_place(data[0])
        self._search_cache.set(key, result)
        return result
