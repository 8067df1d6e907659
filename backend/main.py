import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from settings import get_settings
from agriguru.data.catalog import Catalog, EntryNotFound, load_catalog
from agriguru.data.geo import GeoPoint, is_valid_point
from agriguru.geocode.client import OpenWeatherGeocoder
from agriguru.i18n.translations import load_translations
from agriguru.middleware import (
    LanguageMiddleware,
    OptionalAPIKeyMiddleware,
    RequestLoggingMiddleware,
    get_valid_api_keys,
)
from agriguru.middleware.language import language_context
from agriguru.monitoring.metrics import get_metrics, record_search
from agriguru.search.filters import distinct_values, filter_entries
from agriguru.search.models import Coordinates, SearchFilters, search_payload
from agriguru.search.service import search

settings = get_settings()
BACKEND_ROOT = Path(__file__).resolve().parent


def _resolve(path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else BACKEND_ROOT / p


SOIL_CENTERS_JSON = _resolve(settings.soil_centers_path)
MANDIS_JSON = _resolve(settings.mandis_path)

SOIL_CENTERS = "soil_centers"
MANDIS = "mandis"

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

TRANSLATIONS = load_translations(_resolve(settings.translations_path), default=settings.default_language)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

RADIUS_KM_MIN = 1.0
LIMIT_MIN = 1
PLACE_QUERY_MAX_LEN = 120


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Catalogs are built in full before the app serves; a malformed file aborts start-up.
    app.state.catalogs = {
        SOIL_CENTERS: load_catalog(SOIL_CENTERS_JSON, name=SOIL_CENTERS, id_prefix="STC"),
        MANDIS: load_catalog(MANDIS_JSON, name=MANDIS, id_prefix="MANDI"),
    }
    app.state.geocoder = (
        OpenWeatherGeocoder(api_key=settings.openweather_api_key) if settings.openweather_api_key else None
    )
    yield
    app.state.geocoder = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())[1:]) or "request"
        problems.append(f"{field}: {err.get('msg', 'invalid value')}")
    return JSONResponse(status_code=400, content={"success": False, "error": "; ".join(problems)})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "An unexpected error occurred. Please try again later."},
    )


# Last added = outermost: request logging wraps everything, rate limiting runs before auth.
app.add_middleware(LanguageMiddleware, translations=TRANSLATIONS)
app.add_middleware(
    OptionalAPIKeyMiddleware,
    api_key_required=settings.api_key_required,
    api_keys=get_valid_api_keys(settings.api_keys),
)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


def _ok(request: Request, data, message: str | None = None) -> dict:
    """Success envelope with the caller's language context."""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body["language"] = language_context(request, TRANSLATIONS)
    return body


def _catalog(request: Request, name: str) -> Catalog:
    return request.app.state.catalogs[name]


def _query_point(latitude: float | None, longitude: float | None) -> GeoPoint | None:
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise HTTPException(status_code=400, detail="Provide both latitude and longitude.")
    if not is_valid_point(latitude, longitude):
        raise HTTPException(
            status_code=400,
            detail="Invalid coordinates. Latitude must be between -90 and 90, longitude between -180 and 180.",
        )
    return GeoPoint(latitude, longitude)


def _radius_km(radius: float | None, max_km: float) -> float:
    if radius is None:
        return settings.default_radius_km
    if not (RADIUS_KM_MIN <= radius <= max_km):
        raise HTTPException(status_code=400, detail=f"radius must be between {RADIUS_KM_MIN:g} and {max_km:g} km")
    return radius


def _limit(limit: int | None) -> int | None:
    if limit is not None and not (LIMIT_MIN <= limit <= settings.max_results):
        raise HTTPException(status_code=400, detail=f"limit must be between {LIMIT_MIN} and {settings.max_results}")
    return limit


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    catalogs = getattr(request.app.state, "catalogs", {})
    return {"status": "ok", "catalogs": {name: len(c) for name, c in catalogs.items()}}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    return get_metrics()


# --- Soil testing centers ---


@app.get("/api/soil/testing-centers")
def soil_testing_centers(
    request: Request,
    latitude: float | None = None,
    longitude: float | None = None,
    radius: float | None = None,
    state: str | None = None,
    city: str | None = None,
    type_: str | None = Query(default=None, alias="type"),
    limit: int | None = None,
):
    """
    Testing centers matching state/city/type (case-insensitive). With latitude and
    longitude, only centers within radius km (default 50) are returned, nearest first.
    """
    query = _query_point(latitude, longitude)
    radius_km = _radius_km(radius, settings.max_radius_km) if query is not None else None
    limit = _limit(limit)
    result = search(
        _catalog(request, SOIL_CENTERS),
        query=query,
        criteria={"state": state, "city": city, "type": type_},
        radius_km=radius_km,
        limit=limit,
    )
    record_search(SOIL_CENTERS)
    logger.info(
        "telemetry route=soil_testing_centers has_point=%s state=%s city=%s type=%s radius_km=%s results=%s",
        query is not None,
        state,
        city,
        type_,
        radius_km,
        result.total,
    )
    filters = SearchFilters(
        state=state or None,
        city=city or None,
        type=type_ or None,
        coordinates=Coordinates(latitude=query.latitude, longitude=query.longitude) if query else None,
        radius=radius_km,
    )
    return _ok(request, search_payload("centers", result.hits, filters))


@app.get("/api/soil/testing-centers/{center_id}")
def soil_testing_center(request: Request, center_id: str):
    try:
        center = _catalog(request, SOIL_CENTERS).by_id(center_id)
    except EntryNotFound as e:
        raise HTTPException(status_code=404, detail="Testing center not found") from e
    return _ok(request, center.to_dict())


@app.get("/api/soil/states")
def soil_states(request: Request):
    """States that have at least one testing center."""
    return _ok(request, distinct_values(_catalog(request, SOIL_CENTERS).all(), "state"))


@app.get("/api/soil/cities")
def soil_cities(request: Request, state: str = ""):
    """Cities with testing centers in one state."""
    if not state.strip():
        raise HTTPException(status_code=400, detail="State parameter is required")
    centers = filter_entries(_catalog(request, SOIL_CENTERS).all(), {"state": state})
    return _ok(request, distinct_values(centers, "city"))


# --- Mandi (market) locator ---


@app.get("/api/mandi/nearby")
def mandi_nearby(
    request: Request,
    latitude: float | None = None,
    longitude: float | None = None,
    radius: float | None = None,
    state: str | None = None,
    type_: str | None = Query(default=None, alias="type"),
    limit: int | None = None,
):
    """Mandis within radius km (1-200, default 50) of the given point, nearest first."""
    if latitude is None or longitude is None:
        raise HTTPException(status_code=400, detail="Valid latitude and longitude required")
    query = _query_point(latitude, longitude)
    radius_km = _radius_km(radius, settings.mandi_max_radius_km)
    limit = _limit(limit)
    result = search(
        _catalog(request, MANDIS),
        query=query,
        criteria={"state": state, "type": type_},
        radius_km=radius_km,
        limit=limit,
    )
    record_search(MANDIS)
    logger.info(
        "telemetry route=mandi_nearby state=%s radius_km=%s results=%s",
        state,
        radius_km,
        result.total,
    )
    filters = SearchFilters(
        state=state or None,
        type=type_ or None,
        coordinates=Coordinates(latitude=query.latitude, longitude=query.longitude),
        radius=radius_km,
    )
    return _ok(
        request,
        search_payload("items", result.hits, filters),
        message=f"Found {result.total} mandis within {radius_km:g}km",
    )


@app.get("/api/mandi/markets/{market_id}")
def mandi_market(request: Request, market_id: str):
    try:
        market = _catalog(request, MANDIS).by_id(market_id)
    except EntryNotFound as e:
        raise HTTPException(status_code=404, detail="Mandi not found") from e
    return _ok(request, market.to_dict())


# --- Location lookup (OpenWeather geocoding) ---


def _geocoder(request: Request) -> OpenWeatherGeocoder:
    geocoder: OpenWeatherGeocoder | None = getattr(request.app.state, "geocoder", None)
    if geocoder is None:
        raise HTTPException(
            status_code=503,
            detail="Geocoding not configured. Set OPENWEATHER_API_KEY in the environment.",
        )
    return geocoder


@app.get("/api/location/reverse")
def location_reverse(request: Request, latitude: float | None = None, longitude: float | None = None):
    """State, district and country for a coordinate (pre-fills the state filter)."""
    if latitude is None or longitude is None:
        raise HTTPException(status_code=400, detail="Valid latitude and longitude required")
    point = _query_point(latitude, longitude)
    geocoder = _geocoder(request)
    try:
        location = geocoder.reverse(point.latitude, point.longitude)
    except RuntimeError as e:
        logger.warning("telemetry location_reverse_error error=%s", str(e))
        raise HTTPException(status_code=502, detail="Geocoding service unavailable. Try again.") from e
    return _ok(request, location)


@app.get("/api/location/search")
def location_search(request: Request, q: str = ""):
    """Resolve a village, town or district name to coordinates for the nearby searches."""
    query = (q or "").strip()
    if len(query) < 2 or len(query) > PLACE_QUERY_MAX_LEN:
        raise HTTPException(status_code=400, detail="Provide a place name (e.g. Nashik, or Hisar, Haryana).")
    geocoder = _geocoder(request)
    try:
        place = geocoder.search(query)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except RuntimeError as e:
        logger.warning("telemetry location_search_error q=%s error=%s", query[:50], str(e))
        raise HTTPException(status_code=502, detail="Geocoding service unavailable. Try again.") from e
    return _ok(request, place)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
