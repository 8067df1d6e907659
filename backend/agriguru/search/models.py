"""Pydantic models for catalog search responses."""
from typing import Any

from pydantic import BaseModel, ConfigDict

from agriguru.search.service import SearchHit


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class CatalogItem(BaseModel):
    """One catalog record; facility-specific fields (name, cost, ...) pass through as extras."""

    model_config = ConfigDict(extra="allow")

    id: str
    latitude: float
    longitude: float
    distance_km: float | None = None


class SearchFilters(BaseModel):
    state: str | None = None
    city: str | None = None
    type: str | None = None
    coordinates: Coordinates | None = None
    radius: float | None = None


def item_from_hit(hit: SearchHit) -> dict[str, Any]:
    data: dict[str, Any] = hit.entry.to_dict()
    if hit.distance_km is not None:
        data["distance_km"] = round(hit.distance_km, 2)
    item = CatalogItem(**data).model_dump()
    if item["distance_km"] is None:
        del item["distance_km"]
    return item


def search_payload(items_key: str, hits: list[SearchHit], filters: SearchFilters) -> dict[str, Any]:
    """Body of a search response: {<items_key>: [...], total, filters}."""
    return {
        items_key: [item_from_hit(h) for h in hits],
        "total": len(hits),
        "filters": filters.model_dump(),
    }
