"""
Catalog search: attribute filter, then proximity ranking when a query point is given.
"""
from collections.abc import Mapping
from typing import NamedTuple

from agriguru.data.catalog import Catalog, CatalogEntry
from agriguru.data.geo import GeoPoint
from agriguru.search.filters import filter_entries
from agriguru.search.ranker import rank


class SearchHit(NamedTuple):
    entry: CatalogEntry
    distance_km: float | None  # None when searched without a query point


class SearchResult(NamedTuple):
    hits: list[SearchHit]
    total: int


def search(
    catalog: Catalog,
    query: GeoPoint | None = None,
    criteria: Mapping[str, str | None] | None = None,
    radius_km: float | None = None,
    limit: int | None = None,
) -> SearchResult:
    """
    Filter catalog by criteria, then rank by distance to query.
    Without a query point hits keep catalog order; radius_km only applies with query.
    """
    entries = filter_entries(catalog.all(), criteria)
    if query is not None:
        hits = [SearchHit(r.entry, r.distance_km) for r in rank(entries, query, radius_km=radius_km)]
    else:
        hits = [SearchHit(e, None) for e in entries]
    if limit is not None:
        hits = hits[: max(0, limit)]
    return SearchResult(hits=hits, total=len(hits))
