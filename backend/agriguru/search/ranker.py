"""
Proximity ranking: order catalog entries by great-circle distance to a query point.
"""
from collections.abc import Iterable
from typing import NamedTuple

from agriguru.data.catalog import CatalogEntry
from agriguru.data.geo import GeoPoint, distance_km


class RankedResult(NamedTuple):
    entry: CatalogEntry
    distance_km: float


def rank(
    entries: Iterable[CatalogEntry],
    query: GeoPoint,
    radius_km: float | None = None,
) -> list[RankedResult]:
    """
    Return entries within radius_km of query (all of them when radius_km is None),
    nearest first. Entries exactly on the radius are kept; equal distances keep
    their input order.
    """
    with_dist: list[RankedResult] = []
    for e in entries:
        d = distance_km(e.location, query)
        if radius_km is not None and d > radius_km:
            continue
        with_dist.append(RankedResult(entry=e, distance_km=d))
    with_dist.sort(key=lambda r: r.distance_km)
    return with_dist
