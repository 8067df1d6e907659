"""Attribute filters over catalog entries (case-insensitive equality)."""
from collections.abc import Iterable, Mapping, Sequence

from agriguru.data.catalog import CatalogEntry


def _norm(value: str) -> str:
    return value.strip().lower()


def active_criteria(criteria: Mapping[str, str | None] | None) -> dict[str, str]:
    """Drop criteria whose value is None or blank; normalize the rest."""
    if not criteria:
        return {}
    return {k: _norm(v) for k, v in criteria.items() if v is not None and v.strip()}


def filter_entries(
    entries: Sequence[CatalogEntry],
    criteria: Mapping[str, str | None] | None = None,
) -> list[CatalogEntry]:
    """
    Keep entries whose attributes match every active criterion, in catalog order.
    An attribute key no entry carries simply matches nothing.
    """
    wanted = active_criteria(criteria)
    if not wanted:
        return list(entries)
    out = []
    for e in entries:
        for key, expected in wanted.items():
            actual = e.attributes.get(key)
            if actual is None or _norm(actual) != expected:
                break
        else:
            out.append(e)
    return out


def distinct_values(entries: Iterable[CatalogEntry], key: str) -> list[str]:
    """Sorted unique values of one attribute (entries lacking it are skipped)."""
    return sorted({e.attributes[key] for e in entries if key in e.attributes})
