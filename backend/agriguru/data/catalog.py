"""
Read-only, in-memory catalogs of located facilities (soil-testing centers, mandis).

A catalog is loaded once from a static JSON file at process start and never
mutated afterwards; entries are handed out by reference to every request.
"""
import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, NamedTuple

from agriguru.data.geo import GeoPoint, is_valid_point

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE_KEYS = ("state", "city", "type")
_LOCATION_KEYS = frozenset({"id", "latitude", "longitude"})


class EntryNotFound(LookupError):
    """No catalog entry has the requested id."""


class CatalogLoadError(ValueError):
    """The static catalog source is malformed."""


class CatalogEntry(NamedTuple):
    id: str
    location: GeoPoint
    attributes: Mapping[str, str]
    payload: Mapping[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Full record as served over HTTP: id, attributes, payload, coordinates."""
        return {
            "id": self.id,
            **self.attributes,
            **self.payload,
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
        }


class Catalog:
    """Immutable collection of CatalogEntry with lookup by id."""

    def __init__(self, name: str, entries: Iterable[CatalogEntry]):
        self.name = name
        self._entries = tuple(entries)
        by_id: dict[str, CatalogEntry] = {}
        for e in self._entries:
            if e.id in by_id:
                raise CatalogLoadError(f"{name}: duplicate id '{e.id}'")
            by_id[e.id] = e
        self._by_id = MappingProxyType(by_id)

    def all(self) -> tuple[CatalogEntry, ...]:
        """Entries in load order. The order carries no distance meaning."""
        return self._entries

    def by_id(self, entry_id: str) -> CatalogEntry:
        try:
            return self._by_id[entry_id]
        except KeyError:
            raise EntryNotFound(f"{self.name}: no entry with id '{entry_id}'") from None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"Catalog(name={self.name!r}, size={len(self._entries)})"


def _coordinate(record: Mapping[str, Any], key: str, position: int) -> float:
    value = record.get(key)
    if isinstance(value, bool):
        value = None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise CatalogLoadError(f"record {position}: '{key}' must be a number, got {value!r}") from None


def entry_from_record(
    record: Mapping[str, Any],
    position: int,
    id_prefix: str = "",
    attribute_keys: Iterable[str] = DEFAULT_ATTRIBUTE_KEYS,
) -> CatalogEntry:
    """
    Build a CatalogEntry from one raw record.
    The record's own id is kept; records without one get <prefix><position:03d>.
    """
    if not isinstance(record, Mapping):
        raise CatalogLoadError(f"record {position}: expected an object, got {type(record).__name__}")
    lat = _coordinate(record, "latitude", position)
    lng = _coordinate(record, "longitude", position)
    if not is_valid_point(lat, lng):
        raise CatalogLoadError(f"record {position}: coordinates out of range ({lat}, {lng})")

    raw_id = record.get("id")
    entry_id = str(raw_id).strip() if raw_id is not None else ""
    if not entry_id:
        entry_id = f"{id_prefix}{position:03d}"

    keys = tuple(attribute_keys)
    attributes = {k: str(record[k]) for k in keys if record.get(k) is not None}
    payload = {k: v for k, v in record.items() if k not in _LOCATION_KEYS and k not in keys}
    return CatalogEntry(
        id=entry_id,
        location=GeoPoint(lat, lng),
        attributes=MappingProxyType(attributes),
        payload=MappingProxyType(payload),
    )


def build_catalog(
    name: str,
    records: Iterable[Mapping[str, Any]],
    id_prefix: str = "",
    attribute_keys: Iterable[str] = DEFAULT_ATTRIBUTE_KEYS,
) -> Catalog:
    keys = tuple(attribute_keys)
    entries = [
        entry_from_record(r, i, id_prefix=id_prefix, attribute_keys=keys)
        for i, r in enumerate(records, start=1)
    ]
    return Catalog(name, entries)


def load_catalog(
    path: str | Path,
    name: str | None = None,
    id_prefix: str = "",
    attribute_keys: Iterable[str] = DEFAULT_ATTRIBUTE_KEYS,
) -> Catalog:
    """
    Load a catalog from a JSON file holding a list of records
    (or an object with the list under "entries").
    """
    path = Path(path)
    name = name or path.stem
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise CatalogLoadError(f"{name}: catalog file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"{name}: invalid JSON in {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("entries")
    if not isinstance(raw, list):
        raise CatalogLoadError(f"{name}: expected a list of records in {path}")

    catalog = build_catalog(name, raw, id_prefix=id_prefix, attribute_keys=attribute_keys)
    logger.info("telemetry catalog_loaded name=%s size=%s path=%s", name, len(catalog), path)
    return catalog
