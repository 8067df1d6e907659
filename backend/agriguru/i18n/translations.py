"""
UI string tables, loaded once at start-up and shared read-only by every request.
"""
import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


class Translations:
    """Language code -> {key: text}. English is the fallback for missing keys."""

    def __init__(self, tables: Mapping[str, Mapping[str, str]], default: str = DEFAULT_LANGUAGE):
        if default not in tables:
            raise ValueError(f"Default language '{default}' has no translation table.")
        self.default = default
        self._tables = MappingProxyType({code: MappingProxyType(dict(t)) for code, t in tables.items()})

    @property
    def languages(self) -> list[str]:
        return sorted(self._tables)

    def table(self, code: str) -> Mapping[str, str]:
        return self._tables.get(code) or self._tables[self.default]

    def translate(self, key: str, code: str) -> str:
        return self.table(code).get(key) or self._tables[self.default].get(key) or key

    def resolve(self, candidates: Iterable[str | None]) -> str:
        """First supported code among candidates (case and region insensitive), else the default."""
        for c in candidates:
            if not c:
                continue
            code = c.strip().lower().replace("_", "-").split("-")[0]
            if code in self._tables:
                return code
        return self.default


def parse_accept_language(header: str | None) -> list[str]:
    """Language tags from an Accept-Language header, highest q first."""
    if not header:
        return []
    weighted: list[tuple[float, int, str]] = []
    for i, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        tag = tag.strip()
        if not tag or tag == "*":
            continue
        q = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                q = float(params[2:])
            except ValueError:
                q = 0.0
        weighted.append((-q, i, tag))
    weighted.sort()
    return [tag for _, _, tag in weighted]


def load_translations(path: str | Path, default: str = DEFAULT_LANGUAGE) -> Translations:
    with open(path, encoding="utf-8") as f:
        tables = json.load(f)
    translations = Translations(tables, default=default)
    logger.info("telemetry translations_loaded languages=%s", ",".join(translations.languages))
    return translations
