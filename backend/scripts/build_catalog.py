#!/usr/bin/env python3
"""
Build a catalog JSON file (soil-testing centers, mandis) from a CSV export.

CSV must have columns: id, name, latitude, longitude
(optional: state, city, type, and any other column, kept as-is).
Columns named lat/lng or lat/lon are accepted for the coordinates.
List-valued columns can hold "|"-separated values, e.g. facilities.

Records are validated with the same catalog builder the API uses at start-up;
the output file is only replaced when they load cleanly.

Usage:
  python scripts/build_catalog.py --csv exports/mandis.csv --out data/mandis.json
  python scripts/build_catalog.py --csv labs.csv --out data/soil_testing_centers.json --list-columns facilities
"""
import argparse
import csv
import json
import os
import sys
from pathlib import Path

# Add backend root to path
backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend))

from agriguru.data.catalog import CatalogLoadError, build_catalog

LAT_ALIASES = ("latitude", "lat")
LNG_ALIASES = ("longitude", "lng", "lon")


def _pick(fieldnames: list[str], aliases: tuple[str, ...]) -> str | None:
    for a in aliases:
        if a in fieldnames:
            return a
    return None


def read_records(csv_path: Path, list_columns: set[str]) -> list[dict]:
    with open(csv_path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            raise ValueError("empty CSV")
        # Normalize headers (strip BOM / spaces)
        fieldnames = [h.strip().lower().lstrip("\ufeff") for h in reader.fieldnames]
        lat_col = _pick(fieldnames, LAT_ALIASES)
        lng_col = _pick(fieldnames, LNG_ALIASES)
        if lat_col is None or lng_col is None or "name" not in fieldnames:
            raise ValueError(f"CSV must have name and latitude/longitude columns. Got: {fieldnames}")

        records = []
        for row in reader:
            row = {k.strip().lower().lstrip("\ufeff"): (v or "").strip() for k, v in row.items() if k}
            if not row.get("name"):
                continue
            try:
                lat = float(row.pop(lat_col))
                lng = float(row.pop(lng_col))
            except (TypeError, ValueError):
                print(
                    f"Warning: skipping line {reader.line_num} ({row.get('id') or row['name']}): "
                    "latitude/longitude not numeric",
                    file=sys.stderr,
                )
                continue
            record: dict = {}
            for k, v in row.items():
                if v == "":
                    continue
                record[k] = [p.strip() for p in v.split("|") if p.strip()] if k in list_columns else v
            record["latitude"] = lat
            record["longitude"] = lng
            records.append(record)
    return records


def write_catalog(records: list[dict], out: Path) -> None:
    """Write to a sibling temp file, then swap it in so a crash never leaves a partial file."""
    out.parent.mkdir(parents=True, exist_ok=True)
    tmp = out.with_name(out.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)
        f.write("\n")
    os.replace(tmp, out)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build catalog JSON from CSV")
    parser.add_argument("--csv", required=True, type=Path, help="Input CSV")
    parser.add_argument("--out", required=True, type=Path, help="Output JSON (e.g. data/mandis.json)")
    parser.add_argument(
        "--list-columns",
        default="facilities,commodities",
        help="Comma-separated columns holding |-separated lists",
    )
    args = parser.parse_args(argv)

    if not args.csv.exists():
        print(f"Error: CSV not found: {args.csv}", file=sys.stderr)
        return 1

    list_columns = {c.strip().lower() for c in args.list_columns.split(",") if c.strip()}
    try:
        records = read_records(args.csv, list_columns)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Validate before touching --out; it is usually the file the API loads at start-up
    try:
        catalog = build_catalog(args.out.stem, records)
    except CatalogLoadError as e:
        print(f"Error: {args.out} left unchanged: {e}", file=sys.stderr)
        return 1

    write_catalog(records, args.out)
    print(f"Wrote {len(catalog)} entries to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
