"""Tests for attribute filtering (case-insensitive equality, AND of criteria)."""
from agriguru.data.catalog import build_catalog
from agriguru.search.filters import active_criteria, distinct_values, filter_entries

CATALOG = build_catalog(
    "centers",
    [
        {"id": "1", "state": "karnataka", "city": "Bangalore", "type": "University", "latitude": 13.08, "longitude": 77.59},
        {"id": "2", "state": "Maharashtra", "city": "Pune", "type": "Government", "latitude": 18.52, "longitude": 73.85},
        {"id": "3", "state": "Karnataka", "city": "Mysore", "type": "Government", "latitude": 12.29, "longitude": 76.63},
        {"id": "4", "state": "KARNATAKA", "city": "bangalore", "type": "Private", "latitude": 12.84, "longitude": 77.66},
        {"id": "5", "city": "Unknown", "latitude": 10.0, "longitude": 76.0},
    ],
)
ENTRIES = CATALOG.all()


def ids(entries):
    return [e.id for e in entries]


def test_empty_criteria_returns_all_entries_unchanged():
    assert filter_entries(ENTRIES, {}) == list(ENTRIES)
    assert filter_entries(ENTRIES, None) == list(ENTRIES)


def test_blank_and_none_criteria_are_ignored():
    assert filter_entries(ENTRIES, {"state": None, "city": "  "}) == list(ENTRIES)


def test_state_match_is_case_insensitive():
    assert ids(filter_entries(ENTRIES, {"state": "Karnataka"})) == ["1", "3", "4"]
    assert ids(filter_entries(ENTRIES, {"state": " karnataka "})) == ["1", "3", "4"]


def test_criteria_are_anded():
    assert ids(filter_entries(ENTRIES, {"state": "karnataka", "city": "BANGALORE"})) == ["1", "4"]
    assert ids(filter_entries(ENTRIES, {"state": "karnataka", "city": "bangalore", "type": "private"})) == ["4"]


def test_no_match_returns_empty():
    assert filter_entries(ENTRIES, {"state": "Kerala"}) == []


def test_unknown_key_yields_empty_not_error():
    assert filter_entries(ENTRIES, {"district": "Pune"}) == []


def test_entries_missing_attribute_do_not_match():
    assert "5" not in ids(filter_entries(ENTRIES, {"city": "unknown", "state": "Kerala"}))
    assert ids(filter_entries(ENTRIES, {"city": "unknown"})) == ["5"]


def test_filter_empty_input():
    assert filter_entries([], {"state": "Karnataka"}) == []


def test_active_criteria_normalizes():
    assert active_criteria({"state": " Karnataka", "city": "", "type": None}) == {"state": "karnataka"}


def test_distinct_values_sorted_unique():
    assert distinct_values(ENTRIES, "type") == ["Government", "Private", "University"]
    assert distinct_values(ENTRIES, "district") == []
