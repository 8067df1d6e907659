"""Tests for the CSV -> catalog JSON build script."""
import json

from scripts.build_catalog import main, read_records

HEADER = "id,name,city,state,type,lat,lng,commodities\n"


def _write_csv(path, rows):
    path.write_text(HEADER + "".join(rows), encoding="utf-8")
    return path


def test_builds_catalog_from_csv(tmp_path):
    csv_path = _write_csv(
        tmp_path / "mandis.csv",
        [
            "MH-PUN-01,Pune APMC,Pune,Maharashtra,APMC,18.5018,73.8636,Onion|Potato\n",
            "MH-NSK-01,Nashik APMC,Nashik,Maharashtra,APMC,19.9975,73.7898,\n",
        ],
    )
    out = tmp_path / "data" / "mandis.json"
    assert main(["--csv", str(csv_path), "--out", str(out)]) == 0
    records = json.loads(out.read_text(encoding="utf-8"))
    assert [r["id"] for r in records] == ["MH-PUN-01", "MH-NSK-01"]
    assert records[0]["commodities"] == ["Onion", "Potato"]
    assert records[0]["latitude"] == 18.5018
    assert "commodities" not in records[1]
    assert not (tmp_path / "data" / "mandis.json.tmp").exists()


def test_invalid_records_leave_existing_output_unchanged(tmp_path, capsys):
    out = tmp_path / "mandis.json"
    original = '[{"id": "OK-01", "name": "Good", "latitude": 18.5, "longitude": 73.8}]\n'
    out.write_text(original, encoding="utf-8")
    csv_path = _write_csv(
        tmp_path / "dup.csv",
        [
            "X,One,Pune,Maharashtra,APMC,18.5,73.8,\n",
            "X,Two,Pune,Maharashtra,APMC,18.6,73.9,\n",
        ],
    )
    assert main(["--csv", str(csv_path), "--out", str(out)]) == 1
    assert out.read_text(encoding="utf-8") == original
    assert "duplicate id 'X'" in capsys.readouterr().err


def test_out_of_range_coordinates_rejected_before_write(tmp_path):
    out = tmp_path / "centers.json"
    csv_path = _write_csv(tmp_path / "bad.csv", ["KA001,Lab,Mysore,Karnataka,Govt,95.0,76.6,\n"])
    assert main(["--csv", str(csv_path), "--out", str(out)]) == 1
    assert not out.exists()


def test_unparseable_coordinates_warn_and_skip(tmp_path, capsys):
    csv_path = _write_csv(
        tmp_path / "mixed.csv",
        [
            "PB-LDH-01,Ludhiana APMC,Ludhiana,Punjab,APMC,30.9010,75.8573,\n",
            "PB-ASR-01,Amritsar APMC,Amritsar,Punjab,APMC,n/a,74.8723,\n",
        ],
    )
    records = read_records(csv_path, set())
    assert [r["id"] for r in records] == ["PB-LDH-01"]
    err = capsys.readouterr().err
    assert "PB-ASR-01" in err
    assert "line 3" in err
