"""Tests for CsvOrderAdapter: header aliases, BOM handling, probing."""

from geotax_ingestion.adapters.csv_adapter import CsvOrderAdapter, resolve_columns
from geotax_ingestion.domain.types import REPLACEMENT_CHAR


class TestResolveColumns:
    def test_aliases_case_and_whitespace(self):
        columns = resolve_columns([" LAT ", "Lng", "Subtotal", "timestamp"])
        assert columns["latitude"] == [" LAT "]
        assert columns["longitude"] == ["Lng"]
        assert columns["subtotal"] == ["Subtotal"]
        assert columns["timestamp"] == ["timestamp"]

    def test_unknown_headers_ignored(self):
        columns = resolve_columns(["id", "latitude", "longitude", "subtotal", "note"])
        assert columns["timestamp"] == []

    def test_none_fieldnames(self):
        assert resolve_columns(None) == {
            "latitude": [],
            "longitude": [],
            "subtotal": [],
            "timestamp": [],
        }


class TestRead:
    def test_rows_numbered_from_one(self, write_csv):
        path = write_csv(
            ["id", "lat", "lon", "subtotal", "timestamp"],
            [
                [1, "40.7484", "-73.9857", "100.00", "2025-03-01T15:00:00Z"],
                [2, "42.6526", "-73.7562", "12.50", ""],
            ],
        )
        rows = list(CsvOrderAdapter().read(path))
        assert [r.row_number for r in rows] == [1, 2]
        assert rows[0].latitude == "40.7484"
        assert rows[0].longitude == "-73.9857"
        assert rows[0].subtotal == "100.00"
        assert rows[0].timestamp == "2025-03-01T15:00:00Z"
        assert rows[1].timestamp is None

    def test_values_kept_as_text(self, write_csv):
        path = write_csv(["latitude", "longitude", "subtotal"], [["40.70", "-74.00", "10.10"]])
        (row,) = CsvOrderAdapter().read(path)
        assert row.latitude == "40.70"
        assert row.subtotal == "10.10"

    def test_first_non_empty_alias_wins(self, write_csv):
        path = write_csv(
            ["lat", "latitude", "lon", "subtotal"],
            [["", "40.75", "-73.98", "5"]],
        )
        (row,) = CsvOrderAdapter().read(path)
        assert row.latitude == "40.75"

    def test_bom_stripped(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufefflatitude,longitude,subtotal\n40.7,-73.9,1.00\n".encode("utf-8"))
        (row,) = CsvOrderAdapter().read(path)
        assert row.latitude == "40.7"

    def test_semicolon_delimiter(self, tmp_path):
        path = tmp_path / "semi.csv"
        path.write_text("lat;lon;subtotal\n40.7;-73.9;1.00\n", encoding="utf-8")
        (row,) = CsvOrderAdapter().read(path, {"delimiter": ";"})
        assert row.longitude == "-73.9"

    def test_undecodable_bytes_replaced(self, tmp_path):
        path = tmp_path / "latin.csv"
        path.write_bytes(b"lat,lon,subtotal\n40.7,-73.9,1.00\n40.8,-73.9,2\xff\xfe\n")
        first, second = CsvOrderAdapter().read(path)
        assert first.subtotal == "1.00"
        assert second.subtotal == "2" + REPLACEMENT_CHAR * 2

    def test_missing_column_yields_none(self, write_csv):
        path = write_csv(["lat", "lon"], [["40.7", "-73.9"]])
        (row,) = CsvOrderAdapter().read(path)
        assert row.subtotal is None

    def test_streams_lazily(self, write_csv):
        path = write_csv(["lat", "lon", "subtotal"], [["40.7", "-73.9", "1"]] * 3)
        rows = CsvOrderAdapter().read(path)
        assert next(rows).row_number == 1


class TestProbe:
    def test_probe_summary(self, write_csv):
        path = write_csv(
            ["id", "lat", "lon", "subtotal"],
            [[i, "40.7", "-73.9", "1.00"] for i in range(8)],
        )
        probe = CsvOrderAdapter().probe(path)
        assert probe.row_count == 8
        assert probe.columns == ("id", "lat", "lon", "subtotal")
        assert len(probe.sample_rows) == 5
        assert probe.column_map == {"latitude": "lat", "longitude": "lon", "subtotal": "subtotal"}
        assert probe.missing_fields == ()
        assert probe.encoding == "utf-8-sig"

    def test_probe_reports_missing_fields(self, write_csv):
        path = write_csv(["lat", "amount"], [["40.7", "1.00"]])
        probe = CsvOrderAdapter().probe(path)
        assert probe.missing_fields == ("longitude", "subtotal")
