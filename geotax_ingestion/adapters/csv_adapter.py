"""
CSV order adapter.

Uses csv.DictReader and streams rows. Headers are matched case-insensitively
after trimming, with aliases for the coordinate columns:

    latitude   <- lat, latitude
    longitude  <- lon, lng, long, longitude
    subtotal   <- subtotal
    timestamp  <- timestamp (optional column)

When two source columns alias the same field, the first non-empty value
wins (so a file carrying both ``lat`` and ``latitude`` still works).
Options: delimiter, encoding. Handles BOM via utf-8-sig when encoding is
utf-8. Undecodable bytes become U+FFFD (REPLACEMENT_CHAR) instead of
aborting the read; the row validator rejects rows carrying one.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterator

from geotax_ingestion.adapters.base import SourceProbe
from geotax_ingestion.domain.types import REPLACEMENT_CHAR, RawOrderRow

HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "latitude": ("lat", "latitude"),
    "longitude": ("lon", "lng", "long", "longitude"),
    "subtotal": ("subtotal",),
    "timestamp": ("timestamp",),
}

REQUIRED_FIELDS = ("latitude", "longitude", "subtotal")

_SAMPLE_SIZE = 5


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return enc


def resolve_columns(fieldnames: list[str] | tuple[str, ...] | None) -> dict[str, list[str]]:
    """Canonical field -> source headers that alias it, in header order."""
    resolved: dict[str, list[str]] = {name: [] for name in HEADER_ALIASES}
    for header in fieldnames or ():
        if header is None:
            continue
        key = header.strip().lower()
        for canonical, aliases in HEADER_ALIASES.items():
            if key in aliases:
                resolved[canonical].append(header)
                break
    return resolved


def _pick(record: dict[str, Any], headers: list[str]) -> str | None:
    for header in headers:
        value = record.get(header)
        if value is None:
            continue
        value = value.strip()
        if value:
            return value
    return None


def _to_raw(record: dict[str, Any], columns: dict[str, list[str]], row_number: int) -> RawOrderRow:
    return RawOrderRow(
        row_number=row_number,
        latitude=_pick(record, columns["latitude"]),
        longitude=_pick(record, columns["longitude"]),
        subtotal=_pick(record, columns["subtotal"]),
        timestamp=_pick(record, columns["timestamp"]),
    )


class CsvOrderAdapter:
    """Read order CSV files as one RawOrderRow per line. Streams."""

    def read(self, source_path: Path, options: dict[str, Any] | None = None) -> Iterator[RawOrderRow]:
        options = options or {}
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")

        with Path(source_path).open("r", encoding=encoding, errors="replace", newline="") as f:
            reader = csv.DictReader(f, delimiter=delimiter)
            columns = resolve_columns(reader.fieldnames)
            for row_number, record in enumerate(reader, start=1):
                yield _to_raw(record, columns, row_number)

    def probe(self, source_path: Path, options: dict[str, Any] | None = None) -> SourceProbe:
        options = options or {}
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")

        with Path(source_path).open("r", encoding=encoding, errors="replace", newline="") as f:
            reader = csv.DictReader(f, delimiter=delimiter)
            columns_tuple = tuple(reader.fieldnames or ())
            columns = resolve_columns(columns_tuple)
            sample: list[RawOrderRow] = []
            count = 0
            for record in reader:
                count += 1
                if len(sample) < _SAMPLE_SIZE:
                    sample.append(_to_raw(record, columns, count))

        return SourceProbe(
            row_count=count,
            columns=columns_tuple,
            sample_rows=tuple(sample),
            column_map={k: v[0] for k, v in columns.items() if v},
            missing_fields=tuple(f for f in REQUIRED_FIELDS if not columns[f]),
            encoding=encoding,
        )
