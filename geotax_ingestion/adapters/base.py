"""
Source adapter protocol and probe DTO.

Contract:
    SourceAdapter.read() yields one RawOrderRow per source record (streaming).
    SourceAdapter.probe() returns a quick snapshot: row count, columns,
    sample rows, and which source columns the canonical fields came from.

Architecture: geotax_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable

from geotax_ingestion.domain.types import RawOrderRow


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading order files into raw rows."""

    def read(self, source_path: Path, options: dict[str, Any] | None = None) -> Iterator[RawOrderRow]:
        """Yield one row per source record. Streams; does not load entire file."""
        ...

    def probe(self, source_path: Path, options: dict[str, Any] | None = None) -> "SourceProbe":
        """Quick probe: row count, detected columns, sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a source file."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[RawOrderRow, ...]  # First 5 rows
    column_map: dict[str, str] = field(default_factory=dict)  # canonical -> source header
    missing_fields: tuple[str, ...] = ()
    encoding: str | None = None
