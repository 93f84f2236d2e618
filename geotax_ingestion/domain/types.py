"""
geotax_ingestion.domain.types -- Pure frozen dataclasses for the import pipeline.

ZERO I/O. Imports only pure types from the kernel and services layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from geotax_kernel.domain.values import GeoPoint, TaxCacheKey
from geotax_kernel.exceptions import ChunkCommitError, RowValidationError
from geotax_services.tax_cache import CacheStats


# =============================================================================
# Run stages
# =============================================================================


class ImportRunStage(str, Enum):
    """Stages of one import run, in the order they are entered."""

    READING = "reading"
    VALIDATING = "validating"
    CHUNKING = "chunking"
    DEDUPLICATING = "deduplicating"  # per chunk
    RESOLVING = "resolving"  # per chunk
    COMPOSING = "composing"  # per chunk
    COMMITTING = "committing"  # per chunk
    FINALIZING = "finalizing"


class ImportRunStatus(str, Enum):
    """Terminal status recorded on the import log."""

    RUNNING = "running"
    COMPLETED = "completed"  # every row imported
    PARTIAL = "partial"  # some rows or chunks failed
    FAILED = "failed"  # nothing imported


# =============================================================================
# Row DTOs
# =============================================================================

# Undecodable input bytes are read as this character.
REPLACEMENT_CHAR = "\ufffd"


@dataclass(frozen=True)
class RawOrderRow:
    """One source record with canonical field names; values are untouched text."""

    row_number: int  # 1-indexed data row (header excluded)
    latitude: str | None
    longitude: str | None
    subtotal: str | None
    timestamp: str | None = None


@dataclass(frozen=True)
class ValidatedOrderRow:
    """A row that passed validation; subtotal keeps its exact source digits."""

    row_number: int
    point: GeoPoint
    subtotal: Decimal
    timestamp: datetime

    @property
    def cache_key(self) -> TaxCacheKey:
        return TaxCacheKey.for_timestamp(self.point, self.timestamp)


@dataclass(frozen=True)
class RowValidationOutcome:
    """Either a validated row or the first error found for the row."""

    row: ValidatedOrderRow | None = None
    error: RowValidationError | None = None

    @property
    def is_valid(self) -> bool:
        return self.row is not None


# =============================================================================
# Chunk and run results
# =============================================================================


@dataclass(frozen=True)
class ChunkOutcome:
    """Result of processing one chunk: all rows imported, or none."""

    chunk_index: int
    row_count: int
    imported: int = 0
    resolved_keys: int = 0
    error: ChunkCommitError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def errors(self) -> int:
        return self.row_count if self.failed else 0


@dataclass(frozen=True)
class ImportRunResult:
    """
    Summary of a finished run.

    ``errors`` counts invalid rows plus every row of a failed chunk.
    ``validation_errors`` holds only the first few row failures;
    ``failed_chunks`` holds every chunk failure.
    """

    import_id: UUID
    file_hash: str
    filename: str
    total_rows: int
    imported: int
    errors: int
    status: ImportRunStatus
    validation_errors: tuple[RowValidationError, ...] = ()
    failed_chunks: tuple[ChunkCommitError, ...] = ()
    elapsed_ms: int = 0
    cache_stats: CacheStats | None = None
    file_size_bytes: int = 0
    chunk_count: int = 0
