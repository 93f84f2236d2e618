"""
ImportRunContext -- everything one import run shares across its chunks.

Created at run start by ImportService and discarded when the run ends.
Holds the session factory (pool handle), the resolver, the run's tax
cache and the tuning settings; nothing here outlives the run, and no
module-level pool or cache exists.

Counters are updated by chunk workers under ``_lock``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from geotax_config.schema import ImportSettings
from geotax_kernel.domain.clock import Clock
from geotax_kernel.exceptions import ChunkCommitError, RowValidationError
from geotax_kernel.logging_config import get_logger
from geotax_kernel.services.jurisdiction_resolver import JurisdictionResolver
from geotax_kernel.services.order_writer import OrderWriter
from geotax_services.tax_cache import DeduplicatingTaxCache

from geotax_ingestion.domain.types import ChunkOutcome, ImportRunStage

logger = get_logger("ingestion.run_context")


@dataclass
class ImportRunContext:
    import_id: UUID
    file_hash: str
    filename: str
    file_size_bytes: int
    session_factory: sessionmaker[Session]
    resolver: JurisdictionResolver
    order_writer: OrderWriter
    settings: ImportSettings
    clock: Clock
    cache: DeduplicatingTaxCache = field(default_factory=DeduplicatingTaxCache)

    stage: ImportRunStage = ImportRunStage.READING
    total_rows: int = 0
    invalid_rows: int = 0
    imported: int = 0
    chunk_errors: int = 0
    chunk_count: int = 0
    validation_errors: list[RowValidationError] = field(default_factory=list)
    failed_chunks: list[ChunkCommitError] = field(default_factory=list)

    _started: float = field(init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self._started = self.clock.monotonic()

    def enter(self, stage: ImportRunStage) -> None:
        """Record a run-level stage transition."""
        self.stage = stage
        logger.info("import_stage_entered", extra={"stage": stage.value})

    def record_invalid(self, error: RowValidationError) -> None:
        # Only the validating thread calls this; no lock needed.
        self.total_rows += 1
        self.invalid_rows += 1
        if len(self.validation_errors) < self.settings.max_reported_errors:
            self.validation_errors.append(error)
            logger.warning(
                "row_validation_failed",
                extra={
                    "row_number": error.row_number,
                    "field": error.field,
                    "reason": error.reason,
                },
            )

    def record_valid(self) -> None:
        self.total_rows += 1

    def record_chunk(self, outcome: ChunkOutcome) -> None:
        with self._lock:
            self.chunk_count += 1
            self.imported += outcome.imported
            if outcome.error is not None:
                self.chunk_errors += outcome.errors
                self.failed_chunks.append(outcome.error)

    @property
    def errors(self) -> int:
        return self.invalid_rows + self.chunk_errors

    def elapsed_ms(self) -> int:
        return self.clock.elapsed_ms(self._started)
