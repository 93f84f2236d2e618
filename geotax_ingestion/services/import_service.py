"""
Import service: hash -> guard -> read -> validate -> chunk -> resolve -> commit.

Orchestrates the CSV adapter, row validation, the jurisdiction resolver,
the tax composer and the per-run tax cache.  Uses structured logging
(LogContext, get_logger("ingestion.*")).

Run flow:
    1. Hash the file in fixed-size blocks (SHA-256) without buffering it.
    2. Reject a file whose hash is already logged (DuplicateRunError),
       before any log row exists.
    3. Create the import log row; its id tags every order of the run.
    4. Stream, validate and chunk rows; invalid rows are counted and the
       first few kept for diagnostics.
    5. Process chunks on a bounded thread pool.  Each chunk is one
       transaction: cache diff, one resolve_batch for new keys, compose,
       publish to the cache, build records, insert, commit.  A failing
       chunk is rolled back whole and its rows counted as errors.
    6. Finalize the import log with counts, status and elapsed time.

Chunks commit in completion order, not input order.  Within a chunk,
records keep input order.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Iterable, Iterator
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from geotax_config.schema import ImportSettings
from geotax_engines.tax import apply_to_subtotal, compose_rates
from geotax_kernel.db.engine import session_scope
from geotax_kernel.domain.clock import Clock, SystemClock
from geotax_kernel.domain.dtos import ImportLogSummary, OrderRecord
from geotax_kernel.exceptions import ChunkCommitError, DuplicateRunError, ImportNotFoundError
from geotax_kernel.logging_config import LogContext, get_logger
from geotax_kernel.models.import_log import ImportLogModel
from geotax_kernel.models.order import OrderModel
from geotax_kernel.services.geometry_store import GeometryStore
from geotax_kernel.services.jurisdiction_resolver import JurisdictionResolver
from geotax_kernel.services.order_writer import OrderWriter
from geotax_kernel.utils.hashing import hash_file
from geotax_services.tax_cache import CacheEntry

from geotax_ingestion.adapters.base import SourceAdapter
from geotax_ingestion.adapters.csv_adapter import CsvOrderAdapter
from geotax_ingestion.domain.types import (
    ChunkOutcome,
    ImportRunResult,
    ImportRunStage,
    ImportRunStatus,
    RawOrderRow,
    ValidatedOrderRow,
)
from geotax_ingestion.domain.validators import validate_order_row
from geotax_ingestion.services.run_context import ImportRunContext

logger = get_logger("ingestion.import_service")


def chunked(rows: Iterable[ValidatedOrderRow], size: int) -> Iterator[list[ValidatedOrderRow]]:
    """Group rows into lists of ``size`` (last one may be shorter)."""
    chunk: list[ValidatedOrderRow] = []
    for row in rows:
        chunk.append(row)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def _run_status(ctx: ImportRunContext) -> ImportRunStatus:
    if ctx.errors == 0:
        return ImportRunStatus.COMPLETED
    if ctx.imported == 0:
        return ImportRunStatus.FAILED
    return ImportRunStatus.PARTIAL


def _aborted_status(ctx: ImportRunContext) -> ImportRunStatus:
    # Rows past the failure were never read, so an abort is never "completed".
    return ImportRunStatus.PARTIAL if ctx.imported else ImportRunStatus.FAILED


class ImportService:
    """Batch import of order files; one instance may run many imports."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        geometry_store: GeometryStore,
        settings: ImportSettings | None = None,
        clock: Clock | None = None,
        order_writer: OrderWriter | None = None,
        adapter: SourceAdapter | None = None,
    ):
        self._session_factory = session_factory
        self._geometry_store = geometry_store
        self._settings = settings or ImportSettings()
        self._clock = clock or SystemClock()
        self._order_writer = order_writer or OrderWriter()
        self._adapter = adapter or CsvOrderAdapter()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def import_file(self, source_path: Path | str, filename: str | None = None) -> ImportRunResult:
        """
        Import one file.

        Raises:
            DuplicateRunError: the file's content was imported before.
            OSError: the file cannot be read.
        Row and chunk failures never raise; they are counted in the result.
        Undecodable bytes fail only the rows that carry them.  If reading
        aborts mid-file, chunks already submitted finish and are counted,
        and the log is finalized as partial (or failed if nothing
        committed) before the error propagates.
        """
        path = Path(source_path)
        filename = filename or path.name
        file_hash, size = hash_file(path, self._settings.hash_block_size)

        with LogContext.bind(correlation_id=file_hash[:16]):
            import_id = self._open_run(file_hash, filename, size)
            ctx = ImportRunContext(
                import_id=import_id,
                file_hash=file_hash,
                filename=filename,
                file_size_bytes=size,
                session_factory=self._session_factory,
                resolver=JurisdictionResolver(self._geometry_store),
                order_writer=self._order_writer,
                settings=self._settings,
                clock=self._clock,
            )
            with LogContext.bind(run_id=str(import_id)):
                logger.info(
                    "import_run_started",
                    extra={"source_filename": filename, "file_size_bytes": size},
                )
                try:
                    self._run(ctx, path)
                except Exception:
                    logger.exception(
                        "import_run_aborted",
                        extra={"stage": ctx.stage.value, "imported": ctx.imported},
                    )
                    self._finalize(ctx, _aborted_status(ctx))
                    raise
                return self._finalize(ctx, _run_status(ctx))

    def _open_run(self, file_hash: str, filename: str, size: int) -> UUID:
        try:
            with session_scope(self._session_factory) as session:
                existing = session.scalars(
                    select(ImportLogModel.id).where(ImportLogModel.file_hash == file_hash)
                ).first()
                if existing is not None:
                    raise DuplicateRunError(file_hash, str(existing))
                log = ImportLogModel(
                    id=uuid4(),
                    filename=filename,
                    file_hash=file_hash,
                    file_size_bytes=size,
                    status=ImportRunStatus.RUNNING.value,
                    created_at=self._clock.now(),
                )
                session.add(log)
                session.flush()
                import_id = log.id
        except DuplicateRunError:
            logger.warning("duplicate_import_rejected", extra={"file_hash": file_hash})
            raise
        except IntegrityError:
            # A concurrent run logged the same hash between check and insert.
            logger.warning("duplicate_import_rejected", extra={"file_hash": file_hash})
            raise DuplicateRunError(file_hash) from None
        return import_id

    def _run(self, ctx: ImportRunContext, path: Path) -> None:
        ctx.enter(ImportRunStage.READING)
        raw_rows = self._adapter.read(path)

        ctx.enter(ImportRunStage.VALIDATING)
        valid_rows = self._validated(ctx, raw_rows)

        ctx.enter(ImportRunStage.CHUNKING)
        chunks = chunked(valid_rows, self._settings.chunk_size)

        max_in_flight = self._settings.max_in_flight
        in_flight: set[Future[ChunkOutcome]] = set()
        with ThreadPoolExecutor(
            max_workers=self._settings.max_workers,
            thread_name_prefix="geotax-import",
        ) as pool:
            try:
                for index, chunk in enumerate(chunks):
                    if len(in_flight) >= max_in_flight:
                        done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                        for future in done:
                            ctx.record_chunk(future.result())
                    # Workers inherit the run's log context.
                    run_in_context = contextvars.copy_context().run
                    in_flight.add(pool.submit(run_in_context, self._process_chunk, ctx, index, chunk))
            finally:
                # Submitted chunks commit even if reading failed; count them
                # before any error reaches import_file.
                for future in wait(in_flight).done:
                    ctx.record_chunk(future.result())

    def _validated(
        self,
        ctx: ImportRunContext,
        raw_rows: Iterable[RawOrderRow],
    ) -> Iterator[ValidatedOrderRow]:
        now = self._clock.now()
        for raw in raw_rows:
            outcome = validate_order_row(raw, self._settings.region, now)
            if outcome.row is None:
                ctx.record_invalid(outcome.error)
                continue
            ctx.record_valid()
            yield outcome.row

    # ------------------------------------------------------------------
    # Chunk
    # ------------------------------------------------------------------

    def _process_chunk(
        self,
        ctx: ImportRunContext,
        index: int,
        rows: list[ValidatedOrderRow],
    ) -> ChunkOutcome:
        """Run one chunk in its own transaction; never raises."""
        with LogContext.bind(chunk_index=str(index)):
            session = ctx.session_factory()
            try:
                keys = [row.cache_key for row in rows]

                _chunk_stage(ImportRunStage.DEDUPLICATING, len(rows))
                diff = ctx.cache.diff(keys)

                if diff.missing:
                    _chunk_stage(ImportRunStage.RESOLVING, len(diff.missing))
                    matches = ctx.resolver.resolve_batch(
                        [key.point for key in diff.missing],
                        [key.as_of for key in diff.missing],
                        session=session,
                    )
                    _chunk_stage(ImportRunStage.COMPOSING, len(diff.missing))
                    for key, point_matches in zip(diff.missing, matches):
                        ctx.cache.put(key, compose_rates(point_matches))

                records = [
                    self._build_record(ctx, row, ctx.cache.get(key))
                    for row, key in zip(rows, keys)
                ]

                _chunk_stage(ImportRunStage.COMMITTING, len(records))
                ctx.order_writer.insert_chunk(session, records)
                session.commit()
            except Exception as exc:
                session.rollback()
                error = ChunkCommitError(index, len(rows), f"{type(exc).__name__}: {exc}")
                error.__cause__ = exc
                logger.error(
                    "chunk_rolled_back",
                    extra={
                        "row_count": len(rows),
                        "first_row": rows[0].row_number,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=exc,
                )
                return ChunkOutcome(chunk_index=index, row_count=len(rows), error=error)
            finally:
                session.close()

            logger.info(
                "chunk_committed",
                extra={"row_count": len(records), "resolved_keys": len(diff.missing)},
            )
            return ChunkOutcome(
                chunk_index=index,
                row_count=len(rows),
                imported=len(records),
                resolved_keys=len(diff.missing),
            )

    @staticmethod
    def _build_record(
        ctx: ImportRunContext,
        row: ValidatedOrderRow,
        entry: CacheEntry | None,
    ) -> OrderRecord:
        if entry is None:
            raise LookupError(f"no cached tax for row {row.row_number}")
        result = apply_to_subtotal(entry.composition, row.subtotal)
        return OrderRecord(
            order_id=uuid4(),
            latitude=row.point.latitude,
            longitude=row.point.longitude,
            subtotal=result.subtotal,
            composite_tax_rate=result.composite_tax_rate,
            tax_amount=result.tax_amount,
            total_amount=result.total_amount,
            breakdown=entry.breakdown_json,
            jurisdictions_applied=entry.jurisdictions_json,
            timestamp=row.timestamp,
            import_id=ctx.import_id,
        )

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def _finalize(self, ctx: ImportRunContext, status: ImportRunStatus) -> ImportRunResult:
        ctx.enter(ImportRunStage.FINALIZING)
        elapsed_ms = ctx.elapsed_ms()
        with session_scope(self._session_factory) as session:
            log = session.get(ImportLogModel, ctx.import_id)
            log.rows_imported = ctx.imported
            log.rows_failed = ctx.errors
            log.processing_time_ms = elapsed_ms
            log.status = status.value
            log.completed_at = self._clock.now()

        stats = ctx.cache.stats()
        logger.info(
            "import_run_finished",
            extra={
                "status": status.value,
                "total_rows": ctx.total_rows,
                "imported": ctx.imported,
                "errors": ctx.errors,
                "failed_chunks": len(ctx.failed_chunks),
                "chunk_count": ctx.chunk_count,
                "cache_entries": stats.entries,
                "cache_hits": stats.hits,
                "cache_misses": stats.misses,
                "elapsed_ms": elapsed_ms,
            },
        )
        return ImportRunResult(
            import_id=ctx.import_id,
            file_hash=ctx.file_hash,
            filename=ctx.filename,
            total_rows=ctx.total_rows,
            imported=ctx.imported,
            errors=ctx.errors,
            status=status,
            validation_errors=tuple(ctx.validation_errors),
            failed_chunks=tuple(sorted(ctx.failed_chunks, key=lambda e: e.chunk_index)),
            elapsed_ms=elapsed_ms,
            cache_stats=stats,
            file_size_bytes=ctx.file_size_bytes,
            chunk_count=ctx.chunk_count,
        )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_imports(self, limit: int = 50) -> list[ImportLogSummary]:
        """Import logs, most recent first."""
        session = self._session_factory()
        try:
            stmt = (
                select(ImportLogModel)
                .order_by(ImportLogModel.created_at.desc(), ImportLogModel.filename)
                .limit(limit)
            )
            return [m.to_dto() for m in session.scalars(stmt)]
        finally:
            session.close()

    def rollback_import(self, import_id: UUID) -> int:
        """
        Delete an import log and every order it created, atomically.

        Returns the number of orders deleted.  The file can be imported
        again afterwards.
        """
        with session_scope(self._session_factory) as session:
            log = session.get(ImportLogModel, import_id)
            if log is None:
                raise ImportNotFoundError(str(import_id))
            order_count = session.scalar(
                select(func.count()).select_from(OrderModel).where(OrderModel.import_id == import_id)
            )
            session.execute(delete(OrderModel).where(OrderModel.import_id == import_id))
            session.delete(log)

        logger.info(
            "import_rolled_back",
            extra={"import_id": str(import_id), "orders_deleted": order_count},
        )
        return order_count


def _chunk_stage(stage: ImportRunStage, size: int) -> None:
    logger.debug("chunk_stage_entered", extra={"stage": stage.value, "size": size})
