#!/usr/bin/env python3
"""
Import an order CSV: hash, duplicate check, validate, resolve tax, commit in chunks.

Settings come from get_active_settings() (geotax_config/defaults.yaml,
overlaid by --config and GEOTAX_DATABASE_URL).

Usage:
    python3 scripts/run_import.py --file <path> [options]

Examples:
    # Import a file
    python3 scripts/run_import.py --file orders.csv

    # Probe source file (row count, columns, sample) without touching the DB
    python3 scripts/run_import.py --file orders.csv --probe-only

    # List recent imports, or undo one
    python3 scripts/run_import.py --list
    python3 scripts/run_import.py --rollback 6f1c...-...
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the order import pipeline against the configured database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument(
        "--file",
        type=Path,
        help="Path to the order CSV (lat/latitude, lon/lng/longitude, subtotal, timestamp).",
    )
    action.add_argument(
        "--list",
        action="store_true",
        help="List the most recent imports and exit.",
    )
    action.add_argument(
        "--rollback",
        type=UUID,
        metavar="IMPORT_ID",
        help="Delete an import and every order it created.",
    )
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="With --file: print row count, columns and sample rows. No DB access.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file overlaid on the default settings.",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: from settings).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="With --list: number of imports to show (default: 20).",
    )
    return parser.parse_args()


def _probe(source_path: Path) -> int:
    from geotax_ingestion.adapters import CsvOrderAdapter

    probe = CsvOrderAdapter().probe(source_path)
    print(f"Rows: {probe.row_count}")
    print(f"Columns: {list(probe.columns)}")
    print(f"Mapped: {probe.column_map}")
    if probe.missing_fields:
        print(f"Missing required columns: {list(probe.missing_fields)}")
    print("Sample (first 3):")
    for i, row in enumerate(probe.sample_rows[:3], 1):
        print(f"  {i}: {row}")
    return 1 if probe.missing_fields else 0


def main() -> int:
    args = _parse_args()

    if args.file is not None:
        source_path = args.file.resolve()
        if not source_path.is_file():
            print(f"ERROR: File not found: {source_path}", file=sys.stderr)
            return 1
        if args.probe_only:
            return _probe(source_path)

    # Lazy imports so we fail fast on args first
    from geotax_config import get_active_settings
    from geotax_ingestion.services import ImportService
    from geotax_kernel.db import build_engine, build_session_factory, create_tables
    from geotax_kernel.exceptions import DuplicateRunError, ImportNotFoundError
    from geotax_kernel.logging_config import configure_logging
    from geotax_kernel.services import PostGISGeometryStore

    configure_logging()

    try:
        settings = get_active_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load settings: {e}", file=sys.stderr)
        return 1

    db = settings.database
    engine = build_engine(
        args.db_url or db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
    try:
        if args.create_tables:
            create_tables(engine)
        session_factory = build_session_factory(engine)
        service = ImportService(
            session_factory,
            PostGISGeometryStore(session_factory),
            settings=settings.imports,
        )

        if args.list:
            for log in service.list_imports(limit=args.limit):
                print(
                    f"{log.import_id}  {log.status:<9}  imported={log.rows_imported:<7} "
                    f"failed={log.rows_failed:<7} {log.processing_time_ms}ms  {log.filename}"
                )
            return 0

        if args.rollback is not None:
            try:
                deleted = service.rollback_import(args.rollback)
            except ImportNotFoundError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 1
            print(f"Rolled back import {args.rollback}: {deleted} orders deleted.")
            return 0

        print(f"Importing {source_path}...")
        try:
            result = service.import_file(source_path)
        except DuplicateRunError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(f"  Import {result.import_id} ({result.status.value})")
        print(f"  Rows: {result.total_rows}, Imported: {result.imported}, Errors: {result.errors}")
        print(f"  Elapsed: {result.elapsed_ms}ms, Chunks: {result.chunk_count}")
        for err in result.validation_errors:
            print(f"  Row {err.row_number}: {err.field} {err.reason} ({err.value!r})")
        for chunk in result.failed_chunks:
            print(f"  Chunk {chunk.chunk_index}: {chunk.row_count} rows rolled back ({chunk.cause})")
        return 0 if result.errors == 0 else 1
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
