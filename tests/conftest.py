"""
Pytest fixtures for the geotax test suite.

Provides:
- Structured logging setup and captured JSON logs
- A deterministic clock
- A file-backed SQLite database per test (file, not :memory:, so chunk
  worker threads share one database)
- A rectangle-based fake geometry store seeded with the New York scenario:

      New York State   state    0.040000   (most of the state envelope)
      New York County  county   0.045000   (Manhattan)
      MCTD             special  0.003750   (NYC metro commuter district)

  The fake records every batch_contains call so tests can assert how
  often the "spatial" store was queried.

PostgreSQL/PostGIS is not needed; tests that need it are marked
``postgres`` and skipped unless GEOTAX_TEST_DATABASE_URL is set.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Sequence
from uuid import UUID, uuid4

import pytest

from geotax_kernel.db import build_engine, build_session_factory, create_tables
from geotax_kernel.domain.clock import DeterministicClock
from geotax_kernel.domain.values import GeoPoint, RateRecord, ServiceRegion
from geotax_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from geotax_kernel.services.geometry_store import ContainmentRow

RATES_EFFECTIVE = date(2020, 1, 1)

MANHATTAN = GeoPoint(Decimal("40.7484"), Decimal("-73.9857"))
# Inside the service envelope, outside every jurisdiction (Pennsylvania side).
OUTSIDE_ALL = GeoPoint(Decimal("40.0500"), Decimal("-79.5000"))
# Upstate: state only.
ALBANY = GeoPoint(Decimal("42.6526"), Decimal("-73.7562"))


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture geotax logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "chunk_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("geotax")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and database
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'geotax.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Fake geometry store
# =============================================================================


@dataclass
class FakeJurisdiction:
    name: str
    type: str
    bounds: ServiceRegion
    rates: list[RateRecord] = field(default_factory=list)
    jurisdiction_id: UUID = field(default_factory=uuid4)

    def add_rate(self, rate: str, valid_from: date, valid_to: date | None = None) -> RateRecord:
        record = RateRecord(
            jurisdiction_id=self.jurisdiction_id,
            rate=Decimal(rate),
            valid_from=valid_from,
            valid_to=valid_to,
            rate_id=uuid4(),
        )
        self.rates.append(record)
        return record


class FakeGeometryStore:
    """GeometryStore over axis-aligned rectangles; thread-safe call log."""

    def __init__(self, jurisdictions: Sequence[FakeJurisdiction] = ()):
        self.jurisdictions = list(jurisdictions)
        self.calls: list[list[tuple[GeoPoint, date]]] = []
        self.fail_with: Exception | None = None
        self._lock = threading.Lock()

    def add(self, name: str, type: str, bounds: tuple[str, str, str, str], rate: str | None = None,
            valid_from: date = RATES_EFFECTIVE) -> FakeJurisdiction:
        lat_min, lat_max, lon_min, lon_max = (Decimal(b) for b in bounds)
        jurisdiction = FakeJurisdiction(
            name=name,
            type=type,
            bounds=ServiceRegion(lat_min, lat_max, lon_min, lon_max),
        )
        if rate is not None:
            jurisdiction.add_rate(rate, valid_from)
        self.jurisdictions.append(jurisdiction)
        return jurisdiction

    def by_name(self, name: str) -> FakeJurisdiction:
        return next(j for j in self.jurisdictions if j.name == name)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def points_queried(self) -> list[tuple[GeoPoint, date]]:
        return [p for call in self.calls for p in call]

    def batch_contains(self, points, as_of_dates, session=None):
        with self._lock:
            self.calls.append(list(zip(points, as_of_dates)))
        if self.fail_with is not None:
            raise self.fail_with

        rows: list[ContainmentRow] = []
        for index, (point, as_of) in enumerate(zip(points, as_of_dates)):
            for j in self.jurisdictions:
                if not j.bounds.contains(point):
                    continue
                for record in j.rates:
                    if record.is_active_on(as_of):
                        rows.append(
                            ContainmentRow(
                                point_index=index,
                                jurisdiction_id=j.jurisdiction_id,
                                name=j.name,
                                type=j.type,
                                rate=record.rate,
                                valid_from=record.valid_from,
                            )
                        )
        return rows


def new_york_store() -> FakeGeometryStore:
    store = FakeGeometryStore()
    store.add("New York State", "state", ("40.4000", "45.1000", "-79.8000", "-71.8000"), "0.040000")
    store.add("New York County", "county", ("40.6800", "40.8800", "-74.0300", "-73.9000"), "0.045000")
    store.add("MCTD", "special", ("40.4000", "41.6000", "-74.3000", "-73.4000"), "0.003750")
    return store


@pytest.fixture
def make_geometry_store():
    """Factory for an empty FakeGeometryStore."""
    return FakeGeometryStore


@pytest.fixture
def geometry_store():
    """FakeGeometryStore seeded with the New York scenario."""
    return new_york_store()


@pytest.fixture
def manhattan():
    return MANHATTAN


@pytest.fixture
def outside_all():
    return OUTSIDE_ALL


@pytest.fixture
def albany():
    return ALBANY


# =============================================================================
# CSV files
# =============================================================================


@pytest.fixture
def write_csv(tmp_path):
    """Write rows (list of lists) under a header to a CSV file in tmp_path."""
    counter = {"n": 0}

    def _write(header: Sequence[str], rows: Sequence[Sequence[object]], name: str | None = None):
        counter["n"] += 1
        path = tmp_path / (name or f"orders_{counter['n']}.csv")
        lines = [",".join(header)] + [",".join(str(v) for v in row) for row in rows]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL with PostGIS"
    )


def pytest_collection_modifyitems(config, items):
    if os.environ.get("GEOTAX_TEST_DATABASE_URL"):
        return
    skip = pytest.mark.skip(reason="GEOTAX_TEST_DATABASE_URL not set")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip)
