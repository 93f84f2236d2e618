"""
Geometry store -- point-in-polygon containment against jurisdiction shapes.

Contract:
    ``batch_contains(points, as_of_dates, session=None)`` answers, for N
    points in one round trip, which jurisdictions contain each point and
    which of their rate records is active on the paired date.  Rows carry
    the input index so callers can regroup them.

Architecture position:
    Kernel > Services.  The polygons, their projection and simplification
    belong to the store; the kernel only issues containment queries.

Transactional consistency:
    When a ``session`` is given the query runs on that session's
    connection, so a chunk reads jurisdiction data in the same
    transaction it writes its orders in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from geotax_kernel.domain.values import GeoPoint
from geotax_kernel.exceptions import GeometryStoreError
from geotax_kernel.logging_config import get_logger

logger = get_logger("services.geometry_store")


@dataclass(frozen=True)
class ContainmentRow:
    """One (point, jurisdiction, active rate) match."""

    point_index: int
    jurisdiction_id: UUID
    name: str
    type: str
    rate: Decimal
    valid_from: date | None = None


@runtime_checkable
class GeometryStore(Protocol):
    """Batched containment query over jurisdiction polygons."""

    def batch_contains(
        self,
        points: Sequence[GeoPoint],
        as_of_dates: Sequence[date],
        session: Session | None = None,
    ) -> list[ContainmentRow]:
        ...


_BATCH_CONTAINS_SQL = text(
    """
    SELECT
        pts.idx       AS point_index,
        j.id          AS jurisdiction_id,
        j.name        AS name,
        j.type        AS type,
        tr.rate       AS rate,
        tr.valid_from AS valid_from
    FROM UNNEST(
        CAST(:idx AS int[]),
        CAST(:lon AS float8[]),
        CAST(:lat AS float8[]),
        CAST(:as_of AS date[])
    ) AS pts(idx, lon, lat, as_of)
    JOIN jurisdictions j
        ON ST_Intersects(j.geom, ST_SetSRID(ST_MakePoint(pts.lon, pts.lat), 4326))
    JOIN tax_rates tr
        ON tr.jurisdiction_id = j.id
        AND tr.valid_from <= pts.as_of
        AND (tr.valid_to IS NULL OR tr.valid_to > pts.as_of)
    ORDER BY pts.idx, j.type, j.name
    """
).bindparams(
    bindparam("idx"),
    bindparam("lon"),
    bindparam("lat"),
    bindparam("as_of"),
)


class PostGISGeometryStore:
    """
    PostGIS-backed geometry store.

    One statement per batch: the points travel as four parallel arrays
    that are UNNESTed server-side and joined against the GiST-indexed
    jurisdiction geometries and the rate history.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def batch_contains(
        self,
        points: Sequence[GeoPoint],
        as_of_dates: Sequence[date],
        session: Session | None = None,
    ) -> list[ContainmentRow]:
        if len(points) != len(as_of_dates):
            raise ValueError(
                f"points and as_of_dates differ in length ({len(points)} != {len(as_of_dates)})"
            )
        if not points:
            return []

        params = {
            "idx": list(range(len(points))),
            "lon": [p.as_lon_lat()[0] for p in points],
            "lat": [p.as_lon_lat()[1] for p in points],
            "as_of": list(as_of_dates),
        }

        own_session = session is None
        active = session if session is not None else self._session_factory()
        try:
            result = active.execute(_BATCH_CONTAINS_SQL, params)
            rows = [
                ContainmentRow(
                    point_index=int(r.point_index),
                    jurisdiction_id=r.jurisdiction_id if isinstance(r.jurisdiction_id, UUID)
                    else UUID(str(r.jurisdiction_id)),
                    name=r.name,
                    type=r.type,
                    rate=Decimal(str(r.rate)),
                    valid_from=r.valid_from,
                )
                for r in result
            ]
        except SQLAlchemyError as exc:
            logger.error(
                "batch_contains_failed",
                extra={"point_count": len(points)},
                exc_info=True,
            )
            raise GeometryStoreError(len(points), str(exc)) from exc
        finally:
            if own_session:
                active.close()

        logger.debug(
            "batch_contains_completed",
            extra={"point_count": len(points), "row_count": len(rows)},
        )
        return rows
