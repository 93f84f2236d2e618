"""
JurisdictionResolver -- (point, date) to the ordered set of applicable
jurisdictions and rates.

Contract:
    ``resolve_batch(points, dates)`` issues exactly one containment query
    for the whole batch and returns one list per input point, with
    output[i] belonging to input[i] however many rows matched each point.
    ``resolve_one`` is the single-point form.

Ordering:
    Within a point: jurisdiction type (state, county, city, special),
    then name, then id.  The tax composer takes the first match per type
    for state/county/city and sums every special district, so this order
    decides which duplicate polygon wins.

Edge cases:
    - A point outside every jurisdiction resolves to ``[]`` (zero tax).
    - Two active rate records for one jurisdiction on the same date are
      collapsed to the one with the latest valid_from, with a warning.
    - Rows with an unknown type or an out-of-range index are dropped with
      a warning.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from geotax_kernel.domain.values import GeoPoint, JurisdictionMatch, JurisdictionType
from geotax_kernel.logging_config import get_logger
from geotax_kernel.services.geometry_store import ContainmentRow, GeometryStore

logger = get_logger("services.jurisdiction_resolver")


class JurisdictionResolver:
    """Storage-agnostic resolver over a GeometryStore."""

    def __init__(self, store: GeometryStore):
        self._store = store

    def resolve_one(
        self,
        point: GeoPoint,
        as_of: date,
        session: Session | None = None,
    ) -> list[JurisdictionMatch]:
        return self.resolve_batch([point], [as_of], session=session)[0]

    def resolve_batch(
        self,
        points: Sequence[GeoPoint],
        dates: Sequence[date],
        session: Session | None = None,
    ) -> list[list[JurisdictionMatch]]:
        if len(points) != len(dates):
            raise ValueError(
                f"points and dates differ in length ({len(points)} != {len(dates)})"
            )
        if not points:
            return []

        rows = self._store.batch_contains(points, dates, session=session)

        grouped: dict[int, list[ContainmentRow]] = defaultdict(list)
        for row in rows:
            if not 0 <= row.point_index < len(points):
                logger.warning(
                    "containment_row_index_out_of_range",
                    extra={"point_index": row.point_index, "point_count": len(points)},
                )
                continue
            grouped[row.point_index].append(row)

        results = [self._matches_for_point(grouped.get(i, ())) for i in range(len(points))]

        logger.debug(
            "resolve_batch_completed",
            extra={
                "point_count": len(points),
                "row_count": len(rows),
                "unmatched_points": sum(1 for r in results if not r),
            },
        )
        return results

    def _matches_for_point(
        self,
        rows: Sequence[ContainmentRow],
    ) -> list[JurisdictionMatch]:
        # jurisdiction id -> row of the record kept
        chosen: dict[UUID, ContainmentRow] = {}
        for row in rows:
            previous = chosen.get(row.jurisdiction_id)
            if previous is None:
                chosen[row.jurisdiction_id] = row
                continue
            logger.warning(
                "duplicate_active_rate_collapsed",
                extra={
                    "jurisdiction_id": str(row.jurisdiction_id),
                    "valid_from_a": previous.valid_from,
                    "valid_from_b": row.valid_from,
                },
            )
            if _later(row, previous):
                chosen[row.jurisdiction_id] = row

        matches: list[JurisdictionMatch] = []
        for row in chosen.values():
            jtype = JurisdictionType.parse(row.type)
            if jtype is None:
                logger.warning(
                    "unknown_jurisdiction_type_dropped",
                    extra={"jurisdiction_id": str(row.jurisdiction_id), "type": row.type},
                )
                continue
            matches.append(
                JurisdictionMatch(
                    jurisdiction_id=row.jurisdiction_id,
                    name=row.name,
                    type=jtype,
                    rate=row.rate,
                )
            )
        matches.sort(key=lambda m: m.sort_key)
        return matches


def _later(candidate: ContainmentRow, current: ContainmentRow) -> bool:
    """True if candidate's record started after current's (None sorts first)."""
    if candidate.valid_from is None:
        return False
    if current.valid_from is None:
        return True
    return candidate.valid_from > current.valid_from
