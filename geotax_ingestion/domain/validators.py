"""
Row validation for order imports.

Each row is checked on its own: text that decoded cleanly, coordinates
inside the service region (rounded to the stored 6 places), subtotal a
positive decimal with at most 2 fractional digits and no larger than
MAX_SUBTOTAL (kept as the exact source value), timestamp ISO 8601 or empty
(defaults to "now").  The first failing field decides the row's error.

Architecture: geotax_ingestion/domain. ZERO I/O.
"""

from __future__ import annotations

from datetime import datetime

from geotax_kernel.domain.validation import (
    parse_latitude,
    parse_longitude,
    parse_subtotal,
    parse_timestamp,
)
from geotax_kernel.domain.values import GeoPoint, ServiceRegion
from geotax_kernel.exceptions import RowValidationError

from geotax_ingestion.domain.types import (
    REPLACEMENT_CHAR,
    RawOrderRow,
    RowValidationOutcome,
    ValidatedOrderRow,
)

_FIELDS = ("latitude", "longitude", "subtotal", "timestamp")


def _check_decoded(raw: RawOrderRow) -> None:
    for field in _FIELDS:
        value = getattr(raw, field)
        if value is not None and REPLACEMENT_CHAR in value:
            raise RowValidationError(raw.row_number, field, "invalid_encoding", value)


def validate_order_row(
    raw: RawOrderRow,
    region: ServiceRegion,
    now: datetime,
) -> RowValidationOutcome:
    """Validate one raw row; never raises RowValidationError."""
    try:
        _check_decoded(raw)
        latitude = parse_latitude(raw.latitude, region, raw.row_number)
        longitude = parse_longitude(raw.longitude, region, raw.row_number)
        subtotal = parse_subtotal(raw.subtotal, raw.row_number)
        timestamp = parse_timestamp(raw.timestamp, now, raw.row_number)
    except RowValidationError as exc:
        return RowValidationOutcome(error=exc)

    return RowValidationOutcome(
        row=ValidatedOrderRow(
            row_number=raw.row_number,
            point=GeoPoint(latitude, longitude),
            subtotal=subtotal,
            timestamp=timestamp,
        )
    )
