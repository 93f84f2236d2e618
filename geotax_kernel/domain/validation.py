"""
Field-level parsing for order inputs.

Each function parses one raw field and raises RowValidationError with a
machine-readable reason.  The import pipeline applies them per row and
collects failures; the manual order path lets the error propagate.

Architecture: Kernel > Domain.  ZERO I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from geotax_kernel.domain.decimal_math import (
    MAX_SUBTOTAL,
    MONEY_DECIMAL_PLACES,
    fractional_digits,
    round_coordinate,
    to_decimal,
)
from geotax_kernel.domain.values import ServiceRegion
from geotax_kernel.exceptions import ArithmeticParseError, RowValidationError

_MAX_DEGREES = Decimal(180)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        # Reject early: the float already lost the source text.
        raise TypeError("float input")
    return str(value).strip()


def _parse_decimal(value: Any, field: str, row_number: int | None) -> Decimal:
    try:
        text = _text(value)
    except TypeError:
        raise RowValidationError(row_number, field, "float_not_allowed", value) from None
    if not text:
        raise RowValidationError(row_number, field, "missing", value)
    try:
        return to_decimal(text)
    except ArithmeticParseError:
        raise RowValidationError(row_number, field, "not_a_number", value) from None


def _parse_coordinate(value: Any, field: str, row_number: int | None) -> Decimal:
    degrees = _parse_decimal(value, field, row_number)
    # Also keeps huge exponents away from quantize.
    if abs(degrees) > _MAX_DEGREES:
        raise RowValidationError(row_number, field, "outside_service_region", value)
    return round_coordinate(degrees)


def parse_latitude(
    value: Any,
    region: ServiceRegion,
    row_number: int | None = None,
) -> Decimal:
    """Latitude rounded to the stored 6 places, then checked against the region."""
    latitude = _parse_coordinate(value, "latitude", row_number)
    if not region.contains_latitude(latitude):
        raise RowValidationError(row_number, "latitude", "outside_service_region", value)
    return latitude


def parse_longitude(
    value: Any,
    region: ServiceRegion,
    row_number: int | None = None,
) -> Decimal:
    longitude = _parse_coordinate(value, "longitude", row_number)
    if not region.contains_longitude(longitude):
        raise RowValidationError(row_number, "longitude", "outside_service_region", value)
    return longitude


def parse_subtotal(value: Any, row_number: int | None = None) -> Decimal:
    """
    Positive money amount, kept exactly as written.

    More than 2 fractional digits is rejected: the stored scale is 2 and a
    silently rounded subtotal would break ``total - subtotal == tax``.
    Amounts above MAX_SUBTOTAL are rejected so the total always fits the
    money column.
    """
    subtotal = _parse_decimal(value, "subtotal", row_number)
    if subtotal <= 0:
        raise RowValidationError(row_number, "subtotal", "not_positive", value)
    if subtotal > MAX_SUBTOTAL:
        raise RowValidationError(row_number, "subtotal", "too_large", value)
    if fractional_digits(subtotal) > MONEY_DECIMAL_PLACES:
        raise RowValidationError(row_number, "subtotal", "too_many_decimal_places", value)
    return subtotal


def parse_timestamp(
    value: Any,
    default: datetime,
    row_number: int | None = None,
) -> datetime:
    """
    ISO 8601 timestamp, or ``default`` when the field is empty.

    Naive timestamps are taken as UTC.  Result is always timezone-aware.
    """
    if isinstance(value, datetime):
        ts = value
    else:
        text = "" if value is None else str(value).strip()
        if not text:
            return default
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            raise RowValidationError(row_number, "timestamp", "unparseable", value) from None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
