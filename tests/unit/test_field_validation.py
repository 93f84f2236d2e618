"""Tests for field-level order input parsing (geotax_kernel.domain.validation)."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from geotax_kernel.domain.validation import (
    parse_latitude,
    parse_longitude,
    parse_subtotal,
    parse_timestamp,
)
from geotax_kernel.domain.values import NEW_YORK_STATE
from geotax_kernel.exceptions import RowValidationError

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestCoordinates:
    def test_valid_latitude(self):
        assert parse_latitude("40.7484", NEW_YORK_STATE) == Decimal("40.7484")

    def test_bounds_are_inclusive(self):
        assert parse_latitude("45.1", NEW_YORK_STATE) == Decimal("45.1")
        assert parse_longitude("-80.0", NEW_YORK_STATE) == Decimal("-80.0")

    def test_latitude_outside_region(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_latitude("39.99", NEW_YORK_STATE, row_number=3)
        err = exc_info.value
        assert err.code == "ROW_VALIDATION_FAILED"
        assert (err.row_number, err.field, err.reason) == (3, "latitude", "outside_service_region")

    def test_longitude_outside_region(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_longitude("-70.5", NEW_YORK_STATE)
        assert exc_info.value.field == "longitude"

    @pytest.mark.parametrize("value,reason", [(None, "missing"), ("", "missing"), ("north", "not_a_number")])
    def test_missing_or_malformed(self, value, reason):
        with pytest.raises(RowValidationError) as exc_info:
            parse_latitude(value, NEW_YORK_STATE)
        assert exc_info.value.reason == reason

    def test_float_rejected(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_latitude(40.7, NEW_YORK_STATE)
        assert exc_info.value.reason == "float_not_allowed"

    def test_rounded_to_stored_places(self):
        latitude = parse_latitude("40.74841750", NEW_YORK_STATE)
        assert str(latitude) == "40.748418"
        assert str(parse_longitude("-73.9857", NEW_YORK_STATE)) == "-73.985700"

    def test_rounding_is_half_even(self):
        assert parse_latitude("40.7000005", NEW_YORK_STATE) == Decimal("40.700000")
        assert parse_latitude("40.7000015", NEW_YORK_STATE) == Decimal("40.700002")

    @pytest.mark.parametrize("value", ["1E+999999", "-1E+50"])
    def test_huge_exponent_is_outside_region(self, value):
        with pytest.raises(RowValidationError) as exc_info:
            parse_longitude(value, NEW_YORK_STATE)
        assert exc_info.value.reason == "outside_service_region"


class TestSubtotal:
    def test_keeps_exact_digits(self):
        value = parse_subtotal("100.00")
        assert str(value) == "100.00"

    def test_whole_number(self):
        assert parse_subtotal("15") == Decimal("15")

    @pytest.mark.parametrize("value", ["0", "0.00", "-5.00"])
    def test_not_positive(self, value):
        with pytest.raises(RowValidationError) as exc_info:
            parse_subtotal(value)
        assert exc_info.value.reason == "not_positive"

    def test_too_many_decimal_places(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_subtotal("10.005")
        assert exc_info.value.reason == "too_many_decimal_places"

    def test_largest_accepted(self):
        assert parse_subtotal("999999999.99") == Decimal("999999999.99")

    @pytest.mark.parametrize("value", ["1000000000", "99999999999.99", "1E+12"])
    def test_too_large_for_money_column(self, value):
        with pytest.raises(RowValidationError) as exc_info:
            parse_subtotal(value, row_number=4)
        assert (exc_info.value.row_number, exc_info.value.reason) == (4, "too_large")

    def test_not_a_number(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_subtotal("$10")
        assert exc_info.value.reason == "not_a_number"


class TestTimestamp:
    def test_empty_defaults_to_now(self):
        assert parse_timestamp("", NOW) == NOW
        assert parse_timestamp(None, NOW) == NOW

    def test_zulu_suffix(self):
        ts = parse_timestamp("2025-02-28T23:30:00Z", NOW)
        assert ts == datetime(2025, 2, 28, 23, 30, tzinfo=timezone.utc)

    def test_offset_preserved(self):
        ts = parse_timestamp("2025-02-28T20:00:00-05:00", NOW)
        assert ts.utcoffset() == timedelta(hours=-5)

    def test_naive_is_utc(self):
        ts = parse_timestamp("2025-02-28 10:15:00", NOW)
        assert ts.tzinfo == timezone.utc

    def test_date_only(self):
        ts = parse_timestamp("2025-02-28", NOW)
        assert ts == datetime(2025, 2, 28, tzinfo=timezone.utc)

    def test_unparseable(self):
        with pytest.raises(RowValidationError) as exc_info:
            parse_timestamp("yesterday", NOW, row_number=9)
        assert exc_info.value.reason == "unparseable"
        assert exc_info.value.row_number == 9
