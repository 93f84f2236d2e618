"""Tests for OrderService: manual order entry, quotes, listing and purging."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from geotax_kernel.domain.values import TaxQuery
from geotax_kernel.exceptions import GeometryStoreError, RowValidationError
from geotax_kernel.models.order import OrderModel
from geotax_kernel.services.jurisdiction_resolver import JurisdictionResolver
from geotax_services.order_service import OrderService


@pytest.fixture
def service(session_factory, geometry_store, clock):
    return OrderService(session_factory, JurisdictionResolver(geometry_store), clock=clock)


class TestCreateOrder:
    def test_manhattan_order_persisted(self, service, db_session):
        record = service.create_order("40.7484", "-73.9857", "100.00", "2025-03-01T15:00:00Z")

        assert record.composite_tax_rate == Decimal("0.088750")
        assert record.tax_amount == Decimal("8.88")
        assert record.total_amount == Decimal("108.88")
        assert record.import_id is None

        stored = db_session.get(OrderModel, record.order_id)
        assert stored is not None
        assert stored.import_id is None
        assert stored.tax_amount == Decimal("8.88")
        assert stored.breakdown["special_rate"] == "0.003750"
        assert [j["type"] for j in stored.jurisdictions_applied] == ["state", "county", "special"]

    def test_timestamp_defaults_to_clock(self, service, clock):
        record = service.create_order("40.7484", "-73.9857", "10.00")
        assert record.timestamp == clock.now()

    def test_outside_all_jurisdictions(self, service):
        record = service.create_order("40.0500", "-79.5000", "25.00")
        assert record.composite_tax_rate == Decimal("0.000000")
        assert record.tax_amount == Decimal("0.00")
        assert record.total_amount == Decimal("25.00")
        assert record.jurisdictions_applied == []

    def test_get_order_roundtrip(self, service):
        record = service.create_order("40.7484", "-73.9857", "100.00")
        loaded = service.get_order(record.order_id)
        assert loaded.order_id == record.order_id
        assert loaded.subtotal == Decimal("100.00")
        assert loaded.breakdown["county_rate"] == "0.045000"


class TestValidation:
    def test_outside_region_rejected_before_any_query(self, service, geometry_store, db_session):
        with pytest.raises(RowValidationError) as exc_info:
            service.create_order("39.0", "-73.9857", "100.00")
        assert exc_info.value.field == "latitude"
        assert geometry_store.call_count == 0
        assert db_session.query(OrderModel).count() == 0

    def test_bad_subtotal(self, service):
        with pytest.raises(RowValidationError) as exc_info:
            service.create_order("40.7484", "-73.9857", "-1")
        assert exc_info.value.reason == "not_positive"


class TestStoreFailure:
    def test_nothing_written(self, service, geometry_store, db_session):
        geometry_store.fail_with = GeometryStoreError(1, "connection reset")
        with pytest.raises(GeometryStoreError):
            service.create_order("40.7484", "-73.9857", "100.00")
        assert db_session.query(OrderModel).count() == 0


class TestQuote:
    def test_quote_does_not_persist(self, service, db_session):
        result = service.quote("40.7484", "-73.9857", "100.00", datetime(2025, 3, 1, tzinfo=timezone.utc))
        assert result.tax_amount == Decimal("8.88")
        assert db_session.query(OrderModel).count() == 0

    def test_tax_for_query(self, service, manhattan):
        query = TaxQuery(point=manhattan, subtotal=Decimal("100.00"), as_of=date(2025, 3, 1))
        result = service.tax_for(query)
        assert result.composite_tax_rate == Decimal("0.088750")
        assert result.total_amount == Decimal("108.88")


@pytest.fixture
def seeded(service):
    """Four orders over three UTC days, oldest first."""
    return {
        "manhattan_mar1": service.create_order("40.7484", "-73.9857", "10.00", "2025-03-01T10:00:00Z"),
        # 23:30 at UTC-5 is March 3 in UTC.
        "albany_mar3": service.create_order("42.6526", "-73.7562", "20.00", "2025-03-02T23:30:00-05:00"),
        "outside_mar3": service.create_order("40.0500", "-79.5000", "30.00", "2025-03-03T12:00:00Z"),
        "manhattan_mar4": service.create_order("40.7484", "-73.9857", "40.00", "2025-03-04T00:00:00Z"),
    }


def names(seeded, page):
    by_id = {record.order_id: name for name, record in seeded.items()}
    return [by_id[o.order_id] for o in page.orders]


class TestListOrders:
    def test_newest_first(self, service, seeded):
        page = service.list_orders()
        assert page.total == 4
        assert names(seeded, page) == ["manhattan_mar4", "outside_mar3", "albany_mar3", "manhattan_mar1"]

    def test_paging(self, service, seeded):
        page = service.list_orders(page=2, limit=3)
        assert (page.page, page.limit, page.total, page.total_pages) == (2, 3, 4, 2)
        assert names(seeded, page) == ["manhattan_mar1"]

    def test_page_past_end_is_empty(self, service, seeded):
        page = service.list_orders(page=5, limit=3)
        assert page.orders == ()
        assert page.total == 4

    def test_limits_clamped(self, service, seeded):
        assert service.list_orders(page=0, limit=500).page == 1
        assert service.list_orders(limit=500).limit == 100
        assert len(service.list_orders(limit=0).orders) == 1

    def test_date_range_is_inclusive_utc_days(self, service, seeded):
        page = service.list_orders(date_from=date(2025, 3, 3), date_to=date(2025, 3, 3))
        assert sorted(names(seeded, page)) == ["albany_mar3", "outside_mar3"]
        assert page.total == 2

    def test_open_ended_dates(self, service, seeded):
        assert service.list_orders(date_from=date(2025, 3, 4)).total == 1
        assert service.list_orders(date_to=date(2025, 3, 1)).total == 1

    def test_rate_bounds_inclusive(self, service, seeded):
        assert sorted(names(seeded, service.list_orders(min_rate="0.05"))) == [
            "manhattan_mar1",
            "manhattan_mar4",
        ]
        assert sorted(names(seeded, service.list_orders(max_rate=Decimal("0.04")))) == [
            "albany_mar3",
            "outside_mar3",
        ]
        exact = service.list_orders(min_rate="0.040000", max_rate="0.040000")
        assert names(seeded, exact) == ["albany_mar3"]

    def test_empty_store(self, service):
        page = service.list_orders()
        assert (page.orders, page.total, page.total_pages) == ((), 0, 1)


class TestPurgeOrders:
    def test_purges_inclusive_day_range(self, service, seeded):
        assert service.purge_orders(date(2025, 3, 2), date(2025, 3, 3)) == 2
        assert names(seeded, service.list_orders()) == ["manhattan_mar4", "manhattan_mar1"]

    def test_nothing_in_range(self, service, seeded):
        assert service.purge_orders(date(2024, 1, 1), date(2024, 12, 31)) == 0
        assert service.list_orders().total == 4

    def test_reversed_range_rejected(self, service, seeded):
        with pytest.raises(ValueError):
            service.purge_orders(date(2025, 3, 4), date(2025, 3, 1))
        assert service.list_orders().total == 4
