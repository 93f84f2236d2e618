"""
OrderService -- manually entered orders and order queries.

Contract:
    ``create_order`` validates the inputs with the same field rules as the
    import pipeline, resolves the point, composes the tax and persists one
    order with no import run attached.  Resolution and insert share one
    transaction.  ``quote`` does the same without persisting.

    ``list_orders`` pages through orders newest first with optional date
    and rate filters; ``purge_orders`` deletes a range of days.  Date
    bounds are inclusive UTC calendar days.

Failure modes:
    - RowValidationError for out-of-region coordinates, a non-positive,
      oversized or malformed subtotal, or an unparseable timestamp.
    - GeometryStoreError if the containment query fails (nothing written).
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from geotax_engines.tax import TaxResult, compose_tax
from geotax_kernel.db.engine import session_scope
from geotax_kernel.domain.clock import Clock, SystemClock
from geotax_kernel.domain.decimal_math import to_decimal
from geotax_kernel.domain.dtos import OrderPage, OrderRecord
from geotax_kernel.domain.validation import (
    parse_latitude,
    parse_longitude,
    parse_subtotal,
    parse_timestamp,
)
from geotax_kernel.domain.values import NEW_YORK_STATE, GeoPoint, ServiceRegion, TaxQuery, utc_date
from geotax_kernel.logging_config import get_logger
from geotax_kernel.models.order import OrderModel
from geotax_kernel.services.jurisdiction_resolver import JurisdictionResolver
from geotax_kernel.services.order_writer import OrderWriter

logger = get_logger("services.order_service")

MAX_PAGE_LIMIT = 100
DEFAULT_PAGE_LIMIT = 20


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _order_filters(
    date_from: date | None,
    date_to: date | None,
    min_rate: Decimal | str | None,
    max_rate: Decimal | str | None,
) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if date_from is not None:
        conditions.append(OrderModel.timestamp >= _day_start(date_from))
    if date_to is not None:
        conditions.append(OrderModel.timestamp < _day_start(date_to + timedelta(days=1)))
    if min_rate is not None:
        conditions.append(OrderModel.composite_tax_rate >= to_decimal(min_rate))
    if max_rate is not None:
        conditions.append(OrderModel.composite_tax_rate <= to_decimal(max_rate))
    return conditions


class OrderService:
    """Single-order tax calculation, persistence and order queries."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        resolver: JurisdictionResolver,
        region: ServiceRegion = NEW_YORK_STATE,
        clock: Clock | None = None,
        order_writer: OrderWriter | None = None,
    ):
        self._session_factory = session_factory
        self._resolver = resolver
        self._region = region
        self._clock = clock or SystemClock()
        self._writer = order_writer or OrderWriter()

    # ------------------------------------------------------------------
    # Tax
    # ------------------------------------------------------------------

    def tax_for(self, query: TaxQuery, session: Session | None = None) -> TaxResult:
        """Resolve and compose the tax for an already validated query."""
        matches = self._resolver.resolve_one(query.point, query.as_of, session=session)
        return compose_tax(matches, query.subtotal)

    def quote(
        self,
        latitude: Any,
        longitude: Any,
        subtotal: Any,
        timestamp: Any = None,
    ) -> TaxResult:
        """Tax for the inputs without persisting anything."""
        query, _ = self._parse(latitude, longitude, subtotal, timestamp)
        return self.tax_for(query)

    def create_order(
        self,
        latitude: Any,
        longitude: Any,
        subtotal: Any,
        timestamp: Any = None,
    ) -> OrderRecord:
        query, ts = self._parse(latitude, longitude, subtotal, timestamp)

        with session_scope(self._session_factory) as session:
            result = self.tax_for(query, session=session)
            record = OrderRecord(
                order_id=uuid4(),
                latitude=query.point.latitude,
                longitude=query.point.longitude,
                subtotal=result.subtotal,
                composite_tax_rate=result.composite_tax_rate,
                tax_amount=result.tax_amount,
                total_amount=result.total_amount,
                breakdown=result.breakdown.to_json_dict(),
                jurisdictions_applied=[j.to_json_dict() for j in result.jurisdictions_applied],
                timestamp=ts,
                import_id=None,
            )
            self._writer.insert_chunk(session, [record])

        logger.info(
            "order_created",
            extra={
                "order_id": str(record.order_id),
                "composite_tax_rate": record.composite_tax_rate,
                "tax_amount": record.tax_amount,
                "jurisdiction_count": len(result.jurisdictions_applied),
            },
        )
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        session = self._session_factory()
        try:
            model = session.get(OrderModel, order_id)
            return model.to_dto() if model is not None else None
        finally:
            session.close()

    def orders_for_import(self, import_id: UUID) -> list[OrderRecord]:
        session = self._session_factory()
        try:
            models = session.scalars(
                select(OrderModel)
                .where(OrderModel.import_id == import_id)
                .order_by(OrderModel.timestamp)
            ).all()
            return [m.to_dto() for m in models]
        finally:
            session.close()

    def list_orders(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
        date_from: date | None = None,
        date_to: date | None = None,
        min_rate: Decimal | str | None = None,
        max_rate: Decimal | str | None = None,
    ) -> OrderPage:
        """
        One page of orders, newest timestamp first.

        ``page`` is clamped to at least 1 and ``limit`` to 1..MAX_PAGE_LIMIT.
        ``total`` counts every order matching the filters, not just the page.
        """
        page = max(1, page)
        limit = min(MAX_PAGE_LIMIT, max(1, limit))
        conditions = _order_filters(date_from, date_to, min_rate, max_rate)

        session = self._session_factory()
        try:
            total = session.scalar(
                select(func.count()).select_from(OrderModel).where(*conditions)
            )
            models = session.scalars(
                select(OrderModel)
                .where(*conditions)
                .order_by(OrderModel.timestamp.desc(), OrderModel.id)
                .limit(limit)
                .offset((page - 1) * limit)
            ).all()
        finally:
            session.close()

        return OrderPage(
            orders=tuple(m.to_dto() for m in models),
            total=total or 0,
            page=page,
            limit=limit,
        )

    def purge_orders(self, date_from: date, date_to: date) -> int:
        """
        Delete every order timestamped within the inclusive day range.

        Import logs are left as they are.  Returns the number deleted.
        """
        if date_from > date_to:
            raise ValueError(f"date_from ({date_from}) is after date_to ({date_to})")
        conditions = _order_filters(date_from, date_to, None, None)

        with session_scope(self._session_factory) as session:
            deleted = session.execute(delete(OrderModel).where(*conditions)).rowcount

        logger.info(
            "orders_purged",
            extra={"date_from": date_from, "date_to": date_to, "orders_deleted": deleted},
        )
        return deleted

    def _parse(
        self,
        latitude: Any,
        longitude: Any,
        subtotal: Any,
        timestamp: Any,
    ) -> tuple[TaxQuery, datetime]:
        point = GeoPoint(
            parse_latitude(latitude, self._region),
            parse_longitude(longitude, self._region),
        )
        ts = parse_timestamp(timestamp, default=self._clock.now())
        return TaxQuery(point=point, subtotal=parse_subtotal(subtotal), as_of=utc_date(ts)), ts
