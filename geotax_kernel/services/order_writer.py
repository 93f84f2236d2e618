"""
OrderWriter -- atomic multi-row insert of tax-computed orders.

Contract:
    ``insert_chunk(session, records)`` emits one INSERT for the whole
    chunk (SQLAlchemy batches the parameter sets into multi-row VALUES
    where the dialect supports it).

Non-goals:
    - Does NOT call ``session.commit()`` -- the caller's transaction
      decides whether the chunk becomes visible.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session

from geotax_kernel.domain.dtos import OrderRecord
from geotax_kernel.logging_config import get_logger
from geotax_kernel.models.order import OrderModel

logger = get_logger("services.order_writer")


class OrderWriter:
    """Writes OrderRecords through the caller's session."""

    def insert_chunk(self, session: Session, records: Sequence[OrderRecord]) -> int:
        if not records:
            return 0
        session.execute(
            insert(OrderModel),
            [OrderModel.row_from_dto(r) for r in records],
        )
        logger.debug("orders_inserted", extra={"row_count": len(records)})
        return len(records)
