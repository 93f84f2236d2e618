"""
Data transfer objects crossing the persistence boundary.

OrderRecord is the persisted unit of work.  The breakdown and
jurisdictions fields hold either the structured value or its
pre-serialized canonical JSON text; the JSONText column accepts both.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class OrderRecord:
    """Immutable snapshot of one tax-computed order."""

    order_id: UUID
    latitude: Decimal
    longitude: Decimal
    subtotal: Decimal
    composite_tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    breakdown: dict[str, Any] | str
    jurisdictions_applied: list[dict[str, Any]] | str
    timestamp: datetime
    import_id: UUID | None = None


@dataclass(frozen=True)
class ImportLogSummary:
    """Read model of one import run log row."""

    import_id: UUID
    filename: str
    file_hash: str
    rows_imported: int
    rows_failed: int
    processing_time_ms: int
    file_size_bytes: int
    status: str
    created_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class OrderPage:
    """One page of orders plus the total matching the filters."""

    orders: tuple[OrderRecord, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.limit))
