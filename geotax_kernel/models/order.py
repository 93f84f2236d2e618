"""
Module: geotax_kernel.models.order
Responsibility: ORM persistence for tax-computed orders.
Architecture position: Kernel > Models.  May import from db/ and domain/
    only.

Invariants enforced:
    - Orders are inserted fully tax-computed and never updated.
    - Money columns carry 2 fractional digits, rate columns 6.
    - import_id references the run that created the order; NULL for
      manually entered orders.  Deleting the run deletes its orders.
    - Timestamps are stored normalized to UTC.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from geotax_kernel.db.base import Base, UUIDString
from geotax_kernel.db.json_text import JSONText
from geotax_kernel.db.types import Latitude, Longitude, Money, Rate
from geotax_kernel.domain.dtos import OrderRecord


def _as_utc(ts: datetime) -> datetime:
    # Stored in UTC so range filters compare correctly on SQLite, which keeps
    # no offset; naive values read back from SQLite are UTC.
    return ts.replace(tzinfo=UTC) if ts.tzinfo is None else ts.astimezone(UTC)


class OrderModel(Base):
    """A point-of-sale event with its resolved tax."""

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_orders_timestamp", "timestamp"),
        Index("idx_orders_created_at", "created_at"),
        Index("idx_orders_composite_tax_rate", "composite_tax_rate"),
        Index("idx_orders_import_id", "import_id"),
    )

    lat: Mapped[Latitude] = mapped_column(nullable=False)
    lon: Mapped[Longitude] = mapped_column(nullable=False)
    subtotal: Mapped[Money] = mapped_column(nullable=False)
    composite_tax_rate: Mapped[Rate] = mapped_column(nullable=False)
    tax_amount: Mapped[Money] = mapped_column(nullable=False)
    total_amount: Mapped[Money] = mapped_column(nullable=False)
    breakdown: Mapped[dict] = mapped_column(JSONText(), nullable=False)
    jurisdictions_applied: Mapped[list] = mapped_column(JSONText(), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    import_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("import_logs.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def to_dto(self) -> OrderRecord:
        return OrderRecord(
            order_id=self.id,
            latitude=self.lat,
            longitude=self.lon,
            subtotal=self.subtotal,
            composite_tax_rate=self.composite_tax_rate,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            breakdown=self.breakdown,
            jurisdictions_applied=self.jurisdictions_applied,
            timestamp=_as_utc(self.timestamp),
            import_id=self.import_id,
        )

    @staticmethod
    def row_from_dto(dto: OrderRecord) -> dict:
        """Column dict for a multi-row INSERT."""
        return {
            "id": dto.order_id,
            "lat": dto.latitude,
            "lon": dto.longitude,
            "subtotal": dto.subtotal,
            "composite_tax_rate": dto.composite_tax_rate,
            "tax_amount": dto.tax_amount,
            "total_amount": dto.total_amount,
            "breakdown": dto.breakdown,
            "jurisdictions_applied": dto.jurisdictions_applied,
            "timestamp": _as_utc(dto.timestamp),
            "import_id": dto.import_id,
        }
