"""
Module: geotax_kernel.models.jurisdiction
Responsibility: ORM persistence for taxing jurisdictions and their dated
    rate history.
Architecture position: Kernel > Models.  May import from db/ and domain/
    only.

Invariants enforced:
    - type is one of state / county / city / special (CHECK constraint).
    - valid_from < valid_to when both are present (CHECK constraint).
    - One record per (jurisdiction, valid_from).  Overlap prevention across
      records is enforced in PostgreSQL by an exclusion constraint on
      daterange(valid_from, valid_to, '[)') owned by the schema migrations,
      and by RateHistoryService for every change made through the code.

Non-goals:
    - The polygon geometry column belongs to the geometry store and is not
      mapped here; the kernel refers to jurisdictions by id only.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from geotax_kernel.db.base import Base, UUIDString
from geotax_kernel.db.types import Rate
from geotax_kernel.domain.values import JurisdictionType, RateRecord

_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in JurisdictionType)


class JurisdictionModel(Base):
    """A named, typed taxing authority."""

    __tablename__ = "jurisdictions"

    __table_args__ = (
        CheckConstraint(f"type IN ({_TYPE_VALUES})", name="ck_jurisdictions_type"),
        Index("idx_jurisdictions_type", "type"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    rates: Mapped[list["TaxRateModel"]] = relationship(
        "TaxRateModel",
        back_populates="jurisdiction",
        cascade="all, delete-orphan",
        order_by="TaxRateModel.valid_from",
    )

    @property
    def jurisdiction_type(self) -> JurisdictionType:
        return JurisdictionType(self.type)

    def __repr__(self) -> str:
        return f"<Jurisdiction {self.type}:{self.name}>"


class TaxRateModel(Base):
    """One rate of a jurisdiction, active on [valid_from, valid_to)."""

    __tablename__ = "tax_rates"

    __table_args__ = (
        UniqueConstraint("jurisdiction_id", "valid_from", name="uq_tax_rates_jurisdiction_from"),
        CheckConstraint(
            "valid_to IS NULL OR valid_from < valid_to",
            name="ck_tax_rates_interval",
        ),
        Index("idx_tax_rates_jurisdiction", "jurisdiction_id"),
        Index("idx_tax_rates_validity", "valid_from", "valid_to"),
    )

    jurisdiction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jurisdictions.id", ondelete="CASCADE"),
        nullable=False,
    )
    rate: Mapped[Rate] = mapped_column(nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    jurisdiction: Mapped["JurisdictionModel"] = relationship(
        "JurisdictionModel",
        back_populates="rates",
    )

    def to_dto(self) -> RateRecord:
        return RateRecord(
            jurisdiction_id=self.jurisdiction_id,
            rate=self.rate,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            rate_id=self.id,
        )

    def __repr__(self) -> str:
        return f"<TaxRate {self.rate} [{self.valid_from}, {self.valid_to})>"
