"""
Module: geotax_kernel.models.import_log
Responsibility: One row per import attempt: file identity, counts and
    timing.  Used for duplicate-file detection and reporting only; the tax
    logic never reads it.
Architecture position: Kernel > Models.  May import from db/ and domain/
    only.

Invariants enforced:
    - file_hash is UNIQUE: the same content can be imported once.
    - Deleting a log row cascades to the orders it created.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from geotax_kernel.db.base import Base
from geotax_kernel.db.types import ContentHash
from geotax_kernel.domain.dtos import ImportLogSummary


class ImportLogModel(Base):
    """Run log of a file import."""

    __tablename__ = "import_logs"

    __table_args__ = (
        Index("idx_import_logs_created_at", "created_at"),
    )

    filename: Mapped[str] = mapped_column(Text, nullable=False)
    file_hash: Mapped[ContentHash] = mapped_column(nullable=False, unique=True)
    rows_imported: Mapped[int] = mapped_column(default=0, nullable=False)
    rows_failed: Mapped[int] = mapped_column(default=0, nullable=False)
    processing_time_ms: Mapped[int] = mapped_column(default=0, nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="running", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> ImportLogSummary:
        return ImportLogSummary(
            import_id=self.id,
            filename=self.filename,
            file_hash=self.file_hash,
            rows_imported=self.rows_imported,
            rows_failed=self.rows_failed,
            processing_time_ms=self.processing_time_ms,
            file_size_bytes=self.file_size_bytes,
            status=self.status,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )

    def __repr__(self) -> str:
        return f"<ImportLog {self.filename} {self.file_hash[:12]}>"
