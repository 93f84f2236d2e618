"""
geotax_ingestion.domain -- Pure types and row validation for ingestion.

ZERO I/O.
"""

from geotax_ingestion.domain.types import (
    ChunkOutcome,
    ImportRunResult,
    ImportRunStage,
    ImportRunStatus,
    RawOrderRow,
    RowValidationOutcome,
    ValidatedOrderRow,
)
from geotax_ingestion.domain.validators import validate_order_row

__all__ = [
    "ChunkOutcome",
    "ImportRunResult",
    "ImportRunStage",
    "ImportRunStatus",
    "RawOrderRow",
    "RowValidationOutcome",
    "ValidatedOrderRow",
    "validate_order_row",
]
