"""Source adapters for order ingestion (file I/O only, no DB)."""

from geotax_ingestion.adapters.base import SourceAdapter, SourceProbe
from geotax_ingestion.adapters.csv_adapter import CsvOrderAdapter

__all__ = [
    "CsvOrderAdapter",
    "SourceAdapter",
    "SourceProbe",
]
