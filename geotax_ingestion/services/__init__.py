"""Order import services (run context and the batch import pipeline)."""

from geotax_ingestion.services.import_service import ImportService, chunked
from geotax_ingestion.services.run_context import ImportRunContext

__all__ = [
    "ImportRunContext",
    "ImportService",
    "chunked",
]
