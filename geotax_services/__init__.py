"""
geotax_services -- Package init and public API.

Responsibility:
    Stateful services that combine the pure engines (geotax_engines/) with
    database sessions and shared in-memory state: the per-run tax cache,
    manual order entry and rate history maintenance.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        geotax_services/ -> geotax_engines/  (allowed)
        geotax_services/ -> geotax_kernel/   (allowed)
        geotax_engines/  -> geotax_services/ (FORBIDDEN)
        geotax_kernel/   -> geotax_services/ (FORBIDDEN)
"""

from geotax_services.order_service import OrderService
from geotax_services.rate_history_service import RateHistoryService
from geotax_services.tax_cache import (
    CacheDiff,
    CacheEntry,
    CacheStats,
    DeduplicatingTaxCache,
)

__all__ = [
    "CacheDiff",
    "CacheEntry",
    "CacheStats",
    "DeduplicatingTaxCache",
    "OrderService",
    "RateHistoryService",
]
