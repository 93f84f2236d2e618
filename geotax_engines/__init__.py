"""
Module: geotax_engines
Responsibility:
    Pure calculation layer: the tax composer and rate-history selection.

Architecture position:
    Engines -- zero I/O.  May only import geotax_kernel.domain and
    geotax_kernel.logging_config.  MUST NOT import services or ingestion.

Invariants enforced:
    - Decimal-only arithmetic through geotax_kernel.domain.decimal_math.
    - Determinism: identical inputs always produce identical outputs.
"""

from geotax_engines.rate_history import (
    active_rate,
    active_records,
    history_violations,
    open_record,
)
from geotax_engines.tax import (
    EMPTY_COMPOSITION,
    AppliedJurisdiction,
    RateComposition,
    TaxBreakdown,
    TaxResult,
    apply_to_subtotal,
    compose_rates,
    compose_tax,
)

__all__ = [
    "EMPTY_COMPOSITION",
    "AppliedJurisdiction",
    "RateComposition",
    "TaxBreakdown",
    "TaxResult",
    "active_rate",
    "active_records",
    "apply_to_subtotal",
    "compose_rates",
    "compose_tax",
    "history_violations",
    "open_record",
]
