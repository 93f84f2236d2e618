"""
GeoTax Kernel

Location- and date-dependent sales tax for point-of-sale events:
- Exact decimal arithmetic with a single rounding rule
- Jurisdiction resolution against an external geometry store
- Per-run deduplicating tax cache
- Persisted orders, rate history and import logs
"""

__version__ = "0.1.0"
