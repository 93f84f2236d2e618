"""
Module: geotax_kernel.db.types
Responsibility: Annotated column types for rates, money and coordinates.
    Centralizes column precision so every model stores identical scales.
Architecture position: Kernel > DB.  May be imported by models/ and
    services/.  MUST NOT import from either.

Invariants enforced:
    - Rates are stored with 6 fractional digits, money with 2 (matching
      the rounding in domain/decimal_math.py).
    - CRITICAL: No floats.  Every column here is Numeric with asdecimal.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Tax rate as a fraction, e.g. 0.045000
Rate = Annotated[Decimal, Numeric(10, 6)]

# Money amount, e.g. 108.88
Money = Annotated[Decimal, Numeric(12, 2)]

# WGS84 degrees
Latitude = Annotated[Decimal, Numeric(9, 6)]
Longitude = Annotated[Decimal, Numeric(10, 6)]

# SHA-256 hash as hex string (64 characters)
ContentHash = Annotated[str, String(64)]
