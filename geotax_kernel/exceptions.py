"""
Typed Exception Hierarchy for the GeoTax Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Import runs must tell a bad row from a bad chunk from a bad file without
parsing message strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (row number, chunk index, hash)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from GeoTaxError:

    GeoTaxError (base)
    |
    +-- ArithmeticParseError
    |
    +-- RowValidationError
    |
    +-- ImportRunError
    |   +-- DuplicateRunError
    |   +-- ChunkCommitError
    |   +-- ImportNotFoundError
    |
    +-- JurisdictionError
    |   +-- RateHistoryError
    |   +-- RateRecordNotFoundError
    |
    +-- GeometryStoreError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Arithmetic      | ARITHMETIC_PARSE_ERROR      | Numeric text is malformed or non-finite
----------------|-----------------------------|-----------------------------------------
Validation      | ROW_VALIDATION_FAILED       | Input row out of range / unparseable
----------------|-----------------------------|-----------------------------------------
Import          | DUPLICATE_IMPORT            | File content hash already imported
                | CHUNK_COMMIT_FAILED         | Chunk rolled back (counted as errors)
                | IMPORT_NOT_FOUND            | Import log id doesn't exist
----------------|-----------------------------|-----------------------------------------
Jurisdiction    | RATE_HISTORY_CONFLICT       | Rate change would break the history
                | RATE_RECORD_NOT_FOUND       | Rate record id doesn't exist
----------------|-----------------------------|-----------------------------------------
Geometry        | GEOMETRY_STORE_FAILED       | Containment query failed

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        result = service.import_file(path)
    except DuplicateRunError as e:
        return {"error": e.code, "file_hash": e.file_hash}

RowValidationError and ChunkCommitError are recovered inside the import
pipeline: they are counted and logged, never propagated out of a run.
"""


class GeoTaxError(Exception):
    """
    Base exception for all geotax errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GEOTAX_ERROR"


# Arithmetic


class ArithmeticParseError(GeoTaxError):
    """Numeric text could not be parsed into an exact decimal."""

    code: str = "ARITHMETIC_PARSE_ERROR"

    def __init__(self, value: object, reason: str = "malformed"):
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot parse decimal from {value!r}: {reason}")


# Row validation


class RowValidationError(GeoTaxError):
    """A single input row failed validation.

    Collected by the import pipeline and counted; never aborts a run.
    """

    code: str = "ROW_VALIDATION_FAILED"

    def __init__(
        self,
        row_number: int | None,
        field: str,
        reason: str,
        value: object = None,
    ):
        self.row_number = row_number
        self.field = field
        self.reason = reason
        self.value = value
        where = f"row {row_number}" if row_number is not None else "input"
        super().__init__(f"Invalid {field} at {where}: {reason} ({value!r})")


# Import runs


class ImportRunError(GeoTaxError):
    """Base exception for import run errors."""

    code: str = "IMPORT_RUN_ERROR"


class DuplicateRunError(ImportRunError):
    """File content was already imported by an earlier run."""

    code: str = "DUPLICATE_IMPORT"

    def __init__(self, file_hash: str, existing_import_id: str | None = None):
        self.file_hash = file_hash
        self.existing_import_id = existing_import_id
        super().__init__(
            f"File already imported (hash {file_hash}, import {existing_import_id})"
        )


class ChunkCommitError(ImportRunError):
    """A chunk failed and was rolled back as a unit."""

    code: str = "CHUNK_COMMIT_FAILED"

    def __init__(self, chunk_index: int, row_count: int, cause: str):
        self.chunk_index = chunk_index
        self.row_count = row_count
        self.cause = cause
        super().__init__(
            f"Chunk {chunk_index} ({row_count} rows) rolled back: {cause}"
        )


class ImportNotFoundError(ImportRunError):
    """Import log with given ID was not found."""

    code: str = "IMPORT_NOT_FOUND"

    def __init__(self, import_id: str):
        self.import_id = import_id
        super().__init__(f"Import not found: {import_id}")


# Jurisdictions and rate history


class JurisdictionError(GeoTaxError):
    """Base exception for jurisdiction and rate history errors."""

    code: str = "JURISDICTION_ERROR"


class RateHistoryError(JurisdictionError):
    """A rate change would break the contiguous, non-overlapping history."""

    code: str = "RATE_HISTORY_CONFLICT"

    def __init__(self, jurisdiction_id: str, message: str):
        self.jurisdiction_id = jurisdiction_id
        super().__init__(f"Rate history conflict for {jurisdiction_id}: {message}")


class RateRecordNotFoundError(JurisdictionError):
    """Rate record with given ID was not found."""

    code: str = "RATE_RECORD_NOT_FOUND"

    def __init__(self, rate_id: str):
        self.rate_id = rate_id
        super().__init__(f"Rate record not found: {rate_id}")


# Geometry store


class GeometryStoreError(GeoTaxError):
    """The spatial containment query failed."""

    code: str = "GEOMETRY_STORE_FAILED"

    def __init__(self, point_count: int, cause: str):
        self.point_count = point_count
        self.cause = cause
        super().__init__(f"Containment query for {point_count} points failed: {cause}")
