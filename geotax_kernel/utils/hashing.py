"""
Deterministic hashing utilities.

Canonical JSON (sorted keys, compact separators) is used for persisted
breakdowns and for settings checksums; SHA-256 file digests identify
import files for duplicate-run detection.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, BinaryIO
from uuid import UUID

DEFAULT_BLOCK_SIZE = 64 * 1024


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Decimals keep their written scale ("0.045000" stays "0.045000").

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of Decimal, datetime, UUID
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_stream(stream: BinaryIO, block_size: int = DEFAULT_BLOCK_SIZE) -> tuple[str, int]:
    """
    SHA-256 of a binary stream read in fixed-size blocks.

    Returns:
        (hex digest, number of bytes read).  Memory use is bounded by
        ``block_size`` regardless of stream length.
    """
    digest = hashlib.sha256()
    size = 0
    while True:
        block = stream.read(block_size)
        if not block:
            break
        digest.update(block)
        size += len(block)
    return digest.hexdigest(), size


def hash_file(path: Path, block_size: int = DEFAULT_BLOCK_SIZE) -> tuple[str, int]:
    """SHA-256 of a file's content; see ``hash_stream``."""
    with path.open("rb") as f:
        return hash_stream(f, block_size)
