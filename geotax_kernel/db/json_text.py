"""
JSON stored as text.

Orders keep their breakdown and applied-jurisdiction lists as JSON.  The
import pipeline serializes those once per cache entry, so the column
accepts an already-serialized string unchanged and serializes anything
else with the canonical encoder.
"""

import json
from typing import Any

from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from geotax_kernel.utils.hashing import canonicalize_json


class JSONText(TypeDecorator):
    """JSON document persisted in a TEXT column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return canonicalize_json(value)

    def process_result_value(self, value: Any, dialect) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return json.loads(value)
        return value
