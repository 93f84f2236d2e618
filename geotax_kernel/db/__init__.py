"""Database layer - engine, base classes, column types."""

from geotax_kernel.db.base import Base, UUIDString
from geotax_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
    session_scope,
)
from geotax_kernel.db.types import Latitude, Longitude, Money, Rate

__all__ = [
    "build_engine",
    "build_session_factory",
    "create_tables",
    "drop_tables",
    "session_scope",
    "Base",
    "UUIDString",
    "Latitude",
    "Longitude",
    "Money",
    "Rate",
]
