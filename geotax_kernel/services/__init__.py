"""Kernel services: containment queries, jurisdiction resolution, order writes."""

from geotax_kernel.services.geometry_store import (
    ContainmentRow,
    GeometryStore,
    PostGISGeometryStore,
)
from geotax_kernel.services.jurisdiction_resolver import JurisdictionResolver
from geotax_kernel.services.order_writer import OrderWriter

__all__ = [
    "ContainmentRow",
    "GeometryStore",
    "JurisdictionResolver",
    "OrderWriter",
    "PostGISGeometryStore",
]
