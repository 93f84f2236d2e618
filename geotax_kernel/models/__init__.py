"""ORM models for the geotax kernel."""

from geotax_kernel.models.import_log import ImportLogModel
from geotax_kernel.models.jurisdiction import JurisdictionModel, TaxRateModel
from geotax_kernel.models.order import OrderModel


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete."""
    import geotax_kernel.models.import_log  # noqa: F401
    import geotax_kernel.models.jurisdiction  # noqa: F401
    import geotax_kernel.models.order  # noqa: F401


__all__ = [
    "ImportLogModel",
    "JurisdictionModel",
    "OrderModel",
    "TaxRateModel",
    "import_all_models",
]
