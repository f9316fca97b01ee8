"""ORM models for the data the source adapters read."""

from inventory_ingestion.models.sources import (
    AgencyModel,
    CatalogProductModel,
    ExternalInvoiceModel,
    MirroredInvoiceModel,
    SalesInvoiceItemModel,
    SalesInvoiceModel,
    SalesReturnItemModel,
    SalesReturnModel,
)

__all__ = [
    "AgencyModel",
    "CatalogProductModel",
    "ExternalInvoiceModel",
    "MirroredInvoiceModel",
    "SalesInvoiceItemModel",
    "SalesInvoiceModel",
    "SalesReturnItemModel",
    "SalesReturnModel",
]
