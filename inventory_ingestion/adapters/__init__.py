"""Source adapters: one per origin, each yielding SourceRecords."""

from inventory_ingestion.adapters.base import (
    AdapterRegistry,
    AgencyRef,
    FetchResult,
    SourceAdapter,
)
from inventory_ingestion.adapters.erp_invoices import (
    ExternalInvoiceAdapter,
    MirroredInvoiceAdapter,
)
from inventory_ingestion.adapters.local_sales import LocalSalesAdapter
from inventory_ingestion.adapters.returns import CompanyReturnAdapter, CustomerReturnAdapter

__all__ = [
    "AdapterRegistry",
    "AgencyRef",
    "CompanyReturnAdapter",
    "CustomerReturnAdapter",
    "ExternalInvoiceAdapter",
    "FetchResult",
    "LocalSalesAdapter",
    "MirroredInvoiceAdapter",
    "SourceAdapter",
]
