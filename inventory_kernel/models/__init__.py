"""ORM models owned by the inventory kernel."""

from inventory_kernel.models.adjustment import AdjustmentRequestModel
from inventory_kernel.models.ingestion_run import IngestionRunModel
from inventory_kernel.models.ledger import LedgerTransactionModel

__all__ = [
    "AdjustmentRequestModel",
    "IngestionRunModel",
    "LedgerTransactionModel",
]
