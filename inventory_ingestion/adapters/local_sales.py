"""
Local sales invoice adapter (stock OUT).

Agencies create sales invoices locally; each invoice's items leave the
agency's stock.  The invoice id is the stable external id.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from inventory_ingestion.adapters.base import AgencyRef, FetchResult
from inventory_ingestion.adapters.decoding import decode_line_item
from inventory_ingestion.models.sources import SalesInvoiceModel
from inventory_kernel.domain.types import LineItem, SourceRecord, TransactionType
from inventory_kernel.exceptions import MalformedRecordError, SourceUnavailableError
from inventory_kernel.logging_config import get_logger

logger = get_logger("ingestion.adapters.local_sales")

LOCAL_SALES_SOURCE = "local_sales"


def item_to_raw(item: Any) -> dict[str, Any]:
    """Flatten an invoice/return item row into the decoder's raw line shape."""
    raw: dict[str, Any] = {
        "product_name": item.product_name,
        "category": item.category,
        "color": item.color,
        "size": item.size,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
    }
    total = getattr(item, "total", None)
    if total is not None:
        raw["subtotal"] = total
    return raw


def decode_items(
    items: Iterable[Any], external_id: str,
) -> tuple[tuple[LineItem, ...], tuple[str, ...]]:
    lines: list[LineItem] = []
    reasons: list[str] = []
    for item in items:
        try:
            lines.append(decode_line_item(item_to_raw(item), external_id))
        except MalformedRecordError as exc:
            reasons.append(str(exc))
    return tuple(lines), tuple(reasons)


class LocalSalesAdapter:
    """Agency-scoped local sales invoices with their items."""

    def __init__(self, source_system: str = LOCAL_SALES_SOURCE):
        self._source_system = source_system

    @property
    def source_system(self) -> str:
        return self._source_system

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.SALE

    def fetch(self, session: Session, agencies: Sequence[AgencyRef]) -> FetchResult:
        agency_ids = [a.agency_id for a in agencies]
        if not agency_ids:
            return FetchResult(records=(), records_fetched=0)

        stmt = (
            select(SalesInvoiceModel)
            .where(SalesInvoiceModel.agency_id.in_(agency_ids))
            .options(selectinload(SalesInvoiceModel.items))
            .order_by(SalesInvoiceModel.invoice_date, SalesInvoiceModel.id)
        )
        try:
            with session.begin_nested():
                invoices = session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(self._source_system, str(exc)) from exc

        records = []
        for invoice in invoices:
            lines, malformed = decode_items(invoice.items, invoice.id)
            number = invoice.invoice_number or invoice.id
            records.append(SourceRecord(
                external_id=invoice.id,
                agency_id=invoice.agency_id,
                reference_name=f"Sales Invoice - {number}",
                transaction_date=invoice.invoice_date,
                lines=lines,
                malformed_lines=malformed,
            ))

        logger.info(
            "local_sales_fetched",
            extra={"source_system": self._source_system, "invoices": len(records)},
        )
        return FetchResult(records=tuple(records), records_fetched=len(records))
