"""
Invoice line source for the achievement calculator.

Reads ERP invoices (table or export file) billed to one customer within a
date range.  Amounts come from the delivered quantity only: ordered but
undelivered quantity never counts.  A line with nothing delivered still
counts when it carries a stored subtotal.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from inventory_ingestion.adapters.decoding import (
    CATEGORY_KEYS,
    NAME_KEYS,
    PRICE_KEYS,
    SUBTOTAL_KEYS,
    parse_line_payload,
    to_json_safe,
)
from inventory_ingestion.adapters.erp_invoices import partner_key
from inventory_ingestion.adapters.readers import InvoiceRowReader
from inventory_kernel.domain.types import DateRange, LineItem
from inventory_kernel.exceptions import MalformedRecordError
from inventory_kernel.logging_config import get_logger

logger = get_logger("ingestion.achievement_source")

DELIVERED_KEYS = ("qty_delivered", "quantityDelivered")


def _decimal_or_none(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Decimal | None:
    for key in keys:
        value = raw.get(key)
        if value is None or isinstance(value, bool) or str(value).strip() == "":
            continue
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError:
            return None
        return result if result.is_finite() else None
    return None


def _line_name(raw: Mapping[str, Any]) -> str:
    for key in NAME_KEYS:
        if raw.get(key):
            return str(raw[key]).strip()
    ref = raw.get("product_id")
    if isinstance(ref, (list, tuple)) and len(ref) > 1 and ref[1]:
        return str(ref[1]).strip()
    return ""


def decode_amount_line(raw: Any, external_id: str) -> LineItem | None:
    """Decode one line for amount aggregation.

    The amount is ``qty_delivered * price_unit``; when that is zero the
    stored subtotal is used.  Returns None when neither yields anything.
    """
    if not isinstance(raw, Mapping):
        logger.debug(
            "achievement_line_skipped",
            extra={"external_id": external_id, "reason": f"not an object: {type(raw).__name__}"},
        )
        return None

    delivered = _decimal_or_none(raw, DELIVERED_KEYS) or Decimal("0")
    if delivered < 0:
        delivered = Decimal("0")
    price = _decimal_or_none(raw, PRICE_KEYS) or Decimal("0")
    subtotal = _decimal_or_none(raw, SUBTOTAL_KEYS)

    quantity = int(delivered) if delivered == delivered.to_integral_value() else 0
    if quantity == 0 and delivered * price != 0:
        # fractional delivery: its amount travels as the line subtotal
        subtotal = delivered * price

    if quantity * price == 0 and subtotal is None:
        return None
    category = next((str(raw[k]) for k in CATEGORY_KEYS if raw.get(k)), "")
    return LineItem(
        raw_product_name=_line_name(raw),
        quantity=quantity,
        unit_price=price,
        raw_category=category.strip(),
        subtotal=subtotal,
        payload=to_json_safe(dict(raw)),
    )


class InvoiceAchievementSource:
    """InvoiceLineSource over ERP invoices."""

    def __init__(self, session: Session, reader: InvoiceRowReader):
        self._session = session
        self._reader = reader

    def lines_for_customer(self, customer_name: str, period: DateRange) -> Iterator[LineItem]:
        wanted = partner_key(customer_name)
        for row in self._reader.read_rows(self._session):
            if partner_key(row.partner_name) != wanted or row.date_order is None:
                continue
            if not period.contains(row.date_order.date()):
                continue
            try:
                raw_lines = parse_line_payload(row.lines, row.external_id)
            except MalformedRecordError as exc:
                logger.warning(
                    "achievement_invoice_skipped",
                    extra={"external_id": row.external_id, "reason": str(exc)},
                )
                continue
            for raw in raw_lines:
                line = decode_amount_line(raw, row.external_id)
                if line is not None:
                    yield line
