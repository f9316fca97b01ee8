"""
Strict decoding of loosely structured line items.

Every fallback-field lookup the sources need lives here, in one place:

    field           keys tried, in order (first usable value wins)
    --------------  ------------------------------------------------------
    product name    product_name, productName, name, product_id[1]
    category        product_category, productCategory, category
    quantity        qty_delivered, quantityDelivered, quantity, qty
                    (a zero value falls through to the next key)
    unit price      price_unit, unitPrice, unit_price (missing -> 0)
    subtotal        price_total, price_subtotal, subtotal, total_amount,
                    amount, total
    color / size    color / size (absent -> None; resolved later)
    product id      product_id[0], product_id

``decode_line_item`` returns a typed LineItem or raises MalformedRecordError;
``decode_lines`` turns a whole payload into (lines, malformed reasons) and
never raises for a single bad line.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from inventory_kernel.domain.types import LineItem
from inventory_kernel.exceptions import MalformedRecordError

NAME_KEYS = ("product_name", "productName", "name")
CATEGORY_KEYS = ("product_category", "productCategory", "category")
QUANTITY_KEYS = ("qty_delivered", "quantityDelivered", "quantity", "qty")
PRICE_KEYS = ("price_unit", "unitPrice", "unit_price")
SUBTOTAL_KEYS = ("price_total", "price_subtotal", "subtotal", "total_amount", "amount", "total")


def to_json_safe(obj: Any) -> Any:
    """Convert values to JSON-serializable form (Decimal -> str, etc.)."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Mapping):
        return {str(k): to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_safe(v) for v in obj]
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return obj


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_decimal(value: Any, field: str, external_id: str | None) -> Decimal:
    if isinstance(value, bool):
        raise MalformedRecordError(external_id, f"boolean is not a number: {value}", field)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise MalformedRecordError(external_id, f"not a number: {value!r}", field) from None
    if not result.is_finite():
        raise MalformedRecordError(external_id, f"not a finite number: {value!r}", field)
    return result


def _first_text(raw: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = raw.get(key)
        if not _blank(value):
            return str(value).strip()
    return None


def _product_ref(raw: Mapping[str, Any]) -> tuple[str | None, str | None]:
    """(id, name) from a ``product_id`` that may be ``[id, name]`` or a scalar."""
    ref = raw.get("product_id")
    if isinstance(ref, (list, tuple)):
        ref_id = str(ref[0]) if len(ref) > 0 and not _blank(ref[0]) else None
        ref_name = str(ref[1]).strip() if len(ref) > 1 and not _blank(ref[1]) else None
        return ref_id, ref_name
    if _blank(ref) or isinstance(ref, bool):
        return None, None
    return str(ref), None


def decode_quantity(raw: Mapping[str, Any], external_id: str | None = None) -> int:
    """Delivered quantity with fallbacks; must be a positive whole number."""
    value: Decimal | None = None
    for key in QUANTITY_KEYS:
        candidate = raw.get(key)
        if _blank(candidate):
            continue
        value = _as_decimal(candidate, key, external_id)
        if value != 0:
            break
    if value is None:
        raise MalformedRecordError(external_id, "missing quantity", "quantity")
    if value <= 0:
        raise MalformedRecordError(external_id, f"non-positive quantity {value}", "quantity")
    if value != value.to_integral_value():
        raise MalformedRecordError(external_id, f"fractional quantity {value}", "quantity")
    return int(value)


def decode_line_item(raw: Any, external_id: str | None = None) -> LineItem:
    """Decode one raw line into a LineItem.

    Raises:
        MalformedRecordError: not an object, missing product name, missing or
            non-positive/fractional quantity, or unparseable price.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(external_id, f"line is not an object: {type(raw).__name__}")

    product_id, ref_name = _product_ref(raw)
    name = _first_text(raw, NAME_KEYS) or ref_name
    if not name:
        raise MalformedRecordError(external_id, "missing product name", "product_name")

    quantity = decode_quantity(raw, external_id)

    price = Decimal("0")
    price_raw = None
    for key in PRICE_KEYS:
        if not _blank(raw.get(key)):
            price_raw = key
            break
    if price_raw is not None:
        price = _as_decimal(raw[price_raw], price_raw, external_id)

    subtotal: Decimal | None = None
    for key in SUBTOTAL_KEYS:
        if not _blank(raw.get(key)):
            subtotal = _as_decimal(raw[key], key, external_id)
            break

    return LineItem(
        raw_product_name=name,
        quantity=quantity,
        unit_price=price,
        raw_category=_first_text(raw, CATEGORY_KEYS) or "",
        color=_first_text(raw, ("color",)),
        size=_first_text(raw, ("size",)),
        subtotal=subtotal,
        external_product_id=product_id,
        payload=to_json_safe(dict(raw)),
    )


def parse_line_payload(payload: Any, external_id: str | None = None) -> list[Any]:
    """Normalize a nested line payload to a list.

    Accepts a list, a single object, or either of those JSON-encoded as a
    string.  ``None``/empty yields an empty list.

    Raises:
        MalformedRecordError: unparseable JSON or an unsupported shape.
    """
    if payload is None:
        return []
    if isinstance(payload, (str, bytes)):
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        if not text.strip():
            return []
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedRecordError(
                external_id, f"unparseable line JSON: {exc.msg}", "order_lines",
            ) from None
    if isinstance(payload, Mapping):
        return [payload]
    if isinstance(payload, list):
        return payload
    raise MalformedRecordError(
        external_id, f"unsupported line payload type {type(payload).__name__}", "order_lines",
    )


def decode_lines(
    payload: Any, external_id: str | None = None,
) -> tuple[tuple[LineItem, ...], tuple[str, ...]]:
    """Decode every line of ``payload``; bad lines become reasons, not errors."""
    try:
        raw_lines = parse_line_payload(payload, external_id)
    except MalformedRecordError as exc:
        return (), (str(exc),)

    lines: list[LineItem] = []
    reasons: list[str] = []
    for raw in raw_lines:
        try:
            lines.append(decode_line_item(raw, external_id))
        except MalformedRecordError as exc:
            reasons.append(str(exc))
    return tuple(lines), tuple(reasons)
