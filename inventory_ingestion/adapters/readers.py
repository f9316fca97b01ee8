"""
Invoice row readers for the ERP adapters.

The external ERP export reaches the engine either as a table (the sync job
lands it in ``erp_invoices`` / ``erp_invoices_mirror``) or as a JSON / JSON
Lines export file.  Readers turn either into RawInvoice rows; they do no
agency filtering and no line decoding.

Failure modes:
    - Database errors and missing/unreadable files raise
      SourceUnavailableError.  Table reads run inside a SAVEPOINT so a failed
      query leaves the caller's transaction usable (the run log still gets
      written).
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import SourceUnavailableError


@dataclass(frozen=True)
class RawInvoice:
    """One invoice header with its undecoded line payload."""

    external_id: str
    partner_name: str
    date_order: datetime | None
    lines: Any


@runtime_checkable
class InvoiceRowReader(Protocol):

    @property
    def location(self) -> str:
        """Human-readable origin (table name or file path) for logs and errors."""
        ...

    def read_rows(self, session: Session) -> list[RawInvoice]: ...


def parse_datetime(value: Any) -> datetime | None:
    """datetime/date/ISO-8601 string -> aware datetime (naive values taken as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TableInvoiceReader:
    """Reads invoices from an ORM model with the ERP invoice columns."""

    def __init__(self, model: type, source_system: str):
        self._model = model
        self._source_system = source_system

    @property
    def location(self) -> str:
        return self._model.__tablename__

    def read_rows(self, session: Session) -> list[RawInvoice]:
        model = self._model
        try:
            with session.begin_nested():
                rows = session.execute(
                    select(model).order_by(model.invoice_number, model.id)
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(
                self._source_system, f"cannot read {self.location}: {exc}",
            ) from exc
        return [
            RawInvoice(
                external_id=row.invoice_number,
                partner_name=row.partner_name or "",
                date_order=parse_datetime(row.date_order),
                lines=row.order_lines,
            )
            for row in rows
        ]


# -----------------------------------------------------------------------------
# JSON export files
# -----------------------------------------------------------------------------

_ID_KEYS = ("name", "invoice_number", "externalid", "external_id")
_PARTNER_KEYS = ("partner_name", "partnername", "partner_id", "customer_name")
_DATE_KEYS = ("date_order", "dateorder", "invoice_date", "date")
_LINE_KEYS = ("order_lines", "lines", "invoice_line_ids", "invoice_lines")


def _get_nested(data: Any, path: str) -> Any:
    """Follow dot-separated path into dict/list. Returns None if key missing."""
    if not path.strip():
        return data
    for key in path.split("."):
        key = key.strip()
        if not key:
            continue
        if isinstance(data, list):
            try:
                data = data[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return None
    return data


def _normalize_row_keys(item: dict[str, Any]) -> dict[str, Any]:
    """Lower-cased string keys so exports with different casing map the same."""
    return {str(k).strip().lower(): v for k, v in item.items() if isinstance(k, str)}


def _first(row: dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _partner_name(value: Any) -> str:
    # Many2one exports arrive as [id, "Name"]
    if isinstance(value, (list, tuple)):
        return str(value[1]).strip() if len(value) > 1 else ""
    return str(value).strip() if value is not None else ""


class JsonExportReader:
    """Reads a JSON array or JSON Lines export of ERP invoices."""

    def __init__(
        self,
        path: Path,
        source_system: str,
        fmt: str = "array",
        json_path: str | None = None,
        encoding: str = "utf-8",
    ):
        self._path = Path(path)
        self._source_system = source_system
        self._fmt = fmt
        self._json_path = json_path
        self._encoding = encoding

    @property
    def location(self) -> str:
        return str(self._path)

    def _load(self) -> list[Any]:
        try:
            with self._path.open("r", encoding=self._encoding) as f:
                if self._fmt == "jsonl":
                    return [json.loads(line) for line in f if line.strip()]
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SourceUnavailableError(
                self._source_system, f"cannot read {self.location}: {exc}",
            ) from exc
        root = _get_nested(data, self._json_path) if self._json_path else data
        return root if isinstance(root, list) else []

    def read_rows(self, session: Session) -> list[RawInvoice]:
        rows: list[RawInvoice] = []
        for item in self._load():
            if not isinstance(item, dict):
                continue
            row = _normalize_row_keys(item)
            external_id = _first(row, _ID_KEYS)
            if external_id is None:
                continue
            rows.append(RawInvoice(
                external_id=str(external_id),
                partner_name=_partner_name(_first(row, _PARTNER_KEYS)),
                date_order=parse_datetime(_first(row, _DATE_KEYS)),
                lines=_first(row, _LINE_KEYS),
            ))
        return rows
