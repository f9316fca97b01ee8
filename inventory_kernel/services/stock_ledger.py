"""
StockLedgerService -- append-only writes and derived stock reads.

Contract:
    ``append()`` inserts one LedgerTransaction with insert-or-ignore
    semantics on the dedup key and reports whether a row was written.
    ``current_stock()`` returns ``SUM(signed_quantity)`` for a key, served
    from an in-process cache that is invalidated (never patched) whenever a
    write touches the key.

Architecture: Kernel > Services.  Uses StockSelector for reads.

Invariants enforced:
    - Storage-level dedup: PostgreSQL and SQLite use ``INSERT ... ON CONFLICT
      DO NOTHING`` against uq_stock_ledger_dedup_key; other dialects fall
      back to a SAVEPOINT around a plain INSERT and treat IntegrityError as
      "already present".
    - The cache is a per-service convenience; dropping it never changes a
      reported stock level.

Non-goals:
    - Does NOT call ``session.commit()``; the caller owns the transaction.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.types import LedgerTransaction, StockKey
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.ledger import DEDUP_COLUMNS, LedgerTransactionModel
from inventory_kernel.selectors.stock_selector import StockSelector

logger = get_logger("services.stock_ledger")


class StockLevelCache:
    """Thread-safe memo of derived stock levels keyed by StockKey."""

    def __init__(self) -> None:
        self._values: dict[StockKey, int] = {}
        self._lock = threading.Lock()

    def get(self, key: StockKey) -> int | None:
        with self._lock:
            return self._values.get(key)

    def put(self, key: StockKey, value: int) -> None:
        with self._lock:
            self._values[key] = value

    def invalidate(self, keys: Iterable[StockKey]) -> None:
        with self._lock:
            for key in keys:
                self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


class StockLedgerService:
    """Writes ledger transactions and answers current-stock queries."""

    def __init__(
        self,
        session: Session,
        cache: StockLevelCache | None = None,
    ):
        self._session = session
        self._cache = cache if cache is not None else StockLevelCache()
        self._selector = StockSelector(session)

    @property
    def selector(self) -> StockSelector:
        return self._selector

    @property
    def cache(self) -> StockLevelCache:
        return self._cache

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def append(self, transaction: LedgerTransaction, actor_id: UUID) -> bool:
        """Insert ``transaction`` unless its dedup key already exists.

        Returns True when a row was written, False when suppressed.
        """
        values = LedgerTransactionModel.values_from_dto(transaction, created_by_id=actor_id)
        inserted = self._insert_or_ignore(values)
        self._cache.invalidate([transaction.stock_key])

        if inserted:
            logger.debug(
                "ledger_transaction_appended",
                extra={
                    "transaction_id": str(transaction.transaction_id),
                    "transaction_type": transaction.transaction_type.value,
                    "signed_quantity": transaction.signed_quantity,
                    "product_name": transaction.product_name,
                    "external_id": transaction.external_id,
                },
            )
        else:
            logger.info(
                "ledger_transaction_suppressed",
                extra={
                    "source_system": transaction.source_system,
                    "external_id": transaction.external_id,
                    "product_name": transaction.product_name,
                    "color": transaction.color,
                    "size": transaction.size,
                },
            )
        return inserted

    def _insert_or_ignore(self, values: dict) -> bool:
        table = LedgerTransactionModel.__table__
        dialect = self._session.get_bind().dialect.name

        if dialect == "postgresql":
            stmt = pg_insert(table).values(**values).on_conflict_do_nothing(
                constraint="uq_stock_ledger_dedup_key",
            )
            return self._session.execute(stmt).rowcount == 1
        if dialect == "sqlite":
            stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(
                index_elements=list(DEDUP_COLUMNS),
            )
            return self._session.execute(stmt).rowcount == 1

        savepoint = self._session.begin_nested()
        try:
            self._session.execute(insert(table).values(**values))
        except IntegrityError:
            savepoint.rollback()
            return False
        savepoint.commit()
        return True

    def invalidate(self, keys: Iterable[StockKey]) -> None:
        """Drop cached levels for ``keys`` (used after a rolled-back record)."""
        self._cache.invalidate(keys)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def record_exists(self, agency_id: str, source_system: str, external_id: str) -> bool:
        return self._selector.record_exists(agency_id, source_system, external_id)

    def current_stock(self, key: StockKey) -> int:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = self._selector.current_stock(key)
        self._cache.put(key, value)
        return value
