"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read-only stock queries over the ledger.  Current stock is
    always ``SUM(signed_quantity)`` over the rows of one key, so any value
    returned here is recomputable from the transaction log alone.
Architecture position: Kernel > Selectors.

Failure modes:
    - Keys with no rows report stock 0, never an error.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, distinct, func, select

from inventory_kernel.domain.types import (
    LedgerTransaction,
    StockKey,
    StockLevel,
    StockSummaryRow,
    UnmatchedSummary,
)
from inventory_kernel.models.ledger import LedgerTransactionModel
from inventory_kernel.selectors.base import BaseSelector

_L = LedgerTransactionModel


class StockSelector(BaseSelector[LedgerTransactionModel]):
    """Derived stock levels and ledger summaries."""

    def current_stock(self, key: StockKey) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(_L.signed_quantity), 0)).where(
                _L.agency_id == key.agency_id,
                _L.product_name == key.product_name,
                _L.color == key.color,
                _L.size == key.size,
            )
        ).scalar_one()
        return int(total)

    def stock_levels(self, agency_id: str, include_zero: bool = True) -> list[StockLevel]:
        """All stock keys of one agency, ordered by product, color, size."""
        total = func.sum(_L.signed_quantity)
        stmt = (
            select(_L.product_name, _L.color, _L.size, total)
            .where(_L.agency_id == agency_id)
            .group_by(_L.product_name, _L.color, _L.size)
            .order_by(_L.product_name, _L.color, _L.size)
        )
        levels = [
            StockLevel(
                product_name=name,
                color=color,
                size=size,
                current_stock=int(qty or 0),
                agency_id=agency_id,
            )
            for name, color, size, qty in self.session.execute(stmt)
        ]
        if include_zero:
            return levels
        return [lvl for lvl in levels if lvl.current_stock != 0]

    def stock_summary(self, agency_id: str | None = None) -> list[StockSummaryRow]:
        """Per-key totals: current, stock in, stock out, count, first/last date."""
        stock_in = func.sum(
            case((_L.signed_quantity > 0, _L.signed_quantity), else_=0)
        )
        stock_out = func.sum(
            case((_L.signed_quantity < 0, -_L.signed_quantity), else_=0)
        )
        stmt = select(
            _L.agency_id,
            _L.product_name,
            _L.color,
            _L.size,
            func.sum(_L.signed_quantity),
            stock_in,
            stock_out,
            func.count(_L.id),
            func.min(_L.transaction_date),
            func.max(_L.transaction_date),
        ).group_by(_L.agency_id, _L.product_name, _L.color, _L.size).order_by(
            _L.agency_id, _L.product_name, _L.color, _L.size,
        )
        if agency_id is not None:
            stmt = stmt.where(_L.agency_id == agency_id)

        return [
            StockSummaryRow(
                agency_id=row[0],
                product_name=row[1],
                color=row[2],
                size=row[3],
                current_stock=int(row[4] or 0),
                total_stock_in=int(row[5] or 0),
                total_stock_out=int(row[6] or 0),
                transaction_count=int(row[7]),
                first_transaction_date=row[8],
                last_transaction_date=row[9],
            )
            for row in self.session.execute(stmt)
        ]

    def record_exists(self, agency_id: str, source_system: str, external_id: str) -> bool:
        """True if any transaction was already written for this external record."""
        found = self.session.execute(
            select(_L.id).where(
                _L.agency_id == agency_id,
                _L.source_system == source_system,
                _L.external_id == external_id,
            ).limit(1)
        ).first()
        return found is not None

    def transactions_for_key(self, key: StockKey) -> list[LedgerTransaction]:
        rows = self.session.execute(
            select(_L).where(
                _L.agency_id == key.agency_id,
                _L.product_name == key.product_name,
                _L.color == key.color,
                _L.size == key.size,
            ).order_by(_L.transaction_date, _L.created_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    def transactions_for_record(
        self, agency_id: str, source_system: str, external_id: str,
    ) -> list[LedgerTransaction]:
        rows = self.session.execute(
            select(_L).where(
                _L.agency_id == agency_id,
                _L.source_system == source_system,
                _L.external_id == external_id,
            ).order_by(_L.product_name, _L.color, _L.size)
        ).scalars()
        return [row.to_dto() for row in rows]

    def transactions_between(
        self,
        start: datetime,
        end: datetime,
        agency_id: str | None = None,
    ) -> list[LedgerTransaction]:
        stmt = select(_L).where(
            _L.transaction_date >= start,
            _L.transaction_date <= end,
        ).order_by(_L.transaction_date)
        if agency_id is not None:
            stmt = stmt.where(_L.agency_id == agency_id)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def unmatched_summary(
        self, agency_id: str | None = None, sample_size: int = 10,
    ) -> UnmatchedSummary:
        """Distinct product names never resolved to a catalog product."""
        base = _L.matched_product_id.is_(None)
        scope = [base] if agency_id is None else [base, _L.agency_id == agency_id]

        by_category_rows = self.session.execute(
            select(_L.category, func.count(distinct(_L.product_name)))
            .where(*scope)
            .group_by(_L.category)
            .order_by(_L.category)
        ).all()
        by_category = {category: int(count) for category, count in by_category_rows}

        sample = self.session.execute(
            select(distinct(_L.product_name))
            .where(*scope)
            .order_by(_L.product_name)
            .limit(sample_size)
        ).scalars().all()

        return UnmatchedSummary(
            total_unmatched=sum(by_category.values()),
            by_category=by_category,
            sample=tuple(sample),
        )
