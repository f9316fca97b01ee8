"""
Stock ledger transaction ORM model.

Contract:
    One row per stock movement.  Rows are append-only: the ORM listeners in
    db/immutability.py block every UPDATE and DELETE.  Corrections are new
    offsetting rows (adjustments).

Invariants enforced:
    - UNIQUE (agency_id, source_system, external_id, product_name, color, size)
      is the storage-level dedup key backing insert-or-ignore.
    - CHECK signed_quantity <> 0.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from inventory_kernel.domain.types import LedgerTransaction


DEDUP_COLUMNS: tuple[str, ...] = (
    "agency_id",
    "source_system",
    "external_id",
    "product_name",
    "color",
    "size",
)


class LedgerTransactionModel(TrackedBase):
    """Immutable signed-quantity stock movement."""

    __tablename__ = "stock_ledger_transactions"

    __table_args__ = (
        UniqueConstraint(*DEDUP_COLUMNS, name="uq_stock_ledger_dedup_key"),
        CheckConstraint("signed_quantity <> 0", name="ck_stock_ledger_nonzero_qty"),
        Index(
            "ix_stock_ledger_stock_key",
            "agency_id", "product_name", "color", "size",
        ),
        Index("ix_stock_ledger_record", "agency_id", "source_system", "external_id"),
        Index("ix_stock_ledger_transaction_date", "transaction_date"),
    )

    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    product_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    color: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    signed_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    agency_id: Mapped[str] = mapped_column(String(100), nullable=False)
    source_system: Mapped[str] = mapped_column(String(100), nullable=False)
    external_id: Mapped[str] = mapped_column(String(200), nullable=False)
    reference_name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    matched_product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    match_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> LedgerTransaction:
        from inventory_kernel.domain.types import LedgerTransaction, TransactionType

        return LedgerTransaction(
            transaction_id=self.id,
            product_name=self.product_name,
            color=self.color,
            size=self.size,
            category=self.category,
            sub_category=self.sub_category,
            unit_price=self.unit_price,
            transaction_type=TransactionType(self.transaction_type),
            signed_quantity=self.signed_quantity,
            agency_id=self.agency_id,
            source_system=self.source_system,
            external_id=self.external_id,
            reference_name=self.reference_name,
            transaction_date=self.transaction_date,
            product_code=self.product_code,
            matched_product_id=self.matched_product_id,
            match_confidence=self.match_confidence,
            notes=self.notes,
            created_at=self.created_at,
        )

    @staticmethod
    def values_from_dto(dto: LedgerTransaction, created_by_id: UUID) -> dict:
        """Column values for a Core INSERT of ``dto``."""
        return {
            "id": dto.transaction_id,
            "product_name": dto.product_name,
            "product_code": dto.product_code,
            "color": dto.color,
            "size": dto.size,
            "category": dto.category,
            "sub_category": dto.sub_category,
            "unit_price": dto.unit_price,
            "transaction_type": dto.transaction_type.value,
            "signed_quantity": dto.signed_quantity,
            "agency_id": dto.agency_id,
            "source_system": dto.source_system,
            "external_id": dto.external_id,
            "reference_name": dto.reference_name,
            "transaction_date": dto.transaction_date,
            "matched_product_id": dto.matched_product_id,
            "match_confidence": dto.match_confidence,
            "notes": dto.notes,
            "created_by_id": created_by_id,
        }

    @classmethod
    def from_dto(cls, dto: LedgerTransaction, created_by_id: UUID) -> LedgerTransactionModel:
        return cls(**cls.values_from_dto(dto, created_by_id))
