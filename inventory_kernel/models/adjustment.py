"""
Adjustment request ORM model.

Contract:
    Persists the request/approve/reject workflow.  Once a request reaches a
    terminal status (approved/rejected) the immutability listeners block
    further changes except to audit metadata.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.domain.types import AdjustmentRequest


class AdjustmentRequestModel(TrackedBase):
    """Manual stock correction awaiting or past review."""

    __tablename__ = "stock_adjustment_requests"

    __table_args__ = (
        CheckConstraint(
            "adjustment_quantity <> 0", name="ck_stock_adjustment_nonzero_qty",
        ),
        Index("ix_stock_adjustment_agency_status", "agency_id", "status"),
    )

    agency_id: Mapped[str] = mapped_column(String(100), nullable=False)
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    product_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    color: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    current_stock_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)
    adjustment_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    ledger_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    def to_dto(self) -> AdjustmentRequest:
        from inventory_kernel.domain.types import AdjustmentRequest, AdjustmentStatus

        return AdjustmentRequest(
            request_id=self.id,
            agency_id=self.agency_id,
            product_name=self.product_name,
            color=self.color,
            size=self.size,
            adjustment_quantity=self.adjustment_quantity,
            current_stock_snapshot=self.current_stock_snapshot,
            reason=self.reason,
            status=AdjustmentStatus(self.status),
            requested_by=self.requested_by,
            category=self.category,
            sub_category=self.sub_category,
            unit_price=self.unit_price,
            product_code=self.product_code,
            reviewed_by=self.reviewed_by,
            reviewed_at=self.reviewed_at,
            rejection_reason=self.rejection_reason,
            ledger_transaction_id=self.ledger_transaction_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: AdjustmentRequest) -> AdjustmentRequestModel:
        return cls(
            id=dto.request_id,
            agency_id=dto.agency_id,
            product_name=dto.product_name,
            product_code=dto.product_code,
            color=dto.color,
            size=dto.size,
            category=dto.category,
            sub_category=dto.sub_category,
            unit_price=dto.unit_price,
            current_stock_snapshot=dto.current_stock_snapshot,
            adjustment_quantity=dto.adjustment_quantity,
            reason=dto.reason,
            status=dto.status.value,
            requested_by=dto.requested_by,
            reviewed_by=dto.reviewed_by,
            reviewed_at=dto.reviewed_at,
            rejection_reason=dto.rejection_reason,
            ledger_transaction_id=dto.ledger_transaction_id,
            created_by_id=dto.requested_by,
            updated_by_id=None,
        )
