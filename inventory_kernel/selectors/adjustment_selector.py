"""Read-only queries over adjustment requests."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.types import AdjustmentRequest, AdjustmentStatus
from inventory_kernel.models.adjustment import AdjustmentRequestModel
from inventory_kernel.selectors.base import BaseSelector


class AdjustmentSelector(BaseSelector[AdjustmentRequestModel]):

    def get(self, request_id: UUID) -> AdjustmentRequest | None:
        row = self.session.get(AdjustmentRequestModel, request_id)
        return row.to_dto() if row is not None else None

    def pending(self, agency_id: str | None = None) -> list[AdjustmentRequest]:
        stmt = select(AdjustmentRequestModel).where(
            AdjustmentRequestModel.status == AdjustmentStatus.PENDING.value,
        ).order_by(AdjustmentRequestModel.created_at)
        if agency_id is not None:
            stmt = stmt.where(AdjustmentRequestModel.agency_id == agency_id)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
