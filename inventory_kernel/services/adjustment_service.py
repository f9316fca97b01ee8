"""
AdjustmentService -- request/approve/reject workflow for manual stock corrections.

Contract:
    - ``request_adjustment()`` snapshots the current stock and creates a
      PENDING request.
    - ``approve()`` atomically records the review AND appends exactly one
      ``adjustment`` ledger transaction with ``signed_quantity ==
      adjustment_quantity``.  Both happen inside one SAVEPOINT; if the
      append fails the request stays PENDING.
    - ``reject()`` records the review with no ledger effect.

State machine:

    pending --approve--> approved   (terminal, one ledger row)
       |
       +-----reject----> rejected   (terminal, no ledger row)

Invariants enforced:
    - Transitions follow ADJUSTMENT_TRANSITIONS; a second review raises
      ApprovalConflictError and changes nothing.
    - The request row is locked (SELECT ... FOR UPDATE) before review so two
      concurrent reviewers serialize; the ledger dedup key ``ADJ-<id>`` is a
      second guard against a double append.
    - All timestamps come from the injected Clock.

Non-goals:
    - Does NOT call ``session.commit()``.
    - Who counts as a reviewer is decided by the injected ReviewerPolicy.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.types import (
    GENERAL_CATEGORY,
    AdjustmentRequest,
    AdjustmentStatus,
    LedgerTransaction,
    StockKey,
    TransactionType,
    is_valid_adjustment_transition,
    signed_quantity,
)
from inventory_kernel.exceptions import (
    AdjustmentError,
    AdjustmentLedgerWriteError,
    AdjustmentNotFoundError,
    ApprovalConflictError,
    InvalidAdjustmentError,
    UnauthorizedReviewerError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.adjustment import AdjustmentRequestModel
from inventory_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("services.adjustment")

ADJUSTMENT_SOURCE_SYSTEM = "adjustment"


@runtime_checkable
class ReviewerPolicy(Protocol):
    """Decides whether a reviewer may act on a request.

    Returns None when allowed, otherwise the reason for refusal.
    """

    def check(self, request: AdjustmentRequest, reviewer_id: UUID) -> str | None: ...


class AllowAllReviewers:
    """Every reviewer is authorized (authorization is enforced upstream)."""

    def check(self, request: AdjustmentRequest, reviewer_id: UUID) -> str | None:
        return None


class SeparationOfDutiesPolicy:
    """A requester may not review their own request."""

    def check(self, request: AdjustmentRequest, reviewer_id: UUID) -> str | None:
        if request.requested_by == reviewer_id:
            return "requester cannot review their own adjustment"
        return None


class AdjustmentService:
    """Manual adjustment workflow backed by the stock ledger."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedgerService,
        clock: Clock | None = None,
        reviewer_policy: ReviewerPolicy | None = None,
        allow_positive_adjustments: bool = True,
        source_system: str = ADJUSTMENT_SOURCE_SYSTEM,
    ):
        self._session = session
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._policy = reviewer_policy or AllowAllReviewers()
        self._allow_positive = allow_positive_adjustments
        self._source_system = source_system

    # -------------------------------------------------------------------------
    # Request
    # -------------------------------------------------------------------------

    def request_adjustment(
        self,
        *,
        agency_id: str,
        product_name: str,
        color: str,
        size: str,
        adjustment_quantity: int,
        reason: str,
        requested_by: UUID,
        category: str = GENERAL_CATEGORY,
        sub_category: str = "",
        unit_price: Decimal = Decimal("0"),
        product_code: str | None = None,
    ) -> AdjustmentRequest:
        """Create a PENDING request with a snapshot of the current stock.

        Raises:
            InvalidAdjustmentError: zero quantity, blank product or reason, or
                a positive quantity while positive adjustments are disabled.
        """
        if adjustment_quantity == 0:
            raise InvalidAdjustmentError("adjustment quantity must be non-zero")
        if adjustment_quantity > 0 and not self._allow_positive:
            raise InvalidAdjustmentError(
                "positive adjustments are disabled; stock IN must come from "
                "invoices or returns"
            )
        if not product_name.strip():
            raise InvalidAdjustmentError("product name is required")
        if not reason.strip():
            raise InvalidAdjustmentError("a reason is required")

        key = StockKey(agency_id=agency_id, product_name=product_name, color=color, size=size)
        snapshot = self._ledger.current_stock(key)

        dto = AdjustmentRequest(
            request_id=uuid4(),
            agency_id=agency_id,
            product_name=product_name,
            color=color,
            size=size,
            adjustment_quantity=adjustment_quantity,
            current_stock_snapshot=snapshot,
            reason=reason.strip(),
            status=AdjustmentStatus.PENDING,
            requested_by=requested_by,
            category=category,
            sub_category=sub_category,
            unit_price=unit_price,
            product_code=product_code,
            created_at=self._clock.now(),
        )
        model = AdjustmentRequestModel.from_dto(dto)
        model.created_at = dto.created_at
        self._session.add(model)
        self._session.flush()

        logger.info(
            "adjustment_requested",
            extra={
                "adjustment_id": str(dto.request_id),
                "agency_id": agency_id,
                "product_name": product_name,
                "adjustment_quantity": adjustment_quantity,
                "current_stock_snapshot": snapshot,
            },
        )
        return dto

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def _lock_for_review(
        self, request_id: UUID, reviewer_id: UUID, target: AdjustmentStatus,
    ) -> AdjustmentRequestModel:
        model = self._session.execute(
            select(AdjustmentRequestModel)
            .where(AdjustmentRequestModel.id == request_id)
            .with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise AdjustmentNotFoundError(str(request_id))

        current = AdjustmentStatus(model.status)
        if not is_valid_adjustment_transition(current, target):
            logger.warning(
                "adjustment_review_conflict",
                extra={
                    "adjustment_id": str(request_id),
                    "current_status": current.value,
                    "requested_status": target.value,
                },
            )
            raise ApprovalConflictError(str(request_id), current.value)

        denial = self._policy.check(model.to_dto(), reviewer_id)
        if denial is not None:
            raise UnauthorizedReviewerError(str(request_id), str(reviewer_id), denial)
        return model

    def approve(self, request_id: UUID, reviewer_id: UUID) -> AdjustmentRequest:
        """Approve a PENDING request and append its ledger transaction.

        Raises:
            AdjustmentNotFoundError: unknown request.
            ApprovalConflictError: request already approved or rejected.
            UnauthorizedReviewerError: reviewer policy refused.
            AdjustmentLedgerWriteError: the ledger append failed; the request
                is still PENDING.
        """
        model = self._lock_for_review(request_id, reviewer_id, AdjustmentStatus.APPROVED)
        now = self._clock.now()
        transaction = LedgerTransaction(
            transaction_id=uuid4(),
            product_name=model.product_name,
            color=model.color,
            size=model.size,
            category=model.category,
            sub_category=model.sub_category,
            unit_price=model.unit_price,
            transaction_type=TransactionType.ADJUSTMENT,
            signed_quantity=signed_quantity(
                TransactionType.ADJUSTMENT, model.adjustment_quantity,
            ),
            agency_id=model.agency_id,
            source_system=self._source_system,
            external_id=f"ADJ-{model.id}",
            reference_name=f"Stock Adjustment - {model.reason}"[:500],
            transaction_date=now,
            product_code=model.product_code,
            notes={
                "adjustment_id": str(model.id),
                "current_stock_snapshot": model.current_stock_snapshot,
                "requested_by": str(model.requested_by),
                "reviewed_by": str(reviewer_id),
            },
        )

        savepoint = self._session.begin_nested()
        try:
            if not self._ledger.append(transaction, actor_id=reviewer_id):
                raise AdjustmentLedgerWriteError(
                    str(request_id), "ledger transaction for this adjustment already exists",
                )
            model.status = AdjustmentStatus.APPROVED.value
            model.reviewed_by = reviewer_id
            model.reviewed_at = now
            model.ledger_transaction_id = transaction.transaction_id
            model.updated_by_id = reviewer_id
            self._session.flush()
        except AdjustmentError:
            savepoint.rollback()
            self._ledger.invalidate([transaction.stock_key])
            raise
        except Exception as exc:
            savepoint.rollback()
            self._ledger.invalidate([transaction.stock_key])
            logger.error(
                "adjustment_approval_rolled_back",
                extra={"adjustment_id": str(request_id), "error": str(exc)},
            )
            raise AdjustmentLedgerWriteError(str(request_id), str(exc)) from exc
        savepoint.commit()

        logger.info(
            "adjustment_approved",
            extra={
                "adjustment_id": str(request_id),
                "reviewer_id": str(reviewer_id),
                "transaction_id": str(transaction.transaction_id),
                "signed_quantity": transaction.signed_quantity,
            },
        )
        return model.to_dto()

    def reject(
        self, request_id: UUID, reviewer_id: UUID, reason: str | None = None,
    ) -> AdjustmentRequest:
        """Reject a PENDING request; no ledger effect."""
        model = self._lock_for_review(request_id, reviewer_id, AdjustmentStatus.REJECTED)
        model.status = AdjustmentStatus.REJECTED.value
        model.reviewed_by = reviewer_id
        model.reviewed_at = self._clock.now()
        model.rejection_reason = reason
        model.updated_by_id = reviewer_id
        self._session.flush()

        logger.info(
            "adjustment_rejected",
            extra={
                "adjustment_id": str(request_id),
                "reviewer_id": str(reviewer_id),
                "reason": reason,
            },
        )
        return model.to_dto()
