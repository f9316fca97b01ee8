"""
inventory_kernel.domain.types -- Pure frozen dataclasses for reconciliation.

ZERO I/O.  Every value that crosses a layer boundary (adapter -> orchestrator
-> ledger -> selectors) is one of these immutable DTOs; ORM models convert
to and from them with ``to_dto()`` / ``from_dto()``.

Invariants enforced:
    - TransactionType is a closed enum; every member has exactly one entry
      in ``TRANSACTION_DIRECTIONS`` and ``signed_quantity()`` is the only
      place a sign is applied.
    - ``LedgerTransaction.signed_quantity`` is never zero.
    - ``MatchResult.matched_product_id`` is set iff the match was accepted.
    - Adjustment status transitions follow ``ADJUSTMENT_TRANSITIONS``;
      approved and rejected are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


DEFAULT_VARIANT = "Default"
GENERAL_CATEGORY = "General"


# =============================================================================
# Transaction types and signs
# =============================================================================


class TransactionType(str, Enum):
    """Kind of stock movement recorded in the ledger."""

    EXTERNAL_INVOICE = "external_invoice"  # Company invoiced the agency (stock IN)
    GRN = "grn"  # Goods received note (stock IN)
    CUSTOMER_RETURN = "customer_return"  # Customer returned goods (stock IN)
    SALE = "sale"  # Agency sold to a customer (stock OUT)
    COMPANY_RETURN = "company_return"  # Agency returned goods to the company (stock OUT)
    ADJUSTMENT = "adjustment"  # Approved manual correction (sign from request)


class StockDirection(str, Enum):
    """How a transaction type turns a quantity magnitude into a signed quantity."""

    IN = "in"
    OUT = "out"
    SIGNED = "signed"  # Caller supplies the sign (adjustments)


TRANSACTION_DIRECTIONS: dict[TransactionType, StockDirection] = {
    TransactionType.EXTERNAL_INVOICE: StockDirection.IN,
    TransactionType.GRN: StockDirection.IN,
    TransactionType.CUSTOMER_RETURN: StockDirection.IN,
    TransactionType.SALE: StockDirection.OUT,
    TransactionType.COMPANY_RETURN: StockDirection.OUT,
    TransactionType.ADJUSTMENT: StockDirection.SIGNED,
}


def signed_quantity(transaction_type: TransactionType, quantity: int) -> int:
    """Apply the direction of ``transaction_type`` to ``quantity``.

    IN/OUT types take the magnitude of ``quantity``; SIGNED types keep the
    caller's sign.  Raises ValueError for a zero result, which would be a
    no-op fact the ledger refuses to store.
    """
    direction = TRANSACTION_DIRECTIONS[transaction_type]
    if direction is StockDirection.IN:
        result = abs(quantity)
    elif direction is StockDirection.OUT:
        result = -abs(quantity)
    else:
        result = quantity
    if result == 0:
        raise ValueError(
            f"Zero quantity is not a stock movement ({transaction_type.value})"
        )
    return result


# =============================================================================
# Catalog and line items
# =============================================================================


@dataclass(frozen=True)
class CatalogProduct:
    """Canonical catalog product (read-only snapshot for one run)."""

    id: str
    name: str
    category: str = ""
    sub_category: str = ""
    colors: tuple[str, ...] = ()
    sizes: tuple[str, ...] = ()


@dataclass(frozen=True)
class LineItem:
    """One reconciliation unit decoded from a source record.

    ``quantity`` is always a non-negative magnitude; the sign is applied by
    the orchestrator from the transaction type.
    """

    raw_product_name: str
    quantity: int
    unit_price: Decimal = Decimal("0")
    raw_category: str = ""
    color: str | None = None
    size: str | None = None
    subtotal: Decimal | None = None
    external_product_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def amount(self) -> Decimal:
        """quantity * unit_price, falling back to subtotal when that is zero."""
        computed = Decimal(self.quantity) * self.unit_price
        if computed == 0 and self.subtotal is not None:
            return self.subtotal
        return computed


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one line item against the catalog snapshot."""

    category: str
    sub_category: str
    confidence: int
    matched_product_id: str | None = None
    matched_product_name: str | None = None
    matched_color: str | None = None
    matched_size: str | None = None

    @property
    def is_matched(self) -> bool:
        return self.matched_product_id is not None


@dataclass(frozen=True)
class SourceRecord:
    """One external record translated by an adapter.

    ``malformed_lines`` holds the reasons for line items the adapter had to
    skip; they are counted in the run summary, never raised.  A missing
    ``transaction_date`` is filled from the run clock by the orchestrator.
    """

    external_id: str
    agency_id: str
    reference_name: str
    transaction_date: datetime | None
    lines: tuple[LineItem, ...] = ()
    malformed_lines: tuple[str, ...] = ()


# =============================================================================
# Ledger
# =============================================================================


@dataclass(frozen=True)
class DedupKey:
    """Uniqueness key of one ledger transaction."""

    agency_id: str
    source_system: str
    external_id: str
    product_name: str
    color: str
    size: str


@dataclass(frozen=True)
class StockKey:
    """Key of a derived stock level."""

    agency_id: str
    product_name: str
    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT


@dataclass(frozen=True)
class LedgerTransaction:
    """Immutable stock movement fact."""

    transaction_id: UUID
    product_name: str
    color: str
    size: str
    category: str
    sub_category: str
    unit_price: Decimal
    transaction_type: TransactionType
    signed_quantity: int
    agency_id: str
    source_system: str
    external_id: str
    reference_name: str
    transaction_date: datetime
    product_code: str | None = None
    matched_product_id: str | None = None
    match_confidence: int | None = None
    notes: dict[str, Any] | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.signed_quantity == 0:
            raise ValueError("LedgerTransaction.signed_quantity must be non-zero")

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey(
            agency_id=self.agency_id,
            source_system=self.source_system,
            external_id=self.external_id,
            product_name=self.product_name,
            color=self.color,
            size=self.size,
        )

    @property
    def stock_key(self) -> StockKey:
        return StockKey(
            agency_id=self.agency_id,
            product_name=self.product_name,
            color=self.color,
            size=self.size,
        )


@dataclass(frozen=True)
class StockLevel:
    """Derived stock for one (agency, product, color, size) key."""

    product_name: str
    color: str
    size: str
    current_stock: int
    agency_id: str | None = None


@dataclass(frozen=True)
class StockSummaryRow:
    """Per-key stock movement summary."""

    agency_id: str
    product_name: str
    color: str
    size: str
    current_stock: int
    total_stock_in: int
    total_stock_out: int
    transaction_count: int
    first_transaction_date: datetime | None = None
    last_transaction_date: datetime | None = None


@dataclass(frozen=True)
class UnmatchedSummary:
    """Unmatched ledger products grouped by category."""

    total_unmatched: int
    by_category: dict[str, int] = field(default_factory=dict)
    sample: tuple[str, ...] = ()


# =============================================================================
# Adjustments
# =============================================================================


class AdjustmentStatus(str, Enum):
    """Adjustment request lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


ADJUSTMENT_TRANSITIONS: dict[AdjustmentStatus, frozenset[AdjustmentStatus]] = {
    AdjustmentStatus.PENDING: frozenset({
        AdjustmentStatus.APPROVED,
        AdjustmentStatus.REJECTED,
    }),
    AdjustmentStatus.APPROVED: frozenset(),
    AdjustmentStatus.REJECTED: frozenset(),
}

TERMINAL_ADJUSTMENT_STATUSES: frozenset[AdjustmentStatus] = frozenset({
    AdjustmentStatus.APPROVED,
    AdjustmentStatus.REJECTED,
})


def is_valid_adjustment_transition(
    from_status: AdjustmentStatus, to_status: AdjustmentStatus,
) -> bool:
    return to_status in ADJUSTMENT_TRANSITIONS.get(from_status, frozenset())


@dataclass(frozen=True)
class AdjustmentRequest:
    """Immutable snapshot of a manual stock adjustment request."""

    request_id: UUID
    agency_id: str
    product_name: str
    color: str
    size: str
    adjustment_quantity: int
    current_stock_snapshot: int
    reason: str
    status: AdjustmentStatus
    requested_by: UUID
    category: str = GENERAL_CATEGORY
    sub_category: str = ""
    unit_price: Decimal = Decimal("0")
    product_code: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    ledger_transaction_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ADJUSTMENT_STATUSES

    @property
    def requested_stock(self) -> int:
        """Stock level the requester expected after the adjustment."""
        return self.current_stock_snapshot + self.adjustment_quantity


# =============================================================================
# Targets and achievement
# =============================================================================


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class CategoryTarget:
    category: str
    amount: Decimal


@dataclass(frozen=True)
class TargetPeriod:
    """Sales target for one customer over a human-entered period."""

    customer_name: str
    year: int
    months_spec: str
    category_targets: tuple[CategoryTarget, ...] = ()


@dataclass(frozen=True)
class CategoryAchievement:
    category: str
    achieved: Decimal


@dataclass(frozen=True)
class AchievementBreakdownRow:
    category: str
    target: Decimal
    achieved: Decimal
    achievement_pct: Decimal


# =============================================================================
# Ingestion runs
# =============================================================================


class RunStatus(str, Enum):
    """Lifecycle status of one ingestion run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"  # Source unavailable; nothing processed
    CANCELLED = "cancelled"  # Stopped between records; safe to resume


@dataclass(frozen=True)
class RunSummary:
    """Structured result of one ingestion run.

    This is the contract consumed by the scheduling collaborator and the
    status views.
    """

    source_system: str
    status: RunStatus
    records_fetched: int = 0
    records_matched_agency: int = 0
    records_skipped_duplicate: int = 0
    records_malformed: int = 0
    records_failed: int = 0
    lines_malformed: int = 0
    transactions_created: int = 0
    transactions_suppressed: int = 0
    products_matched: int = 0
    products_unmatched: int = 0
    errors: tuple[str, ...] = ()
    run_id: UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id) if self.run_id else None,
            "source_system": self.source_system,
            "status": self.status.value,
            "records_fetched": self.records_fetched,
            "records_matched_agency": self.records_matched_agency,
            "records_skipped_duplicate": self.records_skipped_duplicate,
            "records_malformed": self.records_malformed,
            "records_failed": self.records_failed,
            "lines_malformed": self.lines_malformed,
            "transactions_created": self.transactions_created,
            "transactions_suppressed": self.transactions_suppressed,
            "products_matched": self.products_matched,
            "products_unmatched": self.products_unmatched,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class IngestionRunStatus:
    """Latest run status for one source (status views)."""

    source_system: str
    status: RunStatus
    started_at: datetime | None
    completed_at: datetime | None
    transactions_created: int
    message: str
