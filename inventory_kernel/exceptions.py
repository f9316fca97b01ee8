"""
Typed exception hierarchy for the inventory kernel.

Every error carries a class-level ``code`` (machine-readable, stable across
message rewording) and the structured attributes a caller needs to react
without parsing the message.

    InventoryKernelError (base)
    |
    +-- SourceError
    |   +-- SourceUnavailableError    adapter cannot reach its data (fatal for that source only)
    |   +-- UnknownSourceError        no adapter registered for a source tag
    |
    +-- RecordError
    |   +-- MalformedRecordError      one record/line cannot be decoded (skipped, counted)
    |
    +-- AdjustmentError
    |   +-- AdjustmentNotFoundError
    |   +-- ApprovalConflictError     request already reviewed
    |   +-- InvalidAdjustmentError
    |   +-- UnauthorizedReviewerError
    |   +-- AdjustmentLedgerWriteError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PeriodSpecError
    |   +-- InvalidYearError
    |
    +-- ConfigurationError

Not errors: a line that scores below the match threshold is a valid
"unmatched" outcome, and a record suppressed by the dedup check is the
expected idempotent behaviour. Neither is represented here.
"""


class InventoryKernelError(Exception):
    """Base exception for all inventory kernel errors."""

    code: str = "INVENTORY_KERNEL_ERROR"


# Source-related exceptions


class SourceError(InventoryKernelError):
    """Base exception for source adapter errors."""

    code: str = "SOURCE_ERROR"


class SourceUnavailableError(SourceError):
    """A source adapter could not reach its backing data."""

    code: str = "SOURCE_UNAVAILABLE"

    def __init__(self, source_system: str, reason: str):
        self.source_system = source_system
        self.reason = reason
        super().__init__(f"Source {source_system} unavailable: {reason}")


class UnknownSourceError(SourceError):
    """No adapter is registered under the requested source tag."""

    code: str = "UNKNOWN_SOURCE"

    def __init__(self, source_system: str, available: list[str] | None = None):
        self.source_system = source_system
        self.available = sorted(available or [])
        super().__init__(
            f"Unknown source system: {source_system}. "
            f"Available: {', '.join(self.available) or '(none)'}"
        )


# Record-related exceptions


class RecordError(InventoryKernelError):
    """Base exception for per-record processing errors."""

    code: str = "RECORD_ERROR"


class MalformedRecordError(RecordError):
    """A source record or one of its line items cannot be decoded."""

    code: str = "MALFORMED_RECORD"

    def __init__(self, external_id: str | None, reason: str, field: str | None = None):
        self.external_id = external_id
        self.reason = reason
        self.field = field
        where = f" (field {field})" if field else ""
        super().__init__(f"Malformed record {external_id}{where}: {reason}")


# Adjustment-related exceptions


class AdjustmentError(InventoryKernelError):
    """Base exception for adjustment workflow errors."""

    code: str = "ADJUSTMENT_ERROR"


class AdjustmentNotFoundError(AdjustmentError):
    """Adjustment request with given ID was not found."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__(f"Adjustment request not found: {adjustment_id}")


class ApprovalConflictError(AdjustmentError):
    """Adjustment request has already been approved or rejected."""

    code: str = "APPROVAL_CONFLICT"

    def __init__(self, adjustment_id: str, current_status: str):
        self.adjustment_id = adjustment_id
        self.current_status = current_status
        super().__init__(
            f"Adjustment request {adjustment_id} already processed "
            f"(status: {current_status})"
        )


class InvalidAdjustmentError(AdjustmentError):
    """Adjustment request fields are not acceptable."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid adjustment request: {reason}")


class UnauthorizedReviewerError(AdjustmentError):
    """Reviewer is not allowed to review this adjustment request."""

    code: str = "UNAUTHORIZED_REVIEWER"

    def __init__(self, adjustment_id: str, reviewer_id: str, reason: str):
        self.adjustment_id = adjustment_id
        self.reviewer_id = reviewer_id
        self.reason = reason
        super().__init__(
            f"Reviewer {reviewer_id} may not review adjustment "
            f"{adjustment_id}: {reason}"
        )


class AdjustmentLedgerWriteError(AdjustmentError):
    """Approval could not append its ledger transaction; approval rolled back."""

    code: str = "ADJUSTMENT_LEDGER_WRITE_FAILED"

    def __init__(self, adjustment_id: str, reason: str):
        self.adjustment_id = adjustment_id
        self.reason = reason
        super().__init__(
            f"Ledger append failed for adjustment {adjustment_id}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Period-related exceptions


class PeriodSpecError(InventoryKernelError):
    """Base exception for target period parsing errors."""

    code: str = "PERIOD_SPEC_ERROR"


class InvalidYearError(PeriodSpecError):
    """Year is outside the supported calendar range."""

    code: str = "INVALID_YEAR"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"Invalid target year: {year}")


# Configuration exceptions


class ConfigurationError(InventoryKernelError):
    """Configuration values failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
