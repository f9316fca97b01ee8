"""
ORM-level immutability enforcement for the stock ledger.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  Listeners registered here check the append-only rules and raise
ImmutabilityViolationError, aborting the flush:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError

Protected entities:

    Entity                  | When immutable                | Allowed changes
    ------------------------|-------------------------------|-------------------------
    LedgerTransactionModel  | ALWAYS (from creation)        | updated_at, updated_by_id
    AdjustmentRequestModel  | After status approved/rejected| updated_at, updated_by_id

The pending -> approved/rejected transition itself is allowed: the check
looks at the status value *before* the flush, via attribute history.

Usage:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    # TESTS ONLY
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_TERMINAL_STATUSES = frozenset({"approved", "rejected"})


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block(entity_type: str, entity_id: str, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_ledger_transaction_immutability(mapper, connection, target):
    """Ledger transactions are facts; no field may change after insert."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "LedgerTransaction",
            str(target.id),
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a ledger transaction",
            field=changed[0],
        )


def _check_ledger_transaction_delete(mapper, connection, target):
    _block(
        "LedgerTransaction",
        str(target.id),
        "DELETE",
        "Ledger transactions cannot be deleted; record an offsetting adjustment",
    )


def _was_terminal(target) -> bool:
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0] in _TERMINAL_STATUSES
    if not status_history.added:
        return target.status in _TERMINAL_STATUSES
    return False


def _check_adjustment_immutability(mapper, connection, target):
    """Reviewed adjustment requests are frozen."""
    if not _was_terminal(target):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "AdjustmentRequest",
            str(target.id),
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a reviewed adjustment request",
            field=changed[0],
        )


def _check_adjustment_delete(mapper, connection, target):
    if target.status in _TERMINAL_STATUSES:
        _block(
            "AdjustmentRequest",
            str(target.id),
            "DELETE",
            "Reviewed adjustment requests cannot be deleted",
        )


def _listeners():
    from inventory_kernel.models.adjustment import AdjustmentRequestModel
    from inventory_kernel.models.ledger import LedgerTransactionModel

    return (
        (LedgerTransactionModel, "before_update", _check_ledger_transaction_immutability),
        (LedgerTransactionModel, "before_delete", _check_ledger_transaction_delete),
        (AdjustmentRequestModel, "before_update", _check_adjustment_immutability),
        (AdjustmentRequestModel, "before_delete", _check_adjustment_delete),
    )


def register_immutability_listeners():
    """Register all immutability listeners (idempotent)."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove immutability listeners. TESTS ONLY."""
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
