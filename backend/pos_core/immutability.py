"""
ORM-level append-only enforcement.

Entity               | When immutable            | Correction path
---------------------|---------------------------|------------------------------
InventoryMovement    | always                    | new compensating movement
RegisterLedgerEntry  | always                    | new MANUAL_IN / MANUAL_OUT entry
RegisterSession      | once status = CLOSED      | none (close is final)

Listeners fire before the UPDATE/DELETE SQL is emitted, so the flush aborts
and the database is never modified. Bulk Core statements bypass them; the
services never issue those against these tables.
"""

from __future__ import annotations

from flask import current_app, has_app_context
from sqlalchemy import event, inspect

from .errors import ImmutabilityViolationError


def _log_violation(entity_type: str, entity_id, operation: str) -> None:
    if has_app_context():
        current_app.logger.error(
            "Blocked %s on immutable %s id=%s", operation, entity_type, entity_id
        )


def _block_update(mapper, connection, target):
    entity_type = type(target).__name__
    _log_violation(entity_type, target.id, "UPDATE")
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=target.id,
        reason="append-only rows cannot be modified",
    )


def _block_delete(mapper, connection, target):
    entity_type = type(target).__name__
    _log_violation(entity_type, target.id, "DELETE")
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=target.id,
        reason="append-only rows cannot be deleted",
    )


def _check_register_session_update(mapper, connection, target):
    """Allow OPEN -> CLOSED; block any change to a session that was already CLOSED."""
    history = inspect(target).attrs.status.history
    previous = history.deleted[0] if history.deleted else target.status
    if previous == "CLOSED":
        _log_violation("RegisterSession", target.id, "UPDATE")
        raise ImmutabilityViolationError(
            entity_type="RegisterSession",
            entity_id=target.id,
            reason="closed sessions cannot be modified",
        )


_LISTENERS_REGISTERED = False


def register_immutability_listeners() -> None:
    """
    Install the mapper listeners. Safe to call once per process; repeated
    calls (one per create_app in tests) are no-ops.
    """
    global _LISTENERS_REGISTERED
    if _LISTENERS_REGISTERED:
        return

    from .models import InventoryMovement, RegisterLedgerEntry, RegisterSession

    event.listen(InventoryMovement, "before_update", _block_update)
    event.listen(InventoryMovement, "before_delete", _block_delete)

    event.listen(RegisterLedgerEntry, "before_update", _block_update)
    event.listen(RegisterLedgerEntry, "before_delete", _block_delete)

    event.listen(RegisterSession, "before_update", _check_register_session_update)
    event.listen(RegisterSession, "before_delete", _block_delete)

    _LISTENERS_REGISTERED = True
