"""
Settlement error taxonomy.

Every failure the settlement core raises on purpose derives from
SettlementError and carries:

- code:    machine-readable identifier, stable across releases
- details: plain dict with the identifiers a caller (or a reconciliation
           job) needs to act on the failure

Routes translate these to JSON error bodies; services never retry them.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base exception for all settlement core errors."""

    code: str = "SETTLEMENT_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(SettlementError, ValueError):
    """Malformed caller input. Never retried."""

    code: str = "VALIDATION_ERROR"


class NotFoundError(SettlementError):
    """Referenced outlet, product, session or order does not exist."""

    code: str = "NOT_FOUND"


class InsufficientStockError(SettlementError):
    """Requested quantity exceeds stock on hand for one or more products."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, shortfalls: list[dict]):
        self.shortfalls = shortfalls
        names = ", ".join(
            f"{s.get('product_name') or s['product_id']} (short {s['shortfall']})"
            for s in shortfalls
        )
        super().__init__(f"Insufficient stock: {names}", details={"items": shortfalls})


# Register state machine violations


class RegisterStateError(SettlementError):
    code: str = "REGISTER_STATE_ERROR"


class OpenSessionRequiredError(RegisterStateError):
    """No open register session for the outlet today."""

    code: str = "OPEN_SESSION_REQUIRED"


class AlreadyOpenError(RegisterStateError):
    """A session is already open for the outlet today."""

    code: str = "SESSION_ALREADY_OPEN"


class AlreadyClosedError(RegisterStateError):
    """Close called on a session that has already been closed."""

    code: str = "SESSION_ALREADY_CLOSED"


class SessionNotOpenError(RegisterStateError):
    """Operation requires an OPEN session."""

    code: str = "SESSION_NOT_OPEN"


class SessionNotFoundError(SessionNotOpenError):
    code: str = "SESSION_NOT_FOUND"


class PersistenceError(SettlementError):
    """
    Storage failure. Always propagated.

    details["completed_steps"] lists the steps that ran inside the failed
    transaction; details["rolled_back"] tells whether they were undone.
    """

    code: str = "PERSISTENCE_ERROR"


class ImmutabilityViolationError(SettlementError):
    """Attempt to update or delete an append-only / closed record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} is immutable: {reason}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
