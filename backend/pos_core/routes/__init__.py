# Overview: Shared helpers for the JSON API blueprints.

from flask import jsonify

from ..errors import (
    ImmutabilityViolationError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    RegisterStateError,
    SessionNotFoundError,
    SettlementError,
)


def _status_for(exc: SettlementError) -> int:
    if isinstance(exc, (NotFoundError, SessionNotFoundError)):
        return 404
    if isinstance(exc, (InsufficientStockError, RegisterStateError, ImmutabilityViolationError)):
        return 409
    if isinstance(exc, PersistenceError):
        return 500
    return 400


def error_response(exc: SettlementError):
    """Translate a settlement error into (JSON body, HTTP status)."""
    return jsonify({
        "error": str(exc),
        "code": exc.code,
        "details": exc.details,
    }), _status_for(exc)
