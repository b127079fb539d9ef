from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import ValidationError
from .time_utils import parse_iso_date


# Maximum money amount: 999,999,999,999 minor units.
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT = 999_999_999_999

PAYMENT_METHODS = ("CASH", "MOBILE_MONEY", "CARD", "CHEQUE", "TRANSFER")

BPS_PER_UNIT = 10_000


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion.

    Rejects floats, booleans, decimals and scientific notation so that a
    quantity of "1e3" or 2.5 never silently becomes 1000 or 2.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return result


def parse_amount(value: Any, field: str) -> int:
    """Money in minor units: integer, 0 <= amount <= MAX_AMOUNT."""
    amount = parse_int(value, field, minimum=0)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def parse_tax_rate(value: Any) -> int:
    """
    Convert a decimal tax rate (0.18, "0.18", Decimal("0.18")) to basis points.

    At most four decimal places; 0 <= rate <= 1.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("tax_rate must be a decimal number")
    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("tax_rate must be a decimal number")
    if not rate.is_finite():
        raise ValidationError("tax_rate must be a decimal number")
    if rate < 0 or rate > 1:
        raise ValidationError("tax_rate must be between 0 and 1")

    bps = rate * BPS_PER_UNIT
    if bps != bps.to_integral_value():
        raise ValidationError("tax_rate supports at most four decimal places")
    return int(bps)


def parse_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    """Case-insensitive enum match; returns the canonical upper-case value."""
    allowed = tuple(choices)
    if not isinstance(value, str) or value.strip().upper() not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value.strip().upper()


def parse_payment_method(value: Any) -> str:
    return parse_choice(value, "payment_method", PAYMENT_METHODS)


def parse_date(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def clean_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    """Strip text input; None / blank -> None unless required."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
