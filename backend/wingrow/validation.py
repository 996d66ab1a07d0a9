from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Iterable

from wingrow.errors import ValidationError
from wingrow.time_utils import parse_iso_datetime


# Maximum money value: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999

CATEGORY_MAX_LENGTH = 64
NOTES_MAX_LENGTH = 1000
URL_MAX_LENGTH = 512
REF_MAX_LENGTH = 128


def require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _to_decimal(value: Any, field: str) -> Decimal:
    # bool is an int subclass; true/false are never quantities
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, Decimal)):
        dec = Decimal(value)
    elif isinstance(value, float):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return dec


def parse_positive_int(value: Any, field: str) -> int:
    """
    Strict positive integer: 3, 3.0 and "3" pass; 3.5, "abc", 0 and -1 fail.
    """
    dec = _to_decimal(value, field)
    if dec != dec.to_integral_value():
        raise ValidationError(f"{field} must be a positive integer")
    n = int(dec)
    if n <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return n


def coerce_non_negative_int(value: Any, field: str) -> int:
    """
    Lenient stock coercion: numeric input is truncated toward zero
    ("12.7" -> 12), then must be >= 0.
    """
    dec = _to_decimal(value, field)
    n = int(dec.to_integral_value(rounding=ROUND_DOWN))
    if n < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return n


def amount_to_cents(value: Any, field: str, *, allow_zero: bool = False) -> int:
    """
    Parse a money amount into integer cents (nearest cent, half-up).

    allow_zero=False: amount must be > 0 after rounding.
    allow_zero=True: amount must be >= 0.
    """
    dec = _to_decimal(value, field)
    cents = int((dec * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    if allow_zero:
        if cents < 0:
            raise ValidationError(f"{field} must be a non-negative number")
    # Positive but under half a cent rounds to zero
    elif dec > 0 and cents == 0:
        raise ValidationError(f"{field} must be at least 0.01")
    elif cents <= 0:
        raise ValidationError(f"{field} must be a positive number")

    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def coerce_price_cents(value: Any, field: str = "unitPrice") -> int:
    """
    Lenient price coercion: anything non-numeric counts as 0 and the result
    is clamped to 0..MAX_AMOUNT_CENTS. Rounds half-up to the cent. Never raises.
    """
    try:
        dec = _to_decimal(value, field)
    except ValidationError:
        return 0
    cents = int((dec * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(max(0, cents), MAX_AMOUNT_CENTS)


def cents_to_amount(cents: int | None) -> float:
    return round((cents or 0) / 100, 2)


def parse_required_date(value: Any, field: str = "date") -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
    if dt is None:
        raise ValidationError(f"{field} is required")
    return dt


def clean_text(value: Any, field: str, *, max_length: int, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text or default


def parse_status(
    value: Any,
    allowed: Iterable[str],
    field: str = "status",
    *,
    strict: bool = True,
) -> str | None:
    """
    Optional status filter; normalizes case.

    Values outside `allowed` raise ValidationError, or are dropped (None,
    meaning no filter) when strict=False.
    """
    if value is None or str(value).strip() == "":
        return None
    status = str(value).strip().upper()
    allowed = tuple(allowed)
    if status not in allowed:
        if not strict:
            return None
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}")
    return status


def parse_flag(value: Any) -> bool:
    """Query-string boolean: only 'true'/'1'/'yes' (any case) are true."""
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class ClaimItemInput:
    """
    A validated expense line, ready to be stored.

    Normalizes caller input:
    - date: required ISO-8601 date or datetime (UTC-naive)
    - category: free text, blank -> "Other"
    - amount: positive, stored in cents
    - notes / receipt_url: optional, blank -> ""
    """
    date: datetime
    category: str
    amount_cents: int
    notes: str
    receipt_url: str

    @classmethod
    def from_payload(cls, payload: Any) -> "ClaimItemInput":
        payload = require_object(payload)

        return cls(
            date=parse_required_date(payload.get("date")),
            category=clean_text(payload.get("category"), "category", max_length=CATEGORY_MAX_LENGTH, default="Other"),
            amount_cents=amount_to_cents(payload.get("amount"), "amount"),
            notes=clean_text(payload.get("notes"), "notes", max_length=NOTES_MAX_LENGTH),
            receipt_url=clean_text(payload.get("receiptUrl"), "receiptUrl", max_length=URL_MAX_LENGTH),
        )
