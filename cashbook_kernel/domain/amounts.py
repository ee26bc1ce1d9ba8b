"""
Amount and timestamp helpers shared by records, engines and services.

All money is ``Decimal``; floats are converted through ``str`` so that
``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
Timestamps are stored as ISO-8601 strings in UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from cashbook_kernel.exceptions import InvalidAmountError, ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_amount(value: object) -> Decimal:
    """Coerce a numeric value to Decimal.

    Raises:
        InvalidAmountError: for None, booleans, non-numeric strings, NaN
            and infinities.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(value) from None
    else:
        raise InvalidAmountError(value, reason=f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(value, reason="not finite")
    return result


def amount_or_zero(value: object) -> Decimal:
    """Lenient variant for stored optional fields: missing or garbage is 0."""
    if value is None or value == "":
        return ZERO
    try:
        return to_amount(value)
    except InvalidAmountError:
        return ZERO


def round2(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def positive_amount(value: object, field: str = "amount") -> Decimal:
    amount = to_amount(value)
    if amount <= ZERO:
        raise InvalidAmountError(value, reason=f"{field} must be greater than zero")
    return amount


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def parse_timestamp(value: object) -> datetime | None:
    """Parse a stored timestamp (ISO string, datetime or date)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time(0, 0), tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value))
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}", field="date") from None
    raise ValidationError(f"Invalid timestamp type: {type(value).__name__}", field="date")


def normalize_entry_date(
    value: object,
    default_time: time,
    tz_name: str,
) -> datetime | None:
    """Resolve a user-supplied transaction date.

    A bare calendar date (``date`` or ``YYYY-MM-DD``) is pinned to
    ``default_time`` in ``tz_name`` so it never rolls into the previous or
    next day when shown in local time.  Full timestamps are kept as given.
    Returns None when no date was supplied.
    """
    if value is None or value == "":
        return None
    tz = ZoneInfo(tz_name)
    if isinstance(value, datetime):
        return ensure_utc(value if value.tzinfo else value.replace(tzinfo=tz))
    if isinstance(value, date):
        return datetime.combine(value, default_time, tzinfo=tz).astimezone(timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            try:
                day = date.fromisoformat(text)
            except ValueError:
                raise ValidationError(f"Invalid date: {value!r}", field="date") from None
            return datetime.combine(day, default_time, tzinfo=tz).astimezone(timezone.utc)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}", field="date") from None
        return ensure_utc(parsed if parsed.tzinfo else parsed.replace(tzinfo=tz))
    raise ValidationError(f"Invalid date type: {type(value).__name__}", field="date")


def clean_text(value: str | None) -> str | None:
    """Trim optional text; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
