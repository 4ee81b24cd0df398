"""
Input coercion for money and quantity values.

Monetary and quantity values cross every boundary as decimal strings (or
plain integers). Binary floats are rejected outright so rounding drift can
never enter the chain of adjustments.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .time_utils import end_of_day, parse_iso_datetime

MONEY_PLACES = 2
QUANTITY_PLACES = 3

# Largest magnitude accepted for any single value (fits the scaled BIGINT columns)
MAX_ABS_VALUE = Decimal("9999999999.999")


def parse_decimal(value: Any, field: str, *, places: int, required: bool = True) -> Decimal | None:
    """
    Coerce a JSON/CLI value into an exact Decimal with at most `places` decimals.

    Accepts Decimal, int, and numeric strings ("12", "-0.5", " 3.250 ").
    Rejects floats, booleans, scientific notation, NaN/Infinity and values
    carrying more precision than the column can store.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, float):
        raise ValidationError(f"{field} must be sent as a decimal string, not a float")

    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, int):
        dec = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain decimal (scientific notation not allowed)")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    if abs(dec) > MAX_ABS_VALUE:
        raise ValidationError(f"{field} is out of range")

    if dec.as_tuple().exponent < -places and dec != dec.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError(f"{field} supports at most {places} decimal places")

    return dec.quantize(Decimal(1).scaleb(-places))


def parse_money(value: Any, field: str, *, required: bool = True) -> Decimal | None:
    return parse_decimal(value, field, places=MONEY_PLACES, required=required)


def parse_quantity(value: Any, field: str, *, required: bool = True) -> Decimal | None:
    return parse_decimal(value, field, places=QUANTITY_PLACES, required=required)


def parse_int_id(value: Any, field: str, *, required: bool = True) -> int | None:
    """Strict integer id coercion (rejects floats, bools and decimals)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def require_positive(value: Decimal, field: str) -> Decimal:
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


def require_non_negative(value: Decimal, field: str) -> Decimal:
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


def clean_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} cannot be blank")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def parse_date_range(start_raw: str | None, end_raw: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Parse ?start=&end= query filters into a half-open [start, end) range.

    A date-only end ("2026-01-31") covers that whole day.
    """
    try:
        start = parse_iso_datetime(start_raw)
        end = parse_iso_datetime(end_raw)
    except ValueError:
        raise ValidationError("Invalid date filter", details={"start": start_raw, "end": end_raw})
    if end is not None and end_raw is not None and len(end_raw.strip()) == 10:
        end = end_of_day(end)
    if start is not None and end is not None and start >= end:
        raise ValidationError("start must be before end", details={"start": start_raw, "end": end_raw})
    return start, end
