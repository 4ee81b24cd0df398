from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.types import BigInteger, TypeDecorator


class FixedPoint(TypeDecorator):
    """
    Exact decimal column stored as a scaled integer.

    FixedPoint(2) stores Decimal("12.34") as 1234; FixedPoint(3) stores
    Decimal("0.5") as 500. Storage-side arithmetic (quantity = quantity + :delta,
    SUM(amount)) therefore stays exact on every backend, SQLite included, and
    Python code only ever sees Decimal values.
    """

    impl = BigInteger
    cache_ok = True

    def __init__(self, scale: int, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scale = scale

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        scaled = Decimal(value).scaleb(self.scale)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-self.scale)


def Money() -> FixedPoint:
    return FixedPoint(2)


def Quantity() -> FixedPoint:
    return FixedPoint(3)


def decimal_str(value: Decimal | None) -> str | None:
    """Serialize a Decimal for JSON without exponent notation."""
    if value is None:
        return None
    return format(value, "f")
