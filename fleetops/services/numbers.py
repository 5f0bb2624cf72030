from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from ..errors import ValidationError

NumberLike = Union[str, int, Decimal]

# Fractional digits kept by the Numeric columns
LITRE_PLACES = 3
PRICE_PLACES = 4
READING_PLACES = 3
MONEY_PLACES = 2
HOURS_PLACES = 2


def to_decimal(value: NumberLike, field: str = "value", places: Optional[int] = None) -> Decimal:
    """Parse a decimal string (or int/Decimal) into a finite Decimal.

    With places set, values carrying more fractional digits than that are
    rejected rather than rounded later by the database.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool) or isinstance(value, float):
        # Binary floats never cross the boundary
        raise ValidationError(f"Invalid number for {field}")
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid number for {field}")
    if not parsed.is_finite():
        raise ValidationError(f"Invalid number for {field}")
    if places is not None and parsed != 0 and parsed.normalize().as_tuple().exponent < -places:
        raise ValidationError(f"{field} allows at most {places} decimal places")
    return parsed


def to_decimal_or_none(value: Optional[NumberLike], field: str = "value", places: Optional[int] = None) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_decimal(value, field, places)


def as_decimal(value) -> Decimal:
    """Coerce a stored numeric column (possibly None) for aggregation."""
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def to_utc(value: Union[str, datetime]) -> datetime:
    """Normalize an ISO-8601 string or datetime to an aware UTC datetime."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid ISO-8601 date: {value}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def decimal_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(value)
