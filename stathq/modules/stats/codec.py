"""Value codec – parse and format stat values by declared value type.

Values are stored as scaled integers:

* currency   – integer cents (``"1234.5"`` -> ``123450``)
* percentage – hundredths of a percentage point (``"12.34"`` -> ``1234``)
* number     – the integer itself

Parsing goes through ``Decimal`` so no float ever touches a stored value.
Rounding is half-up on the hundredths digit (half away from zero for
negative amounts). The empty string is the "no value" sentinel and parses
to ``None``.
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from stathq.modules.stats.errors import ValidationError
from stathq.modules.stats.models import VALUE_CURRENCY, VALUE_NUMBER, VALUE_PERCENTAGE, VALUE_TYPES

_DECIMAL_RE = re.compile(r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)$")
_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_ONE = Decimal(1)
_PERCENT_MIN = Decimal(0)
_PERCENT_MAX = Decimal(100)
# Stored values are signed 64-bit integers.
_MAX_SCALED = 2 ** 63 - 1
_MAX_INPUT_LENGTH = 24


def _describe(raw: str, field: Optional[str]) -> str:
    return f"Value {raw!r} on {field}" if field else f"Value {raw!r}"


def _to_hundredths(text: str) -> int:
    return int((Decimal(text) * 100).quantize(_ONE, rounding=ROUND_HALF_UP))


def _out_of_range(text: str, field: Optional[str], value_type: str):
    raise ValidationError(
        f"{_describe(text, field)} is too large",
        code="out_of_range",
        details={"field": field, "value": text, "value_type": value_type},
    )


def _check_length(text: str, field: Optional[str], value_type: str) -> None:
    # Keeps int() and Decimal quantize well inside their limits.
    if len(text) > _MAX_INPUT_LENGTH:
        _out_of_range(f"{text[:12]}...", field, value_type)


def _bounded(scaled: int, text: str, field: Optional[str], value_type: str) -> int:
    if not -_MAX_SCALED <= scaled <= _MAX_SCALED:
        _out_of_range(text, field, value_type)
    return scaled


def _check_value_type(value_type: str) -> None:
    if value_type not in VALUE_TYPES:
        raise ValidationError(f"Unknown value_type {value_type!r}", code="unknown_value_type")


def parse_value(value_type: str, raw, field: Optional[str] = None) -> Optional[int]:
    """Parse a submitted value into its scaled-integer form.

    Returns ``None`` for the empty sentinel. Raises ``ValidationError`` for
    malformed input, a percentage outside [0, 100] or a value too large to
    store.
    """
    _check_value_type(value_type)
    text = "" if raw is None else str(raw).strip()
    if text == "":
        return None

    if value_type == VALUE_NUMBER:
        if not _INTEGER_RE.match(text):
            raise ValidationError(
                f"{_describe(text, field)} is not a valid integer",
                details={"field": field, "value": text, "value_type": value_type},
            )
        _check_length(text, field, value_type)
        return _bounded(int(text), text, field, value_type)

    if not _DECIMAL_RE.match(text):
        hint = "not a valid money value (use plain decimal e.g. 1234.56)" \
            if value_type == VALUE_CURRENCY else "not a valid number"
        raise ValidationError(
            f"{_describe(text, field)} is {hint}",
            details={"field": field, "value": text, "value_type": value_type},
        )
    _check_length(text, field, value_type)

    if value_type == VALUE_PERCENTAGE:
        if not _PERCENT_MIN <= Decimal(text) <= _PERCENT_MAX:
            raise ValidationError(
                f"{_describe(text, field)} is out of range 0-100",
                code="out_of_range",
                details={"field": field, "value": text, "value_type": value_type},
            )
    return _bounded(_to_hundredths(text), text, field, value_type)


def _format_hundredths(scaled: int) -> str:
    sign = "-" if scaled < 0 else ""
    whole, frac = divmod(abs(scaled), 100)
    return f"{sign}{whole}.{frac:02d}"


def format_value(value_type: str, scaled: Optional[int]) -> str:
    """Render a stored value for display; ``None`` renders as ``""``."""
    _check_value_type(value_type)
    if scaled is None:
        return ""
    if value_type == VALUE_NUMBER:
        return str(int(scaled))
    return _format_hundredths(int(scaled))


def is_blank(raw) -> bool:
    return raw is None or str(raw).strip() == ""
