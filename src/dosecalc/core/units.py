from __future__ import annotations

from decimal import Context, Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")

# Fixed context so results never depend on the caller's decimal settings.
ARITHMETIC = Context(prec=28)

MGDL_PER_MMOLL = Decimal("18")
MMOLL_PER_MGDL = Decimal("0.0555")


class GlucoseUnit(Enum):
    MGDL = "mg/dL"
    MMOLL = "mmol/L"


def as_decimal(value: Number) -> Decimal:
    """
    Convert a numeric input to Decimal through its string form.

    Floats go through ``str`` first so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean is not a valid numeric input.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        result = Decimal(str(value))
    else:
        raise TypeError(f"Unsupported numeric input type: {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Non-finite numeric input: {value!r}")
    return result


def round2(value: Decimal) -> Decimal:
    """Round half away from zero to two decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP, context=ARITHMETIC)


def parse_unit(value: Union[GlucoseUnit, str]) -> GlucoseUnit:
    if isinstance(value, GlucoseUnit):
        return value
    normalized = str(value).strip().lower().replace(" ", "")
    for unit in GlucoseUnit:
        if unit.value.lower() == normalized or unit.name.lower() == normalized:
            return unit
    raise ValueError(f"Unknown glucose unit '{value}'. Expected 'mg/dL' or 'mmol/L'.")


def convert_glucose(value: Decimal, source: GlucoseUnit, target: GlucoseUnit) -> Decimal:
    """Convert a glucose value or glucose delta between units."""
    if source is target:
        return value
    if source is GlucoseUnit.MMOLL:
        return value * MGDL_PER_MMOLL
    return value * MMOLL_PER_MGDL
