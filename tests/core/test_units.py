from decimal import Decimal

import pytest

from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import GlucoseUnit, as_decimal, parse_unit


def test_float_goes_through_its_string_form():
    assert as_decimal(0.1) == Decimal("0.1")


@pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity"), "nan", float("inf")])
def test_non_finite_inputs_are_rejected(value):
    with pytest.raises(ValueError, match="Non-finite"):
        as_decimal(value)


def test_snapshot_rejects_non_finite_decimal_glucose():
    with pytest.raises(ValueError, match="Non-finite"):
        ClinicalSnapshot(current_glucose=Decimal("NaN"))


def test_boolean_is_not_a_number():
    with pytest.raises(TypeError):
        as_decimal(True)


@pytest.mark.parametrize("text", ["mg/dL", "MGDL", "mmol/L", "mmol / l"])
def test_parse_unit_accepts_value_or_name(text):
    assert isinstance(parse_unit(text), GlucoseUnit)
