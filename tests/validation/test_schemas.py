from decimal import Decimal

import pytest
from pydantic import ValidationError

from dosecalc.core.units import GlucoseUnit
from dosecalc.validation import (
    format_validation_error,
    load_profile,
    load_snapshot,
    profile_warnings,
    validate_profile_dict,
    validate_snapshot_dict,
)


PROFILE_YAML = """\
carb_ratio: 10
insulin_sensitivity_factor: 50
target_glucose: 100
basal_rate: 0.8
fatty_meal_factor: 0.7
max_bolus: 10
"""


def test_load_profile_from_yaml(tmp_path):
    path = tmp_path / "profile.yaml"
    path.write_text(PROFILE_YAML)

    profile = load_profile(path)

    assert profile.carb_ratio == Decimal("10")
    assert profile.fatty_meal_factor == Decimal("0.7")
    assert profile.bolus_fraction == Decimal("1")
    assert profile.glucose_unit is GlucoseUnit.MGDL


def test_load_snapshot_from_json(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(
        '{"current_glucose": 9.5, "glucose_delta": -0.3, "insulin_on_board": 0.4,'
        ' "carbs_on_board": 30, "glucose_unit": "mmol/L", "meal_id": "lunch"}'
    )

    snapshot = load_snapshot(path)

    assert snapshot.current_glucose == Decimal("9.5")
    assert snapshot.glucose_delta == Decimal("-0.3")
    assert snapshot.glucose_unit is GlucoseUnit.MMOLL
    assert snapshot.meal_id == "lunch"


def test_float_inputs_become_exact_decimals():
    profile = validate_profile_dict(
        {"carb_ratio": 12.1, "insulin_sensitivity_factor": 45, "target_glucose": 110, "max_bolus": 6.3}
    )

    assert profile.carb_ratio == Decimal("12.1")
    assert profile.max_bolus == Decimal("6.3")


def test_profile_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        validate_profile_dict(
            {"carb_ratio": 10, "insulin_sensitivity_factor": 50, "target_glucose": 100,
             "max_bolus": 10, "insulin_type": "rapid"}
        )


@pytest.mark.parametrize(
    "field, value",
    [
        ("carb_ratio", 0),
        ("insulin_sensitivity_factor", -5),
        ("bolus_fraction", 1.5),
        ("fatty_meal_factor", 0),
        ("max_bolus", 0),
    ],
)
def test_profile_range_errors_are_reported_by_field(field, value):
    data = {"carb_ratio": 10, "insulin_sensitivity_factor": 50, "target_glucose": 100, "max_bolus": 10}
    data[field] = value

    with pytest.raises(ValidationError) as excinfo:
        validate_profile_dict(data)

    lines = format_validation_error(excinfo.value)
    assert any(line.startswith(field) for line in lines)


def test_snapshot_rejects_negative_grams():
    with pytest.raises(ValidationError) as excinfo:
        validate_snapshot_dict({"current_glucose": 140, "meal_carbs": -10})

    assert format_validation_error(excinfo.value)[0].startswith("meal_carbs")


def test_snapshot_rejects_unknown_unit():
    with pytest.raises(ValidationError):
        validate_snapshot_dict({"current_glucose": 140, "glucose_unit": "mg"})


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "profile.yaml"
    path.write_text("- 1\n- 2\n")

    with pytest.raises(ValueError, match="expected a mapping"):
        load_profile(path)


def test_typical_profile_has_no_warnings(profile):
    assert profile_warnings(profile) == []


def test_unusual_profile_values_produce_warnings():
    profile = validate_profile_dict(
        {"carb_ratio": 80, "insulin_sensitivity_factor": 50, "target_glucose": 60,
         "max_bolus": 40, "glucose_unit": "mg/dL"}
    )

    warnings = profile_warnings(profile)

    assert len(warnings) == 3
    assert any("carb_ratio" in w for w in warnings)
    assert any("target_glucose" in w for w in warnings)
    assert any("unusually high" in w for w in warnings)


def test_mmol_profile_uses_mmol_ranges():
    profile = validate_profile_dict(
        {"carb_ratio": 12, "insulin_sensitivity_factor": 2.5, "target_glucose": 5.5,
         "max_bolus": 8, "glucose_unit": "mmol/L"}
    )

    assert profile_warnings(profile) == []
