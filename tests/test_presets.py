from decimal import Decimal

import pytest

from dosecalc.core.calculator import calculate
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.presets import get_preset, get_preset_profile, load_presets
from dosecalc.validation import profile_warnings


def test_presets_are_valid_profiles():
    presets = load_presets()

    assert {p["name"] for p in presets} == {"adult_mgdl", "adult_mmoll", "conservative_pediatric"}
    for preset in presets:
        profile = get_preset_profile(preset["name"])
        assert profile.problems() == []
        assert profile_warnings(profile) == []


def test_unknown_preset_raises_key_error():
    with pytest.raises(KeyError):
        get_preset("does_not_exist")


def test_pediatric_preset_has_no_fatty_meal_factor():
    profile = get_preset_profile("conservative_pediatric")

    assert not profile.fatty_meal_enabled
    assert profile.max_bolus == Decimal("3")


def test_mmol_preset_calculates_in_mmol():
    profile = get_preset_profile("adult_mmoll")
    snapshot = ClinicalSnapshot(current_glucose=10.5, carbs_on_board=24)

    breakdown = calculate(profile, snapshot)

    # (10.5 - 5.5) / 2.5 + 24 / 12 = 4.00, then 80%
    assert breakdown.raw_total == Decimal("4.00")
    assert breakdown.recommended_dose == Decimal("3.20")
