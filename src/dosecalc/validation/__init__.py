from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError

from dosecalc.core.profile import TherapyProfile
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import GlucoseUnit
from dosecalc.validation.schemas import ClinicalSnapshotModel, TherapyProfileModel

# Typical clinical ranges; values outside only produce warnings.
_TYPICAL_ISF = {
    GlucoseUnit.MGDL: (Decimal("10"), Decimal("200")),
    GlucoseUnit.MMOLL: (Decimal("0.5"), Decimal("11")),
}
_TYPICAL_TARGET = {
    GlucoseUnit.MGDL: (Decimal("80"), Decimal("150")),
    GlucoseUnit.MMOLL: (Decimal("4.4"), Decimal("8.3")),
}


def _read_mapping(path: Union[str, Path]) -> Dict[str, Any]:
    # YAML is a superset of JSON, so one loader covers both file types.
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level.")
    return data


def validate_profile_dict(data: Dict[str, Any]) -> TherapyProfile:
    return TherapyProfileModel.model_validate(data).to_profile()


def validate_snapshot_dict(data: Dict[str, Any]) -> ClinicalSnapshot:
    return ClinicalSnapshotModel.model_validate(data).to_snapshot()


def load_profile(path: Union[str, Path]) -> TherapyProfile:
    return validate_profile_dict(_read_mapping(path))


def load_snapshot(path: Union[str, Path]) -> ClinicalSnapshot:
    return validate_snapshot_dict(_read_mapping(path))


def profile_warnings(profile: TherapyProfile) -> List[str]:
    warnings: List[str] = []
    unit = profile.glucose_unit
    if not (3 <= profile.carb_ratio <= 50):
        warnings.append(f"carb_ratio {profile.carb_ratio} g/U is unusual")
    low, high = _TYPICAL_ISF[unit]
    if not (low <= profile.insulin_sensitivity_factor <= high):
        warnings.append(
            f"insulin_sensitivity_factor {profile.insulin_sensitivity_factor} {unit.value}/U is unusual"
        )
    low, high = _TYPICAL_TARGET[unit]
    if not (low <= profile.target_glucose <= high):
        warnings.append(f"target_glucose {profile.target_glucose} {unit.value} is unusual")
    if profile.max_bolus > 25:
        warnings.append(f"max_bolus {profile.max_bolus} U is unusually high")
    return warnings


def format_validation_error(error: ValidationError) -> List[str]:
    lines: List[str] = []
    for entry in error.errors():
        loc = ".".join(str(item) for item in entry.get("loc", []))
        msg = entry.get("msg", "Invalid value")
        lines.append(f"{loc}: {msg}")
    return lines


__all__ = [
    "ClinicalSnapshotModel",
    "TherapyProfileModel",
    "format_validation_error",
    "load_profile",
    "load_snapshot",
    "profile_warnings",
    "validate_profile_dict",
    "validate_snapshot_dict",
]
