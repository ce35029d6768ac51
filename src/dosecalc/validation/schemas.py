from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dosecalc.core.profile import TherapyProfile
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import as_decimal


def _to_decimal(value: Any) -> Any:
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        return as_decimal(value)
    return value


class TherapyProfileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    carb_ratio: Decimal = Field(gt=0)
    insulin_sensitivity_factor: Decimal = Field(gt=0)
    target_glucose: Decimal = Field(gt=0)
    basal_rate: Decimal = Field(default=Decimal("0"), ge=0)
    bolus_fraction: Decimal = Field(default=Decimal("1"), gt=0, le=1)
    fatty_meal_factor: Optional[Decimal] = Field(default=None, gt=0, le=1)
    max_bolus: Decimal = Field(gt=0)
    glucose_unit: Literal["mg/dL", "mmol/L"] = "mg/dL"

    @field_validator(
        "carb_ratio",
        "insulin_sensitivity_factor",
        "target_glucose",
        "basal_rate",
        "bolus_fraction",
        "fatty_meal_factor",
        "max_bolus",
        mode="before",
    )
    @classmethod
    def _exact_decimal(cls, value: Any) -> Any:
        return _to_decimal(value)

    def to_profile(self) -> TherapyProfile:
        return TherapyProfile(**self.model_dump())


class ClinicalSnapshotModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_glucose: Decimal = Field(gt=0)
    glucose_delta: Decimal = Decimal("0")
    insulin_on_board: Decimal = Decimal("0")
    carbs_on_board: Decimal = Field(default=Decimal("0"), ge=0)
    meal_carbs: Decimal = Field(default=Decimal("0"), ge=0)
    meal_fat: Decimal = Field(default=Decimal("0"), ge=0)
    meal_protein: Decimal = Field(default=Decimal("0"), ge=0)
    fatty_meal_selected: bool = False
    glucose_unit: Optional[Literal["mg/dL", "mmol/L"]] = None
    meal_id: Optional[str] = None
    meal_note: Optional[str] = None

    @field_validator(
        "current_glucose",
        "glucose_delta",
        "insulin_on_board",
        "carbs_on_board",
        "meal_carbs",
        "meal_fat",
        "meal_protein",
        mode="before",
    )
    @classmethod
    def _exact_decimal(cls, value: Any) -> Any:
        return _to_decimal(value)

    def to_snapshot(self) -> ClinicalSnapshot:
        return ClinicalSnapshot(**self.model_dump())
