from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from dosecalc.core.units import GlucoseUnit, as_decimal, parse_unit

_NUMERIC_FIELDS = (
    "current_glucose",
    "glucose_delta",
    "insulin_on_board",
    "carbs_on_board",
    "meal_carbs",
    "meal_fat",
    "meal_protein",
)


@dataclass(frozen=True)
class ClinicalSnapshot:
    """A single observation batch of the patient's current state."""
    current_glucose: Decimal
    glucose_delta: Decimal = Decimal("0")  # per delta interval, see CalculatorConfig
    insulin_on_board: Decimal = Decimal("0")  # may be negative
    carbs_on_board: Decimal = Decimal("0")  # grams, includes the meal being bolused
    meal_carbs: Decimal = Decimal("0")
    meal_fat: Decimal = Decimal("0")
    meal_protein: Decimal = Decimal("0")
    fatty_meal_selected: bool = False
    glucose_unit: Optional[GlucoseUnit] = None  # None: same unit as the profile
    meal_id: Optional[str] = None
    meal_note: Optional[str] = None

    def __post_init__(self) -> None:
        for name in _NUMERIC_FIELDS:
            object.__setattr__(self, name, as_decimal(getattr(self, name)))
        if self.glucose_unit is not None:
            object.__setattr__(self, "glucose_unit", parse_unit(self.glucose_unit))

    @property
    def has_meal(self) -> bool:
        return self.meal_carbs > 0 or self.meal_fat > 0 or self.meal_protein > 0

    @property
    def has_fat_or_protein(self) -> bool:
        return self.meal_fat > 0 or self.meal_protein > 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: str(getattr(self, name)) for name in _NUMERIC_FIELDS}
        data["fatty_meal_selected"] = self.fatty_meal_selected
        data["glucose_unit"] = None if self.glucose_unit is None else self.glucose_unit.value
        data["meal_id"] = self.meal_id
        data["meal_note"] = self.meal_note
        return data
