from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dosecalc.core.units import GlucoseUnit, as_decimal, parse_unit


@dataclass(frozen=True)
class TherapyProfile:
    """
    Configured therapy parameters, read-only for the duration of a calculation.

    Numeric fields accept ints, floats, strings or Decimals and are stored as
    Decimal. Range problems are not raised here; ``problems()`` lists them and
    the calculator refuses to run on a profile that has any.
    """
    carb_ratio: Decimal = Decimal("10")  # grams per unit
    insulin_sensitivity_factor: Decimal = Decimal("50")  # glucose unit per unit
    target_glucose: Decimal = Decimal("100")
    basal_rate: Decimal = Decimal("0.8")  # U/hr, informational only
    bolus_fraction: Decimal = Decimal("1")
    fatty_meal_factor: Optional[Decimal] = None
    max_bolus: Decimal = Decimal("10")
    glucose_unit: GlucoseUnit = GlucoseUnit.MGDL

    def __post_init__(self) -> None:
        for name in (
            "carb_ratio",
            "insulin_sensitivity_factor",
            "target_glucose",
            "basal_rate",
            "bolus_fraction",
            "max_bolus",
        ):
            object.__setattr__(self, name, as_decimal(getattr(self, name)))
        if self.fatty_meal_factor is not None:
            object.__setattr__(self, "fatty_meal_factor", as_decimal(self.fatty_meal_factor))
        object.__setattr__(self, "glucose_unit", parse_unit(self.glucose_unit))

    @property
    def fatty_meal_enabled(self) -> bool:
        return self.fatty_meal_factor is not None

    def problems(self) -> List[str]:
        """Return every configuration error that makes this profile unusable for dosing."""
        found: List[str] = []
        if self.carb_ratio <= 0:
            found.append(f"carb_ratio must be > 0 (got {self.carb_ratio})")
        if self.insulin_sensitivity_factor <= 0:
            found.append(
                f"insulin_sensitivity_factor must be > 0 (got {self.insulin_sensitivity_factor})"
            )
        if not (0 < self.bolus_fraction <= 1):
            found.append(f"bolus_fraction must be in (0, 1] (got {self.bolus_fraction})")
        if self.fatty_meal_factor is not None and not (0 < self.fatty_meal_factor <= 1):
            found.append(f"fatty_meal_factor must be in (0, 1] (got {self.fatty_meal_factor})")
        if self.max_bolus <= 0:
            found.append(f"max_bolus must be > 0 (got {self.max_bolus})")
        return found

    def to_dict(self) -> Dict[str, Any]:
        return {
            "carb_ratio": str(self.carb_ratio),
            "insulin_sensitivity_factor": str(self.insulin_sensitivity_factor),
            "target_glucose": str(self.target_glucose),
            "basal_rate": str(self.basal_rate),
            "bolus_fraction": str(self.bolus_fraction),
            "fatty_meal_factor": None if self.fatty_meal_factor is None else str(self.fatty_meal_factor),
            "max_bolus": str(self.max_bolus),
            "glucose_unit": self.glucose_unit.value,
        }

