from decimal import Decimal
from typing import Optional

from dosecalc.core.safety.config import SafetyConfig
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import GlucoseUnit, as_decimal, convert_glucose


class InputValidator:
    """
    A plausibility filter for clinical snapshots, run before they reach the
    calculator. Catches sensor glitches and estimator errors that would
    otherwise turn into a dose.
    """
    def __init__(self, safety_config: Optional[SafetyConfig] = None):
        """
        Args:
            safety_config (SafetyConfig): Limits to enforce. Glucose limits are in mg/dL.
        """
        if safety_config is None:
            safety_config = SafetyConfig()
        self.min_glucose = as_decimal(safety_config.min_glucose)
        self.max_glucose = as_decimal(safety_config.max_glucose)
        self.max_glucose_delta = as_decimal(safety_config.max_glucose_delta_per_15_min)
        self.delta_interval_minutes = as_decimal(safety_config.delta_interval_minutes)
        self.min_insulin_on_board = as_decimal(safety_config.min_insulin_on_board)
        self.max_insulin_on_board = as_decimal(safety_config.max_insulin_on_board)
        self.max_carbs_on_board = as_decimal(safety_config.max_carbs_on_board)
        self.max_meal_grams = as_decimal(safety_config.max_meal_grams)

    def validate_glucose(self, glucose_value: Decimal, unit: GlucoseUnit = GlucoseUnit.MGDL) -> Decimal:
        """
        Validates a glucose reading against absolute biological limits.

        Raises:
            ValueError: If the value is outside biological plausibility limits.
        """
        glucose_mgdl = convert_glucose(as_decimal(glucose_value), unit, GlucoseUnit.MGDL)
        if not (self.min_glucose <= glucose_mgdl <= self.max_glucose):
            raise ValueError(
                f"PLAUSIBILITY_ERROR: Glucose {glucose_value} {unit.value} is outside the "
                f"valid range [{self.min_glucose}, {self.max_glucose}] mg/dL."
            )
        return glucose_value

    def validate_delta(self, delta: Decimal, unit: GlucoseUnit = GlucoseUnit.MGDL) -> Decimal:
        """Validates the short-term glucose delta, normalised to a 15 minute interval."""
        delta_mgdl = convert_glucose(as_decimal(delta), unit, GlucoseUnit.MGDL)
        per_15_min = abs(delta_mgdl) * (Decimal(15) / self.delta_interval_minutes)
        if per_15_min > self.max_glucose_delta:
            raise ValueError(
                f"RATE_OF_CHANGE_ERROR: Glucose delta of {delta} {unit.value} per "
                f"{self.delta_interval_minutes} min is unrealistic "
                f"(max allowed: {self.max_glucose_delta} mg/dL per 15 min)."
            )
        return delta

    def validate_snapshot(self, snapshot: ClinicalSnapshot, profile_unit: GlucoseUnit) -> ClinicalSnapshot:
        """
        Validates every field of a snapshot.

        Raises:
            ValueError: On the first implausible value found.
        """
        unit = snapshot.glucose_unit or profile_unit
        self.validate_glucose(snapshot.current_glucose, unit)
        self.validate_delta(snapshot.glucose_delta, unit)

        iob = snapshot.insulin_on_board
        if not (self.min_insulin_on_board <= iob <= self.max_insulin_on_board):
            raise ValueError(
                f"PLAUSIBILITY_ERROR: Insulin on board {iob} U is outside the valid range "
                f"[{self.min_insulin_on_board}, {self.max_insulin_on_board}]."
            )
        if snapshot.carbs_on_board > self.max_carbs_on_board:
            raise ValueError(
                f"PLAUSIBILITY_ERROR: Carbs on board {snapshot.carbs_on_board} g exceeds "
                f"{self.max_carbs_on_board} g."
            )
        for name in ("meal_carbs", "meal_fat", "meal_protein"):
            grams = getattr(snapshot, name)
            if grams > self.max_meal_grams:
                raise ValueError(
                    f"PLAUSIBILITY_ERROR: {name} {grams} g exceeds {self.max_meal_grams} g."
                )
        self.validate_non_negative(snapshot)
        return snapshot

    @staticmethod
    def validate_non_negative(snapshot: ClinicalSnapshot) -> ClinicalSnapshot:
        """Carbohydrate and macro figures can never be negative."""
        for name in ("carbs_on_board", "meal_carbs", "meal_fat", "meal_protein"):
            grams = getattr(snapshot, name)
            if grams < 0:
                raise ValueError(f"INVALID_INPUT_ERROR: {name} {grams} g cannot be negative.")
        return snapshot
