from __future__ import annotations

from dataclasses import dataclass

from dosecalc.core.calculator import CalculatorConfig


@dataclass
class SafetyConfig:
    """
    Central safety configuration for input validation, the clamp, and trend projection.
    """
    # Input plausibility limits (mg/dL; mmol/L inputs are converted before checking)
    min_glucose: float = 20.0
    max_glucose: float = 600.0
    max_glucose_delta_per_15_min: float = 105.0
    max_insulin_on_board: float = 50.0
    min_insulin_on_board: float = -10.0
    max_carbs_on_board: float = 500.0
    max_meal_grams: float = 500.0

    # Clamp
    max_bolus: float = 10.0

    # Trend projection
    delta_interval_minutes: float = 15.0
    trend_horizon_minutes: float = 15.0

    def calculator_config(self) -> CalculatorConfig:
        return CalculatorConfig(
            delta_interval_minutes=self.delta_interval_minutes,
            trend_horizon_minutes=self.trend_horizon_minutes,
        )
