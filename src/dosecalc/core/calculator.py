import logging
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Any, Dict, List, Optional

from dosecalc.core.profile import TherapyProfile
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import ARITHMETIC, GlucoseUnit, as_decimal, convert_glucose, round2

logger = logging.getLogger("dosecalc")


class InvalidProfile(ValueError):
    """Raised when the therapy profile cannot be used to compute a dose."""

    def __init__(self, problems: List[str]):
        super().__init__("INVALID_PROFILE: " + "; ".join(problems))
        self.problems = list(problems)


@dataclass(frozen=True)
class CalculatorConfig:
    """
    Trend projection settings.

    ``glucose_delta`` is measured over ``delta_interval_minutes`` and is
    scaled linearly to ``trend_horizon_minutes`` before conversion to insulin.
    """
    delta_interval_minutes: Decimal = Decimal("15")
    trend_horizon_minutes: Decimal = Decimal("15")

    def __post_init__(self) -> None:
        object.__setattr__(self, "delta_interval_minutes", as_decimal(self.delta_interval_minutes))
        object.__setattr__(self, "trend_horizon_minutes", as_decimal(self.trend_horizon_minutes))
        if self.delta_interval_minutes <= 0:
            raise ValueError("delta_interval_minutes must be positive.")
        if self.trend_horizon_minutes < 0:
            raise ValueError("trend_horizon_minutes cannot be negative.")

    @property
    def trend_scale(self) -> Decimal:
        return self.trend_horizon_minutes / self.delta_interval_minutes


@dataclass
class WhyLogEntry:
    """Single entry explaining one part of a dose calculation"""
    reason: str
    category: str  # 'correction', 'trend', 'insulin_on_board', 'carbs_on_board', 'total', 'scaling'
    value: Any = None

    def to_dict(self) -> Dict:
        return {
            'reason': self.reason,
            'category': self.category,
            'value': None if self.value is None else str(self.value),
        }


@dataclass(frozen=True)
class DoseBreakdown:
    """Auditable result of one calculation. Components are kept unrounded."""
    correction_component: Decimal
    trend_component: Decimal
    iob_offset_component: Decimal
    cob_component: Decimal
    raw_total: Decimal
    recommended_dose: Decimal
    bolus_fraction: Decimal
    fatty_meal_factor_applied: Optional[Decimal]
    glucose_unit: GlucoseUnit
    sequence: int = 0
    inputs: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def no_recommendation(self) -> bool:
        return self.recommended_dose <= 0

    def explain(self) -> List[WhyLogEntry]:
        unit = self.glucose_unit.value
        entries = [
            WhyLogEntry(
                f"Target difference of {self.inputs.get('glucose_gap', '?')} {unit}",
                "correction",
                round2(self.correction_component),
            ),
            WhyLogEntry(
                f"Projected trend of {self.inputs.get('projected_delta', '?')} {unit}",
                "trend",
                round2(self.trend_component),
            ),
            WhyLogEntry("Insulin on board subtracted", "insulin_on_board", round2(self.iob_offset_component)),
            WhyLogEntry(
                f"Carbs on board {self.inputs.get('carbs_on_board', '?')} g",
                "carbs_on_board",
                round2(self.cob_component),
            ),
            WhyLogEntry("Full bolus (sum of components)", "total", self.raw_total),
        ]
        scaling = f"Bolus fraction {self.bolus_fraction}"
        if self.fatty_meal_factor_applied is not None:
            scaling += f" x fatty meal factor {self.fatty_meal_factor_applied}"
        entries.append(WhyLogEntry(scaling, "scaling", self.recommended_dose))
        return entries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "correction_component": str(self.correction_component),
            "trend_component": str(self.trend_component),
            "iob_offset_component": str(self.iob_offset_component),
            "cob_component": str(self.cob_component),
            "raw_total": str(self.raw_total),
            "recommended_dose": str(self.recommended_dose),
            "bolus_fraction": str(self.bolus_fraction),
            "fatty_meal_factor_applied": (
                None if self.fatty_meal_factor_applied is None else str(self.fatty_meal_factor_applied)
            ),
            "glucose_unit": self.glucose_unit.value,
        }


def calculate(
    profile: TherapyProfile,
    snapshot: ClinicalSnapshot,
    config: Optional[CalculatorConfig] = None,
) -> DoseBreakdown:
    """
    Compute the recommended bolus for ``snapshot`` under ``profile``.

    The four components are summed and rounded to two places once, then the
    bolus fraction (and the fatty meal factor, when selected) is applied and
    the product rounded again. Pure: identical inputs give identical outputs.

    Raises:
        InvalidProfile: If a divisor or multiplier in the profile is out of range.
    """
    problems = profile.problems()
    if problems:
        raise InvalidProfile(problems)
    if config is None:
        config = CalculatorConfig()

    unit = profile.glucose_unit
    source_unit = snapshot.glucose_unit or unit

    with localcontext(ARITHMETIC):
        glucose = convert_glucose(snapshot.current_glucose, source_unit, unit)
        delta = convert_glucose(snapshot.glucose_delta, source_unit, unit)
        isf = profile.insulin_sensitivity_factor

        glucose_gap = glucose - profile.target_glucose
        projected_delta = delta * config.trend_scale

        correction = glucose_gap / isf
        trend = projected_delta / isf
        iob_offset = -snapshot.insulin_on_board
        cob = snapshot.carbs_on_board / profile.carb_ratio

        raw_total = round2(correction + trend + iob_offset + cob)

        fatty_factor: Optional[Decimal] = None
        if snapshot.fatty_meal_selected:
            if profile.fatty_meal_factor is None:
                logger.warning("Fatty meal selected but the profile has no fatty_meal_factor; ignoring.")
            else:
                fatty_factor = profile.fatty_meal_factor

        multiplier = profile.bolus_fraction * (fatty_factor if fatty_factor is not None else Decimal(1))
        recommended = round2(raw_total * multiplier)

    logger.debug(
        "Bolus calculated: correction=%s trend=%s iob=%s cob=%s total=%s recommended=%s",
        round2(correction), round2(trend), round2(iob_offset), round2(cob), raw_total, recommended,
    )

    return DoseBreakdown(
        correction_component=correction,
        trend_component=trend,
        iob_offset_component=iob_offset,
        cob_component=cob,
        raw_total=raw_total,
        recommended_dose=recommended,
        bolus_fraction=profile.bolus_fraction,
        fatty_meal_factor_applied=fatty_factor,
        glucose_unit=unit,
        inputs={
            "glucose_gap": glucose_gap,
            "projected_delta": projected_delta,
            "carbs_on_board": snapshot.carbs_on_board,
        },
    )


class BolusCalculator:
    """Calculator bound to a fixed trend projection configuration."""

    def __init__(self, config: Optional[CalculatorConfig] = None):
        self.config = config if config is not None else CalculatorConfig()

    def calculate(self, profile: TherapyProfile, snapshot: ClinicalSnapshot) -> DoseBreakdown:
        return calculate(profile, snapshot, self.config)

    def __str__(self):
        return (f"BolusCalculator:\n"
                f"  Delta interval: {self.config.delta_interval_minutes} min\n"
                f"  Trend horizon: {self.config.trend_horizon_minutes} min")
