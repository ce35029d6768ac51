from .units import GlucoseUnit, as_decimal, round2
from .profile import TherapyProfile
from .snapshot import ClinicalSnapshot
from .calculator import BolusCalculator, CalculatorConfig, DoseBreakdown, InvalidProfile, calculate

__all__ = [
    "GlucoseUnit",
    "as_decimal",
    "round2",
    "TherapyProfile",
    "ClinicalSnapshot",
    "BolusCalculator",
    "CalculatorConfig",
    "DoseBreakdown",
    "InvalidProfile",
    "calculate",
]
