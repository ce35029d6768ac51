# src/dosecalc/__init__.py

__version__ = "0.1.0"

# Core calculation
from .core.units import GlucoseUnit, as_decimal, round2
from .core.profile import TherapyProfile
from .core.snapshot import ClinicalSnapshot
from .core.calculator import (
    BolusCalculator,
    CalculatorConfig,
    DoseBreakdown,
    InvalidProfile,
    WhyLogEntry,
    calculate,
)

# Safety
from .core.safety import (
    ClampDecision,
    DoseStatus,
    InputValidator,
    SafetyClamp,
    SafetyConfig,
    can_confirm,
    clamp,
    evaluate_dose,
)

# Session, audit and collaborators
from .core.session import (
    BolusSession,
    BreakdownSlot,
    DoseNotConfirmable,
    RecalculationTrigger,
    StaleBreakdownError,
    TriggerState,
)
from .core.audit import AuditTrail, CalculationRecord
from .api.collaborators import (
    AcceptedDose,
    ActiveTotals,
    DoseSink,
    GlucoseReading,
    GlucoseSource,
    InsulinCarbEstimator,
    MealEntry,
    MealResolver,
    TherapyStore,
    build_snapshot,
)

__all__ = [
    # Core
    "GlucoseUnit", "as_decimal", "round2",
    "TherapyProfile", "ClinicalSnapshot",
    "BolusCalculator", "CalculatorConfig", "DoseBreakdown", "InvalidProfile", "WhyLogEntry", "calculate",
    # Safety
    "ClampDecision", "DoseStatus", "InputValidator", "SafetyClamp", "SafetyConfig",
    "can_confirm", "clamp", "evaluate_dose",
    # Session
    "BolusSession", "BreakdownSlot", "DoseNotConfirmable", "RecalculationTrigger",
    "StaleBreakdownError", "TriggerState",
    "AuditTrail", "CalculationRecord",
    # Collaborators
    "AcceptedDose", "ActiveTotals", "DoseSink", "GlucoseReading", "GlucoseSource",
    "InsulinCarbEstimator", "MealEntry", "MealResolver", "TherapyStore", "build_snapshot",
]
