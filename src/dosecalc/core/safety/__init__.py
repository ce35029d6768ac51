from .config import SafetyConfig
from .clamp import ClampDecision, DoseStatus, SafetyClamp, can_confirm, clamp, evaluate_dose
from .input_validator import InputValidator

__all__ = [
    "SafetyConfig",
    "SafetyClamp",
    "ClampDecision",
    "DoseStatus",
    "InputValidator",
    "can_confirm",
    "clamp",
    "evaluate_dose",
]
