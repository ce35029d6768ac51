import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from dosecalc.core.safety.config import SafetyConfig
from dosecalc.core.units import Number, as_decimal

logger = logging.getLogger("dosecalc")

_ZERO = Decimal("0")


class DoseStatus(Enum):
    WITHIN_LIMITS = "within_limits"
    NO_RECOMMENDATION = "no_recommendation"
    EXCEEDS_MAX_BOLUS = "exceeds_max_bolus"


@dataclass(frozen=True)
class ClampDecision:
    candidate: Decimal
    accepted: Decimal
    was_clamped: bool
    status: DoseStatus
    max_bolus: Decimal

    @property
    def can_confirm(self) -> bool:
        return can_confirm(self.candidate, self.max_bolus)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": str(self.candidate),
            "accepted": str(self.accepted),
            "was_clamped": self.was_clamped,
            "status": self.status.value,
            "max_bolus": str(self.max_bolus),
            "can_confirm": self.can_confirm,
        }


def clamp(candidate: Number, max_bolus: Number) -> Tuple[Decimal, bool]:
    """
    Bound a candidate dose to ``[0, max_bolus]``.

    Returns the accepted amount and whether the ceiling was applied. Flooring
    a negative candidate to zero is not a clamp event.
    """
    candidate = as_decimal(candidate)
    max_bolus = as_decimal(max_bolus)
    if max_bolus <= 0:
        raise ValueError(f"INVALID_MAX_BOLUS: max_bolus {max_bolus} U must be positive.")
    accepted = min(max(candidate, _ZERO), max_bolus)
    return accepted, candidate > max_bolus


def can_confirm(candidate: Number, max_bolus: Number) -> bool:
    """A dose may be confirmed only when ``0 < candidate <= max_bolus``."""
    candidate = as_decimal(candidate)
    return _ZERO < candidate <= as_decimal(max_bolus)


def evaluate_dose(candidate: Number, max_bolus: Number) -> ClampDecision:
    candidate = as_decimal(candidate)
    max_bolus = as_decimal(max_bolus)
    accepted, was_clamped = clamp(candidate, max_bolus)
    if was_clamped:
        status = DoseStatus.EXCEEDS_MAX_BOLUS
    elif candidate <= 0:
        status = DoseStatus.NO_RECOMMENDATION
    else:
        status = DoseStatus.WITHIN_LIMITS
    return ClampDecision(
        candidate=candidate,
        accepted=accepted,
        was_clamped=was_clamped,
        status=status,
        max_bolus=max_bolus,
    )


class SafetyClamp:
    """
    Enforces the max bolus ceiling on recommended and manually entered doses.
    """
    def __init__(self, max_bolus: Optional[Number] = None, safety_config: Optional[SafetyConfig] = None):
        if max_bolus is None:
            if safety_config is None:
                safety_config = SafetyConfig()
            max_bolus = safety_config.max_bolus
        self.max_bolus = as_decimal(max_bolus)
        if self.max_bolus <= 0:
            raise ValueError(f"INVALID_MAX_BOLUS: max_bolus {self.max_bolus} U must be positive.")

    def evaluate(self, candidate: Number) -> ClampDecision:
        decision = evaluate_dose(candidate, self.max_bolus)
        if decision.was_clamped:
            logger.warning(
                "Dose %s U exceeds max bolus %s U; limited to %s U.",
                decision.candidate, self.max_bolus, decision.accepted,
            )
        return decision
