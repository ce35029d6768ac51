"""
Bolus-entry session
===================
Holds one operator's bolus-entry session: the current profile and snapshot,
the last published breakdown, and the editable dose amount.

Every change to a calculator input moves the ``RecalculationTrigger`` to
``STALE`` and then issues a full recalculation. There is no partial update
path, and reading the breakdown while stale raises instead of returning an
outdated number.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Tuple

from dosecalc.api.collaborators import AcceptedDose, DoseSink
from dosecalc.core.audit import AuditTrail
from dosecalc.core.calculator import BolusCalculator, DoseBreakdown
from dosecalc.core.profile import TherapyProfile
from dosecalc.core.safety import ClampDecision, InputValidator, SafetyClamp, SafetyConfig, evaluate_dose
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import Number, as_decimal

logger = logging.getLogger("dosecalc.session")


class StaleBreakdownError(RuntimeError):
    """Raised when a breakdown is read after its inputs changed."""


class DoseNotConfirmable(ValueError):
    """Raised when confirmation is attempted for an amount outside (0, max_bolus]."""

    def __init__(self, decision: ClampDecision):
        super().__init__(
            f"DOSE_NOT_CONFIRMABLE: {decision.candidate} U is outside (0, {decision.max_bolus}] U "
            f"({decision.status.value})."
        )
        self.decision = decision


class TriggerState(Enum):
    STALE = "stale"
    FRESH = "fresh"


class RecalculationTrigger:
    """Two-state machine tracking whether the last breakdown matches the inputs."""

    def __init__(self) -> None:
        self.state = TriggerState.STALE
        self.sequence: Optional[int] = None
        self.transitions: List[Tuple[TriggerState, TriggerState, str]] = []

    @property
    def is_fresh(self) -> bool:
        return self.state is TriggerState.FRESH

    def invalidate(self, reason: str) -> None:
        self._move(TriggerState.STALE, reason)

    def mark_fresh(self, sequence: int) -> None:
        self.sequence = sequence
        self._move(TriggerState.FRESH, f"calculation #{sequence}")

    def _move(self, target: TriggerState, reason: str) -> None:
        if self.state is not target:
            self.transitions.append((self.state, target, reason))
            logger.debug("Trigger %s -> %s (%s)", self.state.value, target.value, reason)
        self.state = target


class BreakdownSlot:
    """
    The currently displayed breakdown.

    Publications are last-writer-wins by sequence number: a breakdown whose
    sequence is not newer than the held one is rejected.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_issued = 0
        self._current: Optional[DoseBreakdown] = None

    def next_sequence(self) -> int:
        with self._lock:
            self._last_issued += 1
            return self._last_issued

    def publish(self, breakdown: DoseBreakdown) -> bool:
        with self._lock:
            if self._current is not None and breakdown.sequence <= self._current.sequence:
                logger.debug(
                    "Discarding breakdown #%d; #%d already published.",
                    breakdown.sequence, self._current.sequence,
                )
                return False
            self._current = breakdown
            return True

    @property
    def current(self) -> Optional[DoseBreakdown]:
        with self._lock:
            return self._current


class BolusSession:
    def __init__(
        self,
        profile: TherapyProfile,
        snapshot: ClinicalSnapshot,
        calculator: Optional[BolusCalculator] = None,
        safety_config: Optional[SafetyConfig] = None,
        validate_inputs: bool = True,
        slot: Optional[BreakdownSlot] = None,
        audit: Optional[AuditTrail] = None,
        calculate_on_start: bool = True,
    ):
        if safety_config is None:
            safety_config = SafetyConfig()
        if calculator is None:
            calculator = BolusCalculator(safety_config.calculator_config())
        self.profile = profile
        self.snapshot = snapshot
        self.calculator = calculator
        self.validator: Optional[InputValidator] = InputValidator(safety_config) if validate_inputs else None
        self.slot = slot if slot is not None else BreakdownSlot()
        self.audit = audit if audit is not None else AuditTrail()
        self.trigger = RecalculationTrigger()

        self._lock = threading.RLock()
        self._amount = Decimal("0")
        self._amount_overridden = False

        if calculate_on_start:
            self.recalculate()

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def recalculate(self) -> DoseBreakdown:
        """
        Run a full calculation on the current inputs and publish it.

        Raises:
            InvalidProfile: The profile is unusable. The session stays stale.
            ValueError: The snapshot failed plausibility checks.
            StaleBreakdownError: A newer breakdown from another session sharing
                the slot was published first.
        """
        with self._lock:
            InputValidator.validate_non_negative(self.snapshot)
            if self.validator is not None:
                self.validator.validate_snapshot(self.snapshot, self.profile.glucose_unit)

            sequence = self.slot.next_sequence()
            breakdown = dataclasses.replace(
                self.calculator.calculate(self.profile, self.snapshot),
                sequence=sequence,
            )
            if not self.slot.publish(breakdown):
                self.trigger.invalidate(f"calculation #{sequence} superseded in slot")
                raise StaleBreakdownError(
                    f"Calculation #{sequence} was superseded by a newer breakdown; recalculate first."
                )

            decision = self._clamp().evaluate(breakdown.recommended_dose)
            self.audit.record(self.profile, self.snapshot, breakdown, decision)
            if not self._amount_overridden:
                self._amount = decision.accepted
            self.trigger.mark_fresh(sequence)

            logger.info(
                "Calculation #%d: recommended %s U (%s)",
                sequence, breakdown.recommended_dose, decision.status.value,
            )
            return breakdown

    @property
    def breakdown(self) -> DoseBreakdown:
        with self._lock:
            current = self._current_breakdown()
            if current is None:
                raise StaleBreakdownError("Inputs changed since the last calculation; recalculate first.")
            return current

    @property
    def state(self) -> TriggerState:
        with self._lock:
            self._current_breakdown()
            return self.trigger.state

    def _current_breakdown(self) -> Optional[DoseBreakdown]:
        # The slot may be shared; only this session's own calculation counts as current.
        current = self.slot.current
        if not self.trigger.is_fresh or current is None:
            return None
        if current.sequence != self.trigger.sequence:
            self.trigger.invalidate(f"slot now holds calculation #{current.sequence}")
            return None
        return current

    # ------------------------------------------------------------------
    # Input changes
    # ------------------------------------------------------------------

    def set_fatty_meal(self, selected: bool) -> DoseBreakdown:
        with self._lock:
            if selected and not self.profile.fatty_meal_enabled:
                raise ValueError("Fatty meal correction is not enabled in the therapy profile.")
            current = self._current_breakdown()
            if selected == self.snapshot.fatty_meal_selected and current is not None:
                return current
            return self.update_snapshot(fatty_meal_selected=selected)

    def update_snapshot(self, **changes: Any) -> DoseBreakdown:
        with self._lock:
            updated = dataclasses.replace(self.snapshot, **changes)
            if updated != self.snapshot:
                self.snapshot = updated
                self.trigger.invalidate("snapshot changed: " + ", ".join(sorted(changes)))
            return self.recalculate()

    def update_profile(self, profile: TherapyProfile) -> DoseBreakdown:
        with self._lock:
            if profile != self.profile:
                self.profile = profile
                self.trigger.invalidate("therapy profile changed")
            return self.recalculate()

    # ------------------------------------------------------------------
    # Amount and confirmation
    # ------------------------------------------------------------------

    @property
    def amount(self) -> Decimal:
        with self._lock:
            return self._amount

    def set_amount(self, value: Number) -> ClampDecision:
        with self._lock:
            self._amount = as_decimal(value)
            self._amount_overridden = True
            return self._clamp().evaluate(self._amount)

    def use_recommended(self) -> ClampDecision:
        with self._lock:
            self._amount = self.recommendation_decision.accepted
            self._amount_overridden = False
            return self.decision

    @property
    def decision(self) -> ClampDecision:
        with self._lock:
            return evaluate_dose(self._amount, self.profile.max_bolus)

    @property
    def recommendation_decision(self) -> ClampDecision:
        with self._lock:
            return evaluate_dose(self.breakdown.recommended_dose, self.profile.max_bolus)

    def confirm(self, sink: DoseSink) -> AcceptedDose:
        with self._lock:
            breakdown = self.breakdown
            decision = self.decision
            if not decision.can_confirm:
                raise DoseNotConfirmable(decision)
            was_clamped = not self._amount_overridden and self.recommendation_decision.was_clamped
            dose = AcceptedDose(
                amount=decision.accepted,
                was_clamped=was_clamped,
                meal_id=self.snapshot.meal_id,
                sequence=breakdown.sequence,
            )
            sink.accept(dose)
            logger.info("Bolus of %s U confirmed (calculation #%d).", dose.amount, dose.sequence)
            return dose

    def decline(self, sink: DoseSink) -> None:
        with self._lock:
            sink.decline(self.snapshot.meal_id)
            logger.info("Continuing without bolus (meal %s).", self.snapshot.meal_id)

    def _clamp(self) -> SafetyClamp:
        return SafetyClamp(self.profile.max_bolus)
