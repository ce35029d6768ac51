from dataclasses import replace
from decimal import Decimal
import threading

import pytest

from dosecalc.core.calculator import InvalidProfile, calculate
from dosecalc.core.safety import DoseStatus
from dosecalc.core.session import (
    BolusSession,
    BreakdownSlot,
    DoseNotConfirmable,
    RecalculationTrigger,
    StaleBreakdownError,
    TriggerState,
)


def test_trigger_starts_stale_and_cycles():
    trigger = RecalculationTrigger()
    assert trigger.state is TriggerState.STALE

    trigger.mark_fresh(1)
    assert trigger.is_fresh
    trigger.invalidate("glucose changed")
    assert trigger.state is TriggerState.STALE
    trigger.mark_fresh(2)

    assert [(a, b) for a, b, _ in trigger.transitions] == [
        (TriggerState.STALE, TriggerState.FRESH),
        (TriggerState.FRESH, TriggerState.STALE),
        (TriggerState.STALE, TriggerState.FRESH),
    ]
    assert trigger.sequence == 2


def test_session_is_stale_until_first_calculation(profile, snapshot):
    session = BolusSession(profile, snapshot, calculate_on_start=False)

    assert session.state is TriggerState.STALE
    with pytest.raises(StaleBreakdownError):
        session.breakdown

    breakdown = session.recalculate()

    assert session.state is TriggerState.FRESH
    assert session.breakdown is breakdown
    assert breakdown.sequence == 1


def test_session_defaults_amount_to_recommendation(profile, snapshot):
    session = BolusSession(profile, snapshot)

    assert session.breakdown.recommended_dose == Decimal("2.60")
    assert session.amount == Decimal("2.60")
    assert session.decision.can_confirm


def test_fatty_meal_toggle_forces_full_recalculation(profile, snapshot):
    session = BolusSession(profile, snapshot)
    first = session.breakdown

    toggled = session.set_fatty_meal(True)

    assert toggled.sequence == first.sequence + 1
    assert toggled.recommended_dose == Decimal("1.82")
    assert toggled == replace(calculate(profile, session.snapshot), sequence=toggled.sequence)
    assert session.amount == Decimal("1.82")
    assert len(session.audit) == 2
    states = [(a, b) for a, b, _ in session.trigger.transitions]
    assert states[-2:] == [(TriggerState.FRESH, TriggerState.STALE), (TriggerState.STALE, TriggerState.FRESH)]


def test_fatty_meal_toggle_without_change_does_not_recalculate(profile, snapshot):
    session = BolusSession(profile, snapshot)

    session.set_fatty_meal(False)

    assert session.breakdown.sequence == 1
    assert len(session.audit) == 1


def test_fatty_meal_toggle_requires_profile_factor(profile, snapshot):
    session = BolusSession(replace(profile, fatty_meal_factor=None), snapshot)

    with pytest.raises(ValueError, match="not enabled"):
        session.set_fatty_meal(True)


def test_snapshot_update_recalculates(profile, snapshot):
    session = BolusSession(profile, snapshot)

    breakdown = session.update_snapshot(current_glucose=230)

    assert breakdown.correction_component == Decimal("2.6")
    assert breakdown.recommended_dose == Decimal("3.60")
    assert session.breakdown is breakdown


def test_recommendation_above_max_bolus_defaults_to_clamped_amount(profile, snapshot, sink):
    session = BolusSession(replace(profile, max_bolus=2.0), snapshot)

    recommendation = session.recommendation_decision
    assert recommendation.status is DoseStatus.EXCEEDS_MAX_BOLUS
    assert recommendation.was_clamped
    assert session.amount == Decimal("2.0")

    dose = session.confirm(sink)

    assert dose.amount == Decimal("2.0")
    assert dose.was_clamped is True
    assert dose.meal_id == "meal-1"
    assert sink.accepted == [dose]


def test_manual_amount_above_max_bolus_cannot_be_confirmed(profile, snapshot, sink):
    session = BolusSession(profile, snapshot)

    decision = session.set_amount(12)

    assert decision.status is DoseStatus.EXCEEDS_MAX_BOLUS
    assert decision.accepted == Decimal("10")
    with pytest.raises(DoseNotConfirmable):
        session.confirm(sink)
    assert sink.accepted == []


def test_manual_amount_survives_recalculation_until_reset(profile, snapshot, sink):
    session = BolusSession(profile, snapshot)
    session.set_amount("1.5")

    session.set_fatty_meal(True)
    assert session.amount == Decimal("1.5")

    session.use_recommended()
    assert session.amount == Decimal("1.82")

    dose = session.confirm(sink)
    assert dose.amount == Decimal("1.82")
    assert dose.was_clamped is False
    assert dose.sequence == 2


def test_no_recommendation_session_declines(profile, sink):
    from dosecalc.core.snapshot import ClinicalSnapshot

    session = BolusSession(profile, ClinicalSnapshot(current_glucose=70))

    assert session.recommendation_decision.status is DoseStatus.NO_RECOMMENDATION
    assert session.amount == Decimal("0")
    with pytest.raises(DoseNotConfirmable):
        session.confirm(sink)

    session.decline(sink)
    assert sink.declined == [None]


def test_invalid_profile_update_leaves_session_stale(profile, snapshot, sink):
    session = BolusSession(profile, snapshot)

    with pytest.raises(InvalidProfile):
        session.update_profile(replace(profile, carb_ratio=0))

    assert session.state is TriggerState.STALE
    with pytest.raises(StaleBreakdownError):
        session.breakdown
    with pytest.raises(StaleBreakdownError):
        session.confirm(sink)


def test_implausible_snapshot_blocks_calculation(profile, snapshot):
    with pytest.raises(ValueError, match="PLAUSIBILITY_ERROR"):
        BolusSession(profile, replace(snapshot, current_glucose=900))


def test_negative_cob_is_rejected_even_without_validation(profile, snapshot):
    with pytest.raises(ValueError, match="INVALID_INPUT_ERROR"):
        BolusSession(profile, replace(snapshot, carbs_on_board=-5), validate_inputs=False)


def test_slot_rejects_older_breakdown(profile, snapshot):
    slot = BreakdownSlot()
    older = replace(calculate(profile, snapshot), sequence=slot.next_sequence())
    newer = replace(calculate(profile, replace(snapshot, current_glucose=200)), sequence=slot.next_sequence())

    assert slot.publish(newer) is True
    assert slot.publish(older) is False
    assert slot.current is newer


def test_slot_keeps_newest_breakdown_under_concurrent_publication(profile, snapshot):
    slot = BreakdownSlot()
    breakdowns = [
        replace(calculate(profile, snapshot), sequence=slot.next_sequence())
        for _ in range(50)
    ]

    threads = [threading.Thread(target=slot.publish, args=(b,)) for b in reversed(breakdowns)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert slot.current.sequence == 50


def test_sessions_sharing_a_slot_issue_increasing_sequences(profile, snapshot):
    slot = BreakdownSlot()
    first = BolusSession(profile, snapshot, slot=slot)
    second = BolusSession(profile, replace(snapshot, current_glucose=200), slot=slot)

    assert second.breakdown.sequence > first.trigger.sequence
    assert slot.current.recommended_dose == Decimal("3.00")


def test_session_never_serves_another_sessions_breakdown(profile, snapshot, sink):
    slot = BreakdownSlot()
    first = BolusSession(profile, snapshot, slot=slot)
    second = BolusSession(profile, replace(snapshot, current_glucose=300, meal_id="meal-2"), slot=slot)

    assert second.breakdown.recommended_dose == Decimal("5.00")
    assert first.state is TriggerState.STALE
    with pytest.raises(StaleBreakdownError):
        first.breakdown
    with pytest.raises(StaleBreakdownError):
        first.use_recommended()
    with pytest.raises(StaleBreakdownError):
        first.confirm(sink)
    assert sink.accepted == []

    breakdown = first.recalculate()
    dose = first.confirm(sink)

    assert breakdown.recommended_dose == Decimal("2.60")
    assert dose.amount == Decimal("2.60")
    assert dose.meal_id == "meal-1"
    assert dose.sequence == 3
    assert second.state is TriggerState.STALE


def test_superseded_publication_leaves_session_stale(profile, snapshot):
    slot = BreakdownSlot()
    session = BolusSession(profile, snapshot, slot=slot, calculate_on_start=False)
    # Another writer already published #5; this session's next calculation is #1.
    slot.publish(replace(calculate(profile, snapshot), sequence=5))

    with pytest.raises(StaleBreakdownError):
        session.recalculate()

    assert session.state is TriggerState.STALE
    assert len(session.audit) == 0


@pytest.mark.parametrize("reader", ["amount", "decision", "recommendation_decision"])
def test_readers_wait_for_an_update_in_progress(profile, snapshot, reader):
    session = BolusSession(profile, snapshot)
    held = threading.Event()
    release = threading.Event()
    results = []

    def hold_lock():
        with session._lock:
            held.set()
            release.wait(5)

    holder = threading.Thread(target=hold_lock)
    holder.start()
    held.wait(5)
    reading = threading.Thread(target=lambda: results.append(getattr(session, reader)))
    reading.start()
    reading.join(0.2)

    assert reading.is_alive()
    assert results == []

    release.set()
    reading.join(5)
    holder.join(5)
    assert len(results) == 1
