"""
Tests for meaningful-change gating in `aura/services/change_gate.py`.

Covers:
- Signature format and the last-significant-event lookup
- Gate ordering: simulation lock-out, availability, low-level cancel
- Unchanged contexts are skipped; only requests store the signature
"""

from __future__ import annotations

import pytest

from aura.config import EnrichmentConfig
from aura.domain.models import (
    CurrentState,
    ExplanationOutput,
    InterventionOutput,
    RiskScores,
    TimelineEvent,
    UrgencyBand,
)
from aura.services.baseline import DEFAULT_BASELINE, compute_deviations
from aura.services.change_gate import (
    ChangeGate,
    GateDecision,
    compute_context_signature,
    last_significant_event,
)
from aura.services.explanation import build_explanation
from aura.services.intervention import select_intervention
from aura.services.risk_scoring import compute_risks

Evaluation = tuple[InterventionOutput, RiskScores, ExplanationOutput]


def evaluate(state: CurrentState) -> Evaluation:
    deviations = compute_deviations(DEFAULT_BASELINE, state)
    risks = compute_risks(state, deviations, DEFAULT_BASELINE)
    return (
        select_intervention(state, risks, 0),
        risks,
        build_explanation(state, deviations, risks, DEFAULT_BASELINE),
    )


def event(label: str, urgency: UrgencyBand, time: int = 3) -> TimelineEvent:
    return TimelineEvent(time=time, label=label, urgency=urgency, detail=f"{label} at {time:02d}:00")


@pytest.fixture
def available() -> EnrichmentConfig:
    return EnrichmentConfig(api_key="sk-test", enabled=True)


@pytest.fixture
def gentle_prompt() -> Evaluation:
    return evaluate(CurrentState(social_isolation=80))


class TestSignature:
    """Context fingerprint."""

    def test_signature_without_events(self, gentle_prompt: Evaluation) -> None:
        signature = compute_context_signature(*gentle_prompt, [])

        assert signature == "2|Low|Social isolation trend|none"

    def test_signature_uses_top_two_factors(self) -> None:
        intervention, risks, explanation = evaluate(CurrentState(time_of_day=23, restlessness=60))

        signature = compute_context_signature(intervention, risks, explanation, [])

        assert "|Elevated restlessness,Nighttime hours|" in signature

    def test_signature_includes_last_significant_event(self, gentle_prompt: Evaluation) -> None:
        events = [
            event("Fall risk elevated", UrgencyBand.HIGH, 1),
            event("Bed exit detected", UrgencyBand.MEDIUM, 2),
            event("Comfortable period", UrgencyBand.LOW, 3),
        ]

        signature = compute_context_signature(*gentle_prompt, events)

        assert signature.endswith("|Bed exit detected|Medium")

    def test_last_significant_event_skips_low(self) -> None:
        assert last_significant_event([event("Comfortable period", UrgencyBand.LOW)]) is None
        assert last_significant_event([]) is None


class TestChangeGate:
    """Decision ordering and signature bookkeeping."""

    def test_simulation_running_skips_everything(
        self, available: EnrichmentConfig, gentle_prompt: Evaluation
    ) -> None:
        gate = ChangeGate()

        decision = gate.evaluate(*gentle_prompt, [], config=available, simulation_running=True)

        assert decision == GateDecision.SKIP_SIMULATION
        assert gate.previous_signature == ""

    @pytest.mark.parametrize(
        "config",
        [
            EnrichmentConfig(api_key="sk-test", enabled=False),
            EnrichmentConfig(api_key="", enabled=True),
            EnrichmentConfig(api_key="   ", enabled=True),
        ],
    )
    def test_unavailable_enrichment_is_skipped(
        self, config: EnrichmentConfig, gentle_prompt: Evaluation
    ) -> None:
        assert ChangeGate().evaluate(*gentle_prompt, [], config=config) == GateDecision.SKIP_UNAVAILABLE

    def test_level_one_requests_cancel(self, available: EnrichmentConfig) -> None:
        gate = ChangeGate()

        decision = gate.evaluate(*evaluate(CurrentState()), [], config=available)

        assert decision == GateDecision.CANCEL_LOW_LEVEL
        assert gate.previous_signature == ""

    def test_first_change_requests_then_identical_context_skips(
        self, available: EnrichmentConfig, gentle_prompt: Evaluation
    ) -> None:
        gate = ChangeGate()

        assert gate.evaluate(*gentle_prompt, [], config=available) == GateDecision.REQUEST
        assert gate.previous_signature == "2|Low|Social isolation trend|none"
        assert gate.evaluate(*gentle_prompt, [], config=available) == GateDecision.SKIP_UNCHANGED

    def test_small_score_changes_within_band_are_skipped(self, available: EnrichmentConfig) -> None:
        gate = ChangeGate()

        gate.evaluate(*evaluate(CurrentState(social_isolation=80)), [], config=available)
        decision = gate.evaluate(*evaluate(CurrentState(social_isolation=82)), [], config=available)

        assert decision == GateDecision.SKIP_UNCHANGED

    def test_new_significant_event_triggers_request(
        self, available: EnrichmentConfig, gentle_prompt: Evaluation
    ) -> None:
        gate = ChangeGate()
        events: list[TimelineEvent] = []

        gate.evaluate(*gentle_prompt, events, config=available)
        events.append(event("Comfortable period", UrgencyBand.LOW))
        assert gate.evaluate(*gentle_prompt, events, config=available) == GateDecision.SKIP_UNCHANGED

        events.append(event("Wandering pattern", UrgencyBand.MEDIUM))
        assert gate.evaluate(*gentle_prompt, events, config=available) == GateDecision.REQUEST

    def test_level_change_triggers_request(self, available: EnrichmentConfig) -> None:
        gate = ChangeGate()

        gate.evaluate(*evaluate(CurrentState(social_isolation=80)), [], config=available)
        decision = gate.evaluate(
            *evaluate(CurrentState(social_isolation=80, speech_drift=70, staff_load=80)),
            [],
            config=available,
        )

        assert decision == GateDecision.REQUEST

    def test_reset_forgets_signature(
        self, available: EnrichmentConfig, gentle_prompt: Evaluation
    ) -> None:
        gate = ChangeGate()
        gate.evaluate(*gentle_prompt, [], config=available)

        gate.reset()

        assert gate.evaluate(*gentle_prompt, [], config=available) == GateDecision.REQUEST
