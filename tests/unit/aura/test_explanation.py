"""
Tests for the explanation builder in `aura/services/explanation.py`.

Covers:
- Default factor when nothing applies
- Ranking, truncation to three factors and stable tie order
- Narrative wording per overall band
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from aura.domain.models import ContributingFactor, CurrentState, ExplanationOutput, UrgencyBand
from aura.services.baseline import DEFAULT_BASELINE, compute_deviations
from aura.services.explanation import DEFAULT_FACTOR, build_explanation, build_narrative
from aura.services.risk_scoring import compute_risks


def explain(state: CurrentState) -> ExplanationOutput:
    deviations = compute_deviations(DEFAULT_BASELINE, state)
    risks = compute_risks(state, deviations, DEFAULT_BASELINE)
    return build_explanation(state, deviations, risks, DEFAULT_BASELINE)


class TestBuildExplanation:
    """Factor selection and ranking."""

    def test_default_state_uses_default_factor(self) -> None:
        explanation = explain(CurrentState())

        assert explanation.top_factors == [DEFAULT_FACTOR]
        assert explanation.narrative.startswith("The resident's current state is within")

    def test_nighttime_alone(self) -> None:
        explanation = explain(CurrentState(time_of_day=23))

        assert [(f.factor, f.weight) for f in explanation.top_factors] == [("Nighttime hours", 0.6)]

    def test_equal_weights_keep_checklist_order(self) -> None:
        explanation = explain(CurrentState(time_of_day=23, restlessness=60))

        assert [f.factor for f in explanation.top_factors] == [
            "Elevated restlessness",
            "Nighttime hours",
            "Restlessness above personal baseline",
        ]

    def test_only_top_three_are_kept(self) -> None:
        explanation = explain(
            CurrentState(
                time_of_day=2,
                mobility=10,
                restlessness=90,
                speech_drift=90,
                social_isolation=90,
                staff_load=90,
            )
        )

        assert len(explanation.top_factors) == 3
        assert [f.factor for f in explanation.top_factors] == [
            "Reduced mobility stability",
            "Elevated restlessness",
            "Speech clarity change",
        ]

    def test_wearable_factors_require_wearables(self) -> None:
        without = explain(CurrentState(heart_rate=130, sp_o2=88))
        with_wearables = explain(CurrentState(use_wearables=True, heart_rate=130, sp_o2=88))

        assert without.top_factors == [DEFAULT_FACTOR]
        assert [f.factor for f in with_wearables.top_factors] == [
            "Low blood oxygen",
            "Elevated heart rate",
        ]

    def test_staff_load_weight(self) -> None:
        explanation = explain(CurrentState(staff_load=90))

        assert explanation.top_factors[0].factor == "High staff workload"
        assert explanation.top_factors[0].weight == 0.75

    @given(
        mobility=st.floats(min_value=0, max_value=100),
        restlessness=st.floats(min_value=0, max_value=100),
        speech_drift=st.floats(min_value=0, max_value=100),
        social_isolation=st.floats(min_value=0, max_value=100),
        staff_load=st.floats(min_value=0, max_value=100),
        time_of_day=st.floats(min_value=0, max_value=24),
    )
    def test_factors_sorted_and_bounded(
        self,
        mobility: float,
        restlessness: float,
        speech_drift: float,
        social_isolation: float,
        staff_load: float,
        time_of_day: float,
    ) -> None:
        """Property-based test: one to three factors, never increasing in weight."""
        explanation = explain(
            CurrentState(
                mobility=mobility,
                restlessness=restlessness,
                speech_drift=speech_drift,
                social_isolation=social_isolation,
                staff_load=staff_load,
                time_of_day=time_of_day,
            )
        )

        weights = [f.weight for f in explanation.top_factors]
        assert 1 <= len(weights) <= 3
        assert weights == sorted(weights, reverse=True)


class TestNarrative:
    """Band-specific wording."""

    factors = [
        ContributingFactor(factor="Elevated restlessness", weight=0.6),
        ContributingFactor(factor="Nighttime hours", weight=0.6),
    ]

    def test_medium_joins_with_and(self) -> None:
        narrative = build_narrative(UrgencyBand.MEDIUM, self.factors)

        assert narrative.startswith(
            "Moderate attention suggested. The system has noticed "
            "elevated restlessness and nighttime hours."
        )

    def test_high_joins_with_commas(self) -> None:
        narrative = build_narrative(UrgencyBand.HIGH, self.factors)

        assert narrative.startswith(
            "Elevated concern detected due to elevated restlessness, nighttime hours."
        )

    def test_low_ignores_factors(self) -> None:
        assert build_narrative(UrgencyBand.LOW, self.factors) == build_narrative(
            UrgencyBand.LOW, [DEFAULT_FACTOR]
        )
