"""
Explanation builder.

Derives the ranked contributing factors and a plain-language narrative from
the same inputs the risk scorer sees.
"""

from collections.abc import Callable
from dataclasses import dataclass

from aura.domain.models import (
    ContributingFactor,
    CurrentState,
    Deviations,
    ExplanationOutput,
    ResidentBaseline,
    RiskScores,
    UrgencyBand,
)
from aura.services.baseline import is_night_hour
from aura.services.risk_scoring import urgency_band

TOP_FACTOR_COUNT = 3

DEFAULT_FACTOR = ContributingFactor(factor="All signals within comfortable range", weight=0.1)


@dataclass(frozen=True)
class FactorRule:
    """A checklist entry: when `applies` holds, contribute `name` with `weight`."""

    name: str
    applies: Callable[[CurrentState, Deviations, bool], bool]
    weight: Callable[[CurrentState], float]


# Evaluation order matters: ties in weight keep this order
FACTOR_RULES: tuple[FactorRule, ...] = (
    FactorRule(
        "Reduced mobility stability",
        lambda s, d, night: s.mobility < 50,
        lambda s: (100 - s.mobility) / 100,
    ),
    FactorRule(
        "Elevated restlessness",
        lambda s, d, night: s.restlessness > 40,
        lambda s: s.restlessness / 100,
    ),
    FactorRule("Nighttime hours", lambda s, d, night: night, lambda s: 0.6),
    FactorRule(
        "Speech clarity change",
        lambda s, d, night: s.speech_drift > 35,
        lambda s: s.speech_drift / 100,
    ),
    FactorRule(
        "Social isolation trend",
        lambda s, d, night: s.social_isolation > 45,
        lambda s: s.social_isolation / 100,
    ),
    FactorRule(
        "High staff workload",
        lambda s, d, night: s.staff_load > 60,
        lambda s: s.staff_load / 120,
    ),
    FactorRule(
        "Elevated heart rate",
        lambda s, d, night: s.use_wearables and s.heart_rate > 100,
        lambda s: 0.5,
    ),
    FactorRule(
        "Low blood oxygen",
        lambda s, d, night: s.use_wearables and s.sp_o2 < 93,
        lambda s: 0.7,
    ),
    FactorRule(
        "Mobility below personal baseline",
        lambda s, d, night: d.mobility > 1.5,
        lambda s: 0.55,
    ),
    FactorRule(
        "Restlessness above personal baseline",
        lambda s, d, night: d.restlessness > 1.5,
        lambda s: 0.45,
    ),
)


def collect_factors(
    state: CurrentState, deviations: Deviations, night: bool
) -> list[ContributingFactor]:
    """Run the checklist in order; never returns an empty list."""
    factors = [
        ContributingFactor(factor=rule.name, weight=rule.weight(state))
        for rule in FACTOR_RULES
        if rule.applies(state, deviations, night)
    ]
    return factors or [DEFAULT_FACTOR]


def build_narrative(band: UrgencyBand, top_factors: list[ContributingFactor]) -> str:
    if band == UrgencyBand.LOW:
        return (
            "The resident's current state is within a comfortable range. "
            "No significant deviations from their personal baseline have been detected."
        )

    names = [f.factor.lower() for f in top_factors]
    if band == UrgencyBand.MEDIUM:
        return (
            f"Moderate attention suggested. The system has noticed {' and '.join(names)}. "
            "These patterns are being monitored to ensure the resident's comfort and safety."
        )
    return (
        f"Elevated concern detected due to {', '.join(names)}. "
        "The system recommends timely support to ensure the resident's wellbeing."
    )


def build_explanation(
    state: CurrentState,
    deviations: Deviations,
    risks: RiskScores,
    baseline: ResidentBaseline,
) -> ExplanationOutput:
    """Rank contributing factors and describe them for the overall urgency band."""
    snapshot = state.clamped()
    night = is_night_hour(snapshot.time_of_day, baseline)

    factors = collect_factors(snapshot, deviations, night)
    # sorted() is stable, including with reverse=True
    top = sorted(factors, key=lambda f: f.weight, reverse=True)[:TOP_FACTOR_COUNT]

    return ExplanationOutput(
        top_factors=top,
        narrative=build_narrative(urgency_band(risks.overall), top),
    )
