"""
Meaningful-change gating for enrichment requests.

A compact signature of decision-relevant state decides whether a new
enrichment call is worth issuing. The previous signature is an explicit
field on `ChangeGate`, owned by the caller's session.
"""

from enum import Enum

import structlog

from aura.config import EnrichmentConfig
from aura.domain.models import (
    ExplanationOutput,
    InterventionLevel,
    InterventionOutput,
    RiskScores,
    TimelineEvent,
    UrgencyBand,
)
from aura.services.risk_scoring import urgency_band

logger = structlog.get_logger(__name__)

SIGNATURE_FACTOR_COUNT = 2


class GateDecision(str, Enum):
    """Outcome of one gate check."""

    SKIP_SIMULATION = "skip_simulation"
    SKIP_UNAVAILABLE = "skip_unavailable"
    CANCEL_LOW_LEVEL = "cancel_low_level"
    SKIP_UNCHANGED = "skip_unchanged"
    REQUEST = "request"


def last_significant_event(events: list[TimelineEvent]) -> TimelineEvent | None:
    """Most recent event whose urgency is above Low."""
    return next((e for e in reversed(events) if e.urgency != UrgencyBand.LOW), None)


def compute_context_signature(
    intervention: InterventionOutput,
    risks: RiskScores,
    explanation: ExplanationOutput,
    events: list[TimelineEvent],
) -> str:
    """Fingerprint of level, overall band, top-2 factors and the last notable event."""
    top_factors = ",".join(f.factor for f in explanation.top_factors[:SIGNATURE_FACTOR_COUNT])

    event = last_significant_event(events)
    event_key = f"{event.label}|{event.urgency.value}" if event else "none"

    return (
        f"{int(intervention.level)}|{urgency_band(risks.overall).value}|{top_factors}|{event_key}"
    )


class ChangeGate:
    """Suppresses redundant enrichment calls when nothing meaningful changed."""

    def __init__(self) -> None:
        self.previous_signature = ""
        self.logger = logger.bind(component="change_gate")

    def reset(self) -> None:
        """Forget the stored signature so the next check always passes."""
        self.previous_signature = ""

    def evaluate(
        self,
        intervention: InterventionOutput,
        risks: RiskScores,
        explanation: ExplanationOutput,
        events: list[TimelineEvent],
        *,
        config: EnrichmentConfig,
        simulation_running: bool = False,
    ) -> GateDecision:
        """
        Decide what to do about enrichment for this cycle.

        `CANCEL_LOW_LEVEL` asks the caller to stop pending work and drop cached
        messages. Only `REQUEST` updates the stored signature.
        """
        if simulation_running:
            return GateDecision.SKIP_SIMULATION
        if not config.is_available:
            return GateDecision.SKIP_UNAVAILABLE
        if intervention.level < InterventionLevel.GENTLE_PROMPT:
            return GateDecision.CANCEL_LOW_LEVEL

        signature = compute_context_signature(intervention, risks, explanation, events)
        if signature == self.previous_signature:
            return GateDecision.SKIP_UNCHANGED

        self.logger.debug(
            "context_signature_changed", previous=self.previous_signature, current=signature
        )
        self.previous_signature = signature
        return GateDecision.REQUEST
