"""
Monitoring session: one resident, one evaluation loop.

This is the caller side of the engine. It owns every piece of cross-cycle
memory explicitly (recent-high counter, timeline, change-gate signature,
last generated messages) and wires the deterministic pipeline to the
enrichment controller:

    signals -> deviations -> risk scores -> bands -> intervention + explanation
            -> (gated) enrichment request -> enriched output

The deterministic output is always produced first; enrichment only ever
replaces text after the fact and every failure falls back to the templates.
"""

import asyncio
import random

import structlog
from pydantic import BaseModel

from aura.config import AppConfig, EnrichmentConfig, get_config
from aura.domain.models import (
    ConnectivityStatus,
    ControllerStatus,
    CurrentState,
    Deviations,
    EnrichedInterventionOutput,
    ExplanationOutput,
    GeneratedMessages,
    InterventionLevel,
    InterventionOutput,
    MessageContext,
    MessageSource,
    ResidentBaseline,
    ResidentProfile,
    RiskScores,
    SimulationSnapshot,
    TimelineEvent,
    UrgencyBand,
)
from aura.services.baseline import DEFAULT_BASELINE, compute_deviations, default_state
from aura.services.change_gate import ChangeGate, GateDecision
from aura.services.enrichment import EnrichmentClient
from aura.services.explanation import build_explanation
from aura.services.intervention import select_intervention, update_recent_high_count
from aura.services.message_controller import MessageController, MessageGenerator
from aura.services.risk_scoring import compute_risks, urgency_band
from aura.services.simulation import simulate_day

logger = structlog.get_logger(__name__)


class EvaluationResult(BaseModel):
    """Deterministic outcome of one evaluation cycle."""

    deviations: Deviations
    risks: RiskScores
    overall_band: UrgencyBand
    intervention: InterventionOutput
    explanation: ExplanationOutput


class CycleResult(BaseModel):
    """What a front end renders after one cycle."""

    evaluation: EvaluationResult
    output: EnrichedInterventionOutput
    narrative: str
    gate_decision: GateDecision
    controller_status: ControllerStatus


def compose_output(
    intervention: InterventionOutput,
    messages: GeneratedMessages | None,
    enrichment_available: bool,
) -> EnrichedInterventionOutput:
    """Overlay generated text on the template output; null fields keep the template."""
    base = intervention.model_dump()
    if messages is None or not enrichment_available:
        return EnrichedInterventionOutput(**base, source=MessageSource.TEMPLATE)

    if messages.resident_message is not None:
        base["resident_message"] = messages.resident_message
    if messages.staff_message is not None:
        base["staff_message"] = messages.staff_message
    return EnrichedInterventionOutput(
        **base, source=MessageSource.LLM, llm_explanation=messages.explanation_text
    )


class MonitoringSession:
    """
    Orchestrates evaluation cycles, the change gate and the message controller.

    Must be driven from a running event loop whenever enrichment is enabled,
    since scheduling a call needs the loop's timer.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        generator: MessageGenerator | None = None,
        baseline: ResidentBaseline = DEFAULT_BASELINE,
        profile: ResidentProfile | None = None,
        state: CurrentState | None = None,
    ) -> None:
        self.config = config or get_config()
        self.enrichment_config = self.config.enrichment
        self.baseline = baseline
        self.profile = profile or ResidentProfile(mobility_baseline=baseline.mobility_mean)
        self.logger = logger.bind(component="monitoring_session")

        self.client = EnrichmentClient(
            timeout_seconds=self.config.controller.request_timeout_seconds
        )
        self.controller = MessageController(
            generator or self.client,
            debounce_seconds=self.config.controller.debounce_seconds,
        )
        self.gate = ChangeGate()

        # Cross-cycle memory, threaded explicitly into every evaluation
        self.state = state or default_state()
        self.recent_high_count = 0
        self.timeline_events: list[TimelineEvent] = []
        self.snapshots: list[SimulationSnapshot] = []
        self.simulation_running = False

        self.last_evaluation: EvaluationResult | None = None
        self.last_messages: GeneratedMessages | None = None
        self.last_error: str | None = None

    def evaluate(self) -> EvaluationResult:
        """Run the deterministic pipeline on the current state. No side effects."""
        deviations = compute_deviations(self.baseline, self.state)
        risks = compute_risks(self.state, deviations, self.baseline)
        intervention = select_intervention(
            self.state, risks, self.recent_high_count, self.baseline
        )
        explanation = build_explanation(self.state, deviations, risks, self.baseline)
        return EvaluationResult(
            deviations=deviations,
            risks=risks,
            overall_band=urgency_band(risks.overall),
            intervention=intervention,
            explanation=explanation,
        )

    def update(self) -> CycleResult:
        """Evaluate, then let the change gate decide about enrichment."""
        evaluation = self.evaluate()
        self.last_evaluation = evaluation
        decision = self._maybe_request_enrichment(evaluation)
        return self._cycle_result(evaluation, decision)

    def current_output(self) -> EnrichedInterventionOutput | None:
        """Latest intervention with whatever generated text has arrived since."""
        if self.last_evaluation is None:
            return None
        return compose_output(
            self.last_evaluation.intervention,
            self.last_messages,
            self.enrichment_config.is_available,
        )

    def force_refresh(self) -> bool:
        """Request fresh messages now, bypassing the debounce and the signature check."""
        evaluation = self.last_evaluation
        if not self.enrichment_config.is_available or evaluation is None:
            return False
        if evaluation.intervention.level < InterventionLevel.GENTLE_PROMPT:
            return False

        self.gate.reset()
        self.controller.force_request(
            self.build_context(evaluation),
            self.enrichment_config,
            self._handle_result,
            self._handle_error,
        )
        self.logger.info("enrichment_force_refresh", level=int(evaluation.intervention.level))
        return True

    def set_enrichment_config(self, config: EnrichmentConfig) -> CycleResult:
        """Swap enrichment settings; switching off drops pending work and cached text."""
        self.enrichment_config = config
        if not config.enabled:
            self.stop_enrichment()
            self.last_messages = None
        return self.update()

    def stop_enrichment(self) -> None:
        self.controller.stop_all()

    def build_context(self, evaluation: EvaluationResult) -> MessageContext:
        """Sanitized payload for the generator; vitals only when wearables are on."""
        snapshot = self.state.clamped()
        profile = self.profile.model_copy(
            update={"cognitive_concern_level": urgency_band(evaluation.risks.cognitive)}
        )
        return MessageContext(
            resident_profile=profile,
            risk_scores=evaluation.risks,
            time_of_day=snapshot.time_of_day,
            intervention_level=evaluation.intervention.level,
            top_contributing_factors=[f.factor for f in evaluation.explanation.top_factors],
            staff_load=snapshot.staff_load,
            use_wearables=snapshot.use_wearables,
            heart_rate=snapshot.heart_rate if snapshot.use_wearables else None,
            sp_o2=snapshot.sp_o2 if snapshot.use_wearables else None,
        )

    async def run_simulation(
        self,
        step_delay_seconds: float | None = None,
        rng: random.Random | None = None,
    ) -> list[SimulationSnapshot]:
        """
        Replay a simulated day hour by hour.

        Enrichment is locked out for the whole run; one final `update()` after
        the run lets the gate request messages for the end state.
        """
        delay = (
            self.config.simulation.step_delay_seconds
            if step_delay_seconds is None
            else step_delay_seconds
        )
        self.timeline_events = []
        self.snapshots = []
        self.recent_high_count = 0

        self.simulation_running = True
        self.stop_enrichment()
        self.last_messages = None
        self.gate.reset()
        self.logger.info("simulation_started")

        try:
            for snapshot in simulate_day(self.baseline, self.state, rng):
                self.snapshots.append(snapshot)
                self.state = snapshot.state.model_copy()
                self.timeline_events.extend(snapshot.events)
                self.recent_high_count = update_recent_high_count(
                    self.recent_high_count, urgency_band(snapshot.risks.overall)
                )
                self.update()
                await asyncio.sleep(delay)
        finally:
            self.simulation_running = False

        self.logger.info(
            "simulation_completed",
            events=len(self.timeline_events),
            recent_high_count=self.recent_high_count,
        )
        self.update()
        return list(self.snapshots)

    def reset(self) -> CycleResult:
        """Back to the default state with all cross-cycle memory cleared."""
        self.state = default_state()
        self.recent_high_count = 0
        self.timeline_events = []
        self.snapshots = []
        self.last_messages = None
        self.last_error = None
        self.gate.reset()
        self.simulation_running = False
        self.stop_enrichment()
        return self.update()

    def randomize(self, rng: random.Random | None = None) -> CycleResult:
        """Jump to a random scenario and force a fresh enrichment decision."""
        rng = rng or random.Random()
        self.state.time_of_day = rng.random() * 24
        self.state.mobility = 15 + rng.random() * 80
        self.state.restlessness = 5 + rng.random() * 85
        self.state.speech_drift = 5 + rng.random() * 80
        self.state.social_isolation = 10 + rng.random() * 80
        self.state.staff_load = 10 + rng.random() * 80
        if self.state.use_wearables:
            self.state.heart_rate = 55 + rng.random() * 75
            self.state.sp_o2 = 88 + rng.random() * 12
        self.last_messages = None
        self.gate.reset()
        return self.update()

    async def check_connectivity(self) -> ConnectivityStatus:
        """Reachability check against the configured endpoint."""
        return await self.client.check_connectivity(self.enrichment_config)

    def _maybe_request_enrichment(self, evaluation: EvaluationResult) -> GateDecision:
        decision = self.gate.evaluate(
            evaluation.intervention,
            evaluation.risks,
            evaluation.explanation,
            self.timeline_events,
            config=self.enrichment_config,
            simulation_running=self.simulation_running,
        )

        if decision == GateDecision.CANCEL_LOW_LEVEL:
            self.stop_enrichment()
            self.last_messages = None
        elif decision == GateDecision.REQUEST:
            self.controller.request(
                self.build_context(evaluation),
                self.enrichment_config,
                self._handle_result,
                self._handle_error,
            )
        return decision

    def _handle_result(self, messages: GeneratedMessages) -> None:
        self.last_messages = messages
        self.last_error = None

    def _handle_error(self, error: Exception) -> None:
        # Keep the last successful messages; templates remain the fallback
        self.last_error = str(error)
        self.logger.warning("enrichment_unavailable", error=str(error)[:80])

    def _cycle_result(self, evaluation: EvaluationResult, decision: GateDecision) -> CycleResult:
        output = compose_output(
            evaluation.intervention, self.last_messages, self.enrichment_config.is_available
        )
        return CycleResult(
            evaluation=evaluation,
            output=output,
            narrative=output.llm_explanation or evaluation.explanation.narrative,
            gate_decision=decision,
            controller_status=self.controller.status,
        )
