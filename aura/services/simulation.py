"""
Synthetic 24-hour day simulator.

Drifts the resident signals with a bounded random walk and runs every hour
through the engine, emitting timeline events along the way. Pass a seeded
`random.Random` for reproducible days.
"""

import random

import structlog

from aura.domain.models import (
    CurrentState,
    ResidentBaseline,
    RiskScores,
    SimulationSnapshot,
    TimelineEvent,
    UrgencyBand,
)
from aura.services.baseline import compute_deviations, is_night_hour
from aura.services.intervention import (
    round_half_up,
    select_intervention,
    update_recent_high_count,
)
from aura.services.risk_scoring import clamp, compute_risks, urgency_band

logger = structlog.get_logger(__name__)

HOURS_PER_DAY = 24


def random_walk(rng: random.Random, current: float, lo: float, hi: float, step: float) -> float:
    delta = (rng.random() - 0.5) * 2 * step
    return max(lo, min(hi, current + delta))


def drift_state(state: CurrentState, night: bool, rng: random.Random) -> None:
    """Advance `state` in place by one simulated hour."""
    state.mobility = random_walk(rng, state.mobility, 15, 95, 12 if night else 6)
    state.restlessness = random_walk(rng, state.restlessness, 5, 90, 15 if night else 8)
    state.speech_drift = random_walk(rng, state.speech_drift, 5, 85, 5)
    state.social_isolation = random_walk(rng, state.social_isolation, 10, 90, 6)

    if state.use_wearables:
        state.heart_rate = random_walk(rng, state.heart_rate, 50, 130, 5)
        state.sp_o2 = random_walk(rng, state.sp_o2, 88, 100, 1.5)

    # Night restlessness spikes and unsteady moments; daytime social contact
    if night:
        state.restlessness += 12 if rng.random() > 0.7 else -3
        state.mobility -= 8 if rng.random() > 0.6 else 0
    else:
        state.social_isolation -= 5 if rng.random() > 0.5 else -3

    state.mobility = clamp(state.mobility)
    state.restlessness = clamp(state.restlessness)
    state.speech_drift = clamp(state.speech_drift)
    state.social_isolation = clamp(state.social_isolation)
    if state.use_wearables:
        state.heart_rate = clamp(state.heart_rate, 40, 140)
        state.sp_o2 = clamp(state.sp_o2, 85, 100)


def generate_events(
    hour: int, state: CurrentState, risks: RiskScores, night: bool
) -> list[TimelineEvent]:
    """Timeline events worth surfacing for one simulated hour."""
    events: list[TimelineEvent] = []
    clock = f"{hour:02d}:00"

    if night and state.restlessness > 55:
        events.append(
            TimelineEvent(
                time=hour,
                label="Bed exit detected",
                urgency=urgency_band(risks.fall),
                detail=(
                    f"Restlessness {round_half_up(state.restlessness)}% at {clock}. "
                    "Path lighting activated."
                ),
            )
        )

    if night and state.restlessness > 65 and state.mobility < 45:
        events.append(
            TimelineEvent(
                time=hour,
                label="Wandering pattern",
                urgency=urgency_band(risks.cognitive),
                detail=f"Nighttime movement with reduced stability at {clock}.",
            )
        )

    if risks.fall > 70:
        events.append(
            TimelineEvent(
                time=hour,
                label="Fall risk elevated",
                urgency=UrgencyBand.HIGH,
                detail=f"Fall risk score {round_half_up(risks.fall)}% at {clock}. Staff alerted.",
            )
        )

    if risks.loneliness > 60 and not night:
        events.append(
            TimelineEvent(
                time=hour,
                label="Isolation noted",
                urgency=urgency_band(risks.loneliness),
                detail=(
                    f"Social isolation trend high ({round_half_up(state.social_isolation)}%) "
                    f"at {clock}."
                ),
            )
        )

    if risks.overall < 25:
        events.append(
            TimelineEvent(
                time=hour,
                label="Comfortable period",
                urgency=UrgencyBand.LOW,
                detail=f"All signals within range at {clock}.",
            )
        )

    if state.use_wearables and state.sp_o2 < 91:
        events.append(
            TimelineEvent(
                time=hour,
                label="SpO2 low",
                urgency=UrgencyBand.HIGH,
                detail=f"Blood oxygen {round_half_up(state.sp_o2)}% at {clock}.",
            )
        )

    return events


def simulate_day(
    baseline: ResidentBaseline,
    initial_state: CurrentState,
    rng: random.Random | None = None,
) -> list[SimulationSnapshot]:
    """
    Simulate hours 0-23 starting from a copy of `initial_state`.

    The simulator threads its own recent-high counter; the caller's state is
    never mutated.
    """
    rng = rng or random.Random()
    state = initial_state.model_copy()
    recent_high_count = 0
    snapshots: list[SimulationSnapshot] = []

    for hour in range(HOURS_PER_DAY):
        state.time_of_day = hour
        night = is_night_hour(hour, baseline)
        drift_state(state, night, rng)

        deviations = compute_deviations(baseline, state)
        risks = compute_risks(state, deviations, baseline)
        intervention = select_intervention(state, risks, recent_high_count, baseline)
        recent_high_count = update_recent_high_count(recent_high_count, urgency_band(risks.overall))

        snapshots.append(
            SimulationSnapshot(
                hour=hour,
                state=state.model_copy(),
                risks=risks,
                intervention=intervention,
                events=generate_events(hour, state, risks, night),
            )
        )

    logger.info(
        "day_simulated",
        hours=len(snapshots),
        events=sum(len(s.events) for s in snapshots),
        peak_level=max(int(s.intervention.level) for s in snapshots),
    )
    return snapshots
