"""
Deterministic risk scoring.

Each specific score is an additive model over non-negative contribution
terms, clamped to [0, 100] only once at the end. The weights below are the
numeric contract of the engine and must not be tuned per resident.
"""

from aura.domain.models import CurrentState, Deviations, ResidentBaseline, RiskScores, UrgencyBand
from aura.services.baseline import is_night_hour

MEDIUM_THRESHOLD = 40.0
HIGH_THRESHOLD = 70.0

NIGHT_FALL_BONUS = 18.0

OVERALL_WEIGHTS = {"fall": 0.40, "cognitive": 0.30, "loneliness": 0.30}


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp into [lo, hi]. Idempotent."""
    return max(lo, min(hi, value))


def urgency_band(score: float) -> UrgencyBand:
    """Step classification: Low below 40, Medium below 70, High otherwise."""
    if score < MEDIUM_THRESHOLD:
        return UrgencyBand.LOW
    if score < HIGH_THRESHOLD:
        return UrgencyBand.MEDIUM
    return UrgencyBand.HIGH


def fall_risk(state: CurrentState, deviations: Deviations, night: bool) -> float:
    score = 0.0
    score += (100 - state.mobility) * 0.35
    score += state.restlessness * 0.20
    if night:
        score += NIGHT_FALL_BONUS
    score += max(0.0, deviations.mobility) * 5
    score += max(0.0, deviations.restlessness) * 3
    if state.use_wearables:
        score += max(0.0, state.heart_rate - 110) * 0.5
        score += max(0.0, 92 - state.sp_o2) * 3
    return clamp(score)


def cognitive_risk(state: CurrentState, deviations: Deviations, night: bool) -> float:
    score = state.speech_drift * 0.45
    # Night wandering proxy
    if night:
        score += state.restlessness * 0.25
    score += max(0.0, deviations.speech) * 4
    return clamp(score)


def loneliness_risk(state: CurrentState, deviations: Deviations) -> float:
    score = state.social_isolation * 0.50
    # Low movement compounds isolation
    activity_proxy = state.mobility * 0.3 + (100 - state.restlessness) * 0.2
    score += max(0.0, 50 - activity_proxy) * 0.3
    score += max(0.0, deviations.social) * 4
    return clamp(score)


def compute_risks(
    state: CurrentState,
    deviations: Deviations,
    baseline: ResidentBaseline,
) -> RiskScores:
    """Score fall, cognitive and loneliness risk plus their weighted blend."""
    snapshot = state.clamped()
    night = is_night_hour(snapshot.time_of_day, baseline)

    fall = fall_risk(snapshot, deviations, night)
    cognitive = cognitive_risk(snapshot, deviations, night)
    loneliness = loneliness_risk(snapshot, deviations)
    overall = clamp(
        fall * OVERALL_WEIGHTS["fall"]
        + cognitive * OVERALL_WEIGHTS["cognitive"]
        + loneliness * OVERALL_WEIGHTS["loneliness"]
    )

    return RiskScores(fall=fall, cognitive=cognitive, loneliness=loneliness, overall=overall)
