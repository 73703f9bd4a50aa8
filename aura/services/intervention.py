"""
Intervention selector.

A priority-ordered decision table, evaluated top to bottom with the first
match winning, followed by fixed message templates per level. The only
cross-cycle input is `recent_high_count`, which the caller threads through
explicitly via `update_recent_high_count`.
"""

import math

from aura.domain.models import (
    CurrentState,
    InterventionLevel,
    InterventionOutput,
    ResidentBaseline,
    RiskScores,
    UrgencyBand,
)
from aura.services.baseline import DEFAULT_BASELINE, is_night_hour
from aura.services.risk_scoring import HIGH_THRESHOLD, urgency_band

REPEATED_HIGH_LIMIT = 3
STAFF_LOAD_ALERT = 65.0
ABNORMAL_HEART_RATE = 120.0
ABNORMAL_SPO2 = 90.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (not banker's rounding)."""
    return math.floor(value + 0.5)


def format_clock(time_of_day: float) -> str:
    """Render a fractional hour as zero-padded HH:MM."""
    hour = math.floor(time_of_day)
    minute = math.floor((time_of_day % 1) * 60)
    return f"{hour:02d}:{minute:02d}"


def update_recent_high_count(count: int, overall_band: UrgencyBand) -> int:
    """Increment on a High overall band, otherwise decay by one (floor 0)."""
    if overall_band == UrgencyBand.HIGH:
        return count + 1
    return max(0, count - 1)


def vitals_abnormal(state: CurrentState) -> bool:
    return state.use_wearables and (
        state.heart_rate > ABNORMAL_HEART_RATE or state.sp_o2 < ABNORMAL_SPO2
    )


def select_level(
    state: CurrentState,
    risks: RiskScores,
    recent_high_count: int,
    night: bool,
) -> InterventionLevel:
    fall_band = urgency_band(risks.fall)
    cognitive_band = urgency_band(risks.cognitive)
    loneliness_band = urgency_band(risks.loneliness)
    overall_band = urgency_band(risks.overall)

    if (
        overall_band == UrgencyBand.HIGH and vitals_abnormal(state)
    ) or recent_high_count >= REPEATED_HIGH_LIMIT:
        return InterventionLevel.ESCALATE

    if fall_band == UrgencyBand.HIGH or (
        overall_band == UrgencyBand.MEDIUM and state.staff_load > STAFF_LOAD_ALERT
    ):
        return InterventionLevel.STAFF_SOFT_ALERT

    if (
        fall_band == UrgencyBand.MEDIUM
        or loneliness_band in (UrgencyBand.MEDIUM, UrgencyBand.HIGH)
        or cognitive_band == UrgencyBand.MEDIUM
    ):
        return InterventionLevel.GENTLE_PROMPT

    if night and fall_band in (UrgencyBand.LOW, UrgencyBand.MEDIUM):
        return InterventionLevel.AMBIENT_CUE

    # The ladder never yields "no intervention"
    return InterventionLevel.AMBIENT_CUE


def select_intervention(
    state: CurrentState,
    risks: RiskScores,
    recent_high_count: int,
    baseline: ResidentBaseline = DEFAULT_BASELINE,
) -> InterventionOutput:
    """Pick the intervention level for this cycle and render its templates."""
    snapshot = state.clamped()
    night = is_night_hour(snapshot.time_of_day, baseline)
    level = select_level(snapshot, risks, recent_high_count, night)
    return build_intervention(level, snapshot, risks, night)


def build_intervention(
    level: InterventionLevel,
    state: CurrentState,
    risks: RiskScores,
    night: bool,
) -> InterventionOutput:
    time_label = format_clock(state.time_of_day)

    if level == InterventionLevel.AMBIENT_CUE:
        return InterventionOutput(
            level=level,
            level_label=level.label,
            environmental_cue=(
                "Soft warm floor-path lighting activated along bedroom → bathroom route. "
                "Gentle calming soundscape maintained."
                if night
                else "Room lighting adjusted to comfortable daytime level. "
                "Background music at low volume."
            ),
        )

    if level == InterventionLevel.GENTLE_PROMPT:
        if risks.loneliness > risks.fall:
            resident_message = (
                f"Good {'evening' if night else 'afternoon'}! Your friend Martha mentioned "
                "she'd love to chat — would you like to give her a call?"
            )
        else:
            resident_message = (
                "Just a gentle reminder: take your time if you're getting up. "
                "The path light is on for you."
            )
        return InterventionOutput(
            level=level,
            level_label=level.label,
            resident_message=resident_message,
            environmental_cue=(
                "Path lighting brightened slightly. Ambient tone gently raised."
                if night
                else "Room ambiance shifted to warmer tones to encourage settling."
            ),
        )

    if level == InterventionLevel.STAFF_SOFT_ALERT:
        if risks.fall >= HIGH_THRESHOLD:
            reason = (
                f"Fall risk elevated ({round_half_up(risks.fall)}%) — resident mobility reduced, "
                f"{'nighttime' if night else 'daytime'} activity detected."
            )
        else:
            reason = (
                f"Combined risk moderate-high ({round_half_up(risks.overall)}%) — "
                "staff load high. Supportive check-in recommended."
            )
        return InterventionOutput(
            level=level,
            level_label=level.label,
            resident_message="You're doing great. Someone will pop by shortly just to say hello.",
            staff_message=f"Soft alert at {time_label}: {reason}",
            environmental_cue=(
                "Room lighting set to calm, reassuring level. Gentle chime played in staff station."
            ),
        )

    if state.use_wearables and state.sp_o2 < ABNORMAL_SPO2:
        reason = (
            f"Vitals concern: SpO2 {state.sp_o2:g}%, HR {state.heart_rate:g} bpm. "
            "Immediate check recommended."
        )
    else:
        reason = (
            f"Repeated high-risk pattern detected (fall {round_half_up(risks.fall)}%, "
            f"overall {round_half_up(risks.overall)}%). Prompt attention needed."
        )
    return InterventionOutput(
        level=level,
        level_label=level.label,
        resident_message="Help is on the way. You're safe — just stay comfortable where you are.",
        staff_message=f"PRIORITY at {time_label}: {reason}",
        environmental_cue=(
            "Room lights fully on. Staff alert tone at station. Hallway indicator active."
        ),
    )
