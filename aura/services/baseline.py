"""
Resident baseline model.

Converts raw behavioural signals into deviations from the resident's own
baseline and answers whether an hour falls inside the sleep window.
"""

import math

from aura.domain.models import CurrentState, Deviations, ResidentBaseline

# Added to the variance so a zero-variance baseline never divides by zero
VARIANCE_EPSILON = 1.0

DEFAULT_BASELINE = ResidentBaseline()


def default_state() -> CurrentState:
    """Comfortable mid-afternoon state matching the default baseline."""
    return CurrentState()


def is_night_hour(hour: float, baseline: ResidentBaseline) -> bool:
    """Check whether `hour` lies in the sleep window, which may wrap past midnight."""
    h = hour % 24  # Python's modulo already lands in [0, 24) for negative hours
    if baseline.sleep_start > baseline.sleep_end:
        return h >= baseline.sleep_start or h < baseline.sleep_end
    return baseline.sleep_start <= h < baseline.sleep_end


def compute_deviation(current: float, mean: float, variance: float) -> float:
    """z-score-like distance of `current` from `mean`."""
    return (current - mean) / math.sqrt(max(0.0, variance) + VARIANCE_EPSILON)


def compute_deviations(baseline: ResidentBaseline, state: CurrentState) -> Deviations:
    """
    Deviation of every behavioural signal from the resident baseline.

    Mobility is sign-flipped (lower mobility is worse) so that a positive
    deviation uniformly means more risk; the risk scorer relies on this.
    """
    snapshot = state.clamped()
    return Deviations(
        mobility=-compute_deviation(
            snapshot.mobility, baseline.mobility_mean, baseline.mobility_var
        ),
        restlessness=compute_deviation(
            snapshot.restlessness, baseline.restlessness_mean, baseline.restlessness_var
        ),
        speech=compute_deviation(snapshot.speech_drift, baseline.speech_mean, baseline.speech_var),
        social=compute_deviation(
            snapshot.social_isolation, baseline.social_mean, baseline.social_var
        ),
    )
