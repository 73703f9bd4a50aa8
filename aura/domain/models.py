"""
Domain models for ambient resident monitoring.

These models represent the core care concepts and are framework-agnostic.
They use Pydantic for validation but carry no I/O: every engine function
takes them as read-only snapshots.
"""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class UrgencyBand(str, Enum):
    """Threshold classification of a single 0-100 risk score."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class InterventionLevel(IntEnum):
    """Intervention ladder, strictly ordered by severity."""

    AMBIENT_CUE = 1
    GENTLE_PROMPT = 2
    STAFF_SOFT_ALERT = 3
    ESCALATE = 4

    @property
    def label(self) -> str:
        return _LEVEL_LABELS[self]


_LEVEL_LABELS = {
    InterventionLevel.AMBIENT_CUE: "Ambient Cue",
    InterventionLevel.GENTLE_PROMPT: "Gentle Prompt",
    InterventionLevel.STAFF_SOFT_ALERT: "Staff Soft Alert",
    InterventionLevel.ESCALATE: "Escalate",
}


class MessageSource(str, Enum):
    """Where the resident/staff text of an intervention came from."""

    TEMPLATE = "template"
    LLM = "llm"


class ControllerStatus(str, Enum):
    """Lifecycle state of the enrichment call controller."""

    IDLE = "idle"
    GENERATING = "generating"
    ERROR = "error"


class ResidentBaseline(BaseModel):
    """Per-resident expected means/variances and the sleep window."""

    model_config = ConfigDict(frozen=True)  # Shared by reference across every computation

    mobility_mean: float = 70.0
    mobility_var: float = Field(default=100.0, ge=0.0)
    restlessness_mean: float = 25.0
    restlessness_var: float = Field(default=64.0, ge=0.0)
    speech_mean: float = 20.0
    speech_var: float = Field(default=49.0, ge=0.0)
    social_mean: float = 30.0
    social_var: float = Field(default=81.0, ge=0.0)
    sleep_start: float = Field(default=22.0, description="Hour the sleep window opens (0-24)")
    sleep_end: float = Field(default=6.0, description="Hour the sleep window closes (0-24)")


class CurrentState(BaseModel):
    """
    Snapshot of resident signals at one instant.

    Mutated in place by the simulator or UI; the engine only ever reads it.
    Values outside their documented ranges are accepted here and pulled back
    into range by `clamped()` at the formula boundary.
    """

    time_of_day: float = Field(default=14.0, description="Fractional hour, 0-24")
    mobility: float = Field(default=70.0, description="0-100, higher means more stable")
    restlessness: float = Field(default=25.0, description="0-100")
    speech_drift: float = Field(default=20.0, description="0-100")
    social_isolation: float = Field(default=30.0, description="0-100")
    use_wearables: bool = False
    heart_rate: float = Field(default=72.0, description="bpm, 40-140, valid only with wearables")
    sp_o2: float = Field(default=97.0, description="percent, 85-100, valid only with wearables")
    staff_load: float = Field(default=40.0, description="0-100")

    def clamped(self) -> "CurrentState":
        """
        Return a copy with every signal pulled into its documented range.

        The hour wraps around the clock (30 is 06:00, -2 is 22:00) rather than
        sticking at midnight.
        """
        return self.model_copy(
            update={
                "time_of_day": self.time_of_day % 24,
                "mobility": _bound(self.mobility, 0.0, 100.0),
                "restlessness": _bound(self.restlessness, 0.0, 100.0),
                "speech_drift": _bound(self.speech_drift, 0.0, 100.0),
                "social_isolation": _bound(self.social_isolation, 0.0, 100.0),
                "heart_rate": _bound(self.heart_rate, 40.0, 140.0),
                "sp_o2": _bound(self.sp_o2, 85.0, 100.0),
                "staff_load": _bound(self.staff_load, 0.0, 100.0),
            }
        )


def _bound(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class Deviations(BaseModel):
    """Signed normalized deviations; positive always means more risk."""

    model_config = ConfigDict(frozen=True)

    mobility: float
    restlessness: float
    speech: float
    social: float


class RiskScores(BaseModel):
    """Four bounded risk scores, each in [0, 100]."""

    model_config = ConfigDict(frozen=True)

    fall: float = Field(ge=0.0, le=100.0)
    cognitive: float = Field(ge=0.0, le=100.0)
    loneliness: float = Field(ge=0.0, le=100.0)
    overall: float = Field(ge=0.0, le=100.0)


class InterventionOutput(BaseModel):
    """Deterministic template output for one intervention level."""

    level: InterventionLevel
    level_label: str
    resident_message: str | None = None
    staff_message: str | None = None
    environmental_cue: str


class ContributingFactor(BaseModel):
    """One explanation factor with its relative weight."""

    model_config = ConfigDict(frozen=True)

    factor: str
    weight: float = Field(ge=0.0, le=1.0)


class ExplanationOutput(BaseModel):
    """Top contributing factors (at most 3, never empty) and a narrative."""

    top_factors: list[ContributingFactor] = Field(min_length=1, max_length=3)
    narrative: str


class TimelineEvent(BaseModel):
    """Notable event emitted while simulating a day."""

    model_config = ConfigDict(frozen=True)

    time: int = Field(ge=0, le=23, description="Hour of the day")
    label: str
    urgency: UrgencyBand
    detail: str


class SimulationSnapshot(BaseModel):
    """Everything the engine produced for one simulated hour."""

    hour: int = Field(ge=0, le=23)
    state: CurrentState
    risks: RiskScores
    intervention: InterventionOutput
    events: list[TimelineEvent] = Field(default_factory=list)


class ResidentProfile(BaseModel):
    """Non-sensitive resident details used to personalise generated messages."""

    name: str = Field(default="Eleanor", max_length=80)
    age: int = Field(default=82, ge=0, le=130)
    mobility_baseline: float = Field(default=70.0, ge=0.0, le=100.0)
    cognitive_concern_level: UrgencyBand = UrgencyBand.LOW


class MessageContext(BaseModel):
    """
    Outbound payload for message enrichment.

    A sanitized, size-bounded view of one evaluation cycle. Credentials never
    appear here; vitals are only present when wearables are enabled.
    """

    model_config = ConfigDict(frozen=True)

    resident_profile: ResidentProfile
    risk_scores: RiskScores
    time_of_day: float = Field(ge=0.0, le=24.0)
    intervention_level: InterventionLevel
    top_contributing_factors: list[str] = Field(default_factory=list, max_length=3)
    staff_load: float = Field(ge=0.0, le=100.0)
    use_wearables: bool = False
    heart_rate: float | None = None
    sp_o2: float | None = None


class GeneratedMessages(BaseModel):
    """Inbound enrichment result after parsing and length capping."""

    model_config = ConfigDict(frozen=True)

    resident_message: str | None = Field(default=None, max_length=200)
    staff_message: str | None = Field(default=None, max_length=300)
    explanation_text: str = Field(max_length=500)


class ConnectivityStatus(BaseModel):
    """Outcome of a reachability check against the enrichment endpoint."""

    model_config = ConfigDict(frozen=True)

    reachable: bool
    status_code: int | None = None
    detail: str | None = None


class EnrichedInterventionOutput(InterventionOutput):
    """Intervention output after optional replacement by generated messages."""

    source: MessageSource = MessageSource.TEMPLATE
    llm_explanation: str | None = None
