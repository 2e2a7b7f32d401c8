"""
Domain models for multi-patient vitals monitoring and emergency escalation.

These models represent the core clinical concepts and are framework-agnostic.
Records handed out to consumers are frozen so a snapshot can never be used
to reach back into live engine state.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Physiological bounds every reading is clamped to
HEART_RATE_BOUNDS = (50, 180)
SPO2_BOUNDS = (80, 100)
TEMPERATURE_BOUNDS = (35.0, 41.0)

PatientStatus = Literal["normal", "warning", "critical"]


def utc_now() -> datetime:
    return datetime.now(UTC)


class ConditionProfile(str, Enum):
    """Clinical scenario used to bias synthetic vitals."""

    CARDIAC = "Cardiac"
    TRAUMA = "Trauma"
    RESPIRATORY = "Respiratory"
    STROKE = "Stroke"


class Severity(str, Enum):
    """Closed set of alert severities."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


class EscalationLevel(int, Enum):
    """Urgency tier; each tier above NORMAL has its own responder set."""

    NORMAL = 0
    ALERT = 1
    WARNING = 2
    CRITICAL = 3
    EMERGENCY = 4


class EscalationThresholds(BaseModel):
    """Per-patient escalation table, stricter than the status classifier."""

    model_config = ConfigDict(frozen=True)

    emergency_hr_high: int = 150
    emergency_hr_low: int = 40
    emergency_spo2_low: int = 85

    critical_hr_high: int = 130
    critical_hr_low: int = 50
    critical_spo2_low: int = 90
    critical_temp_high: float = 40.0

    warning_hr_high: int = 110
    warning_hr_low: int = 55
    warning_spo2_low: int = 94
    warning_temp_high: float = 39.0

    alert_hr_high: int = 100
    alert_hr_low: int = 60
    alert_spo2_low: int = 96
    alert_temp_high: float = 38.0


class Patient(BaseModel):
    """Static registry entry, immutable for the whole session."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    condition_profile: str = Field(
        default=ConditionProfile.CARDIAC.value,
        description="One of ConditionProfile; unknown values fall back to Cardiac",
    )
    location: str = ""
    ambulance: str | None = None
    escalation_thresholds: EscalationThresholds | None = None


class VitalReading(BaseModel):
    """One reading per patient per tick."""

    model_config = ConfigDict(frozen=True)

    heart_rate: int
    spo2: int
    temperature: float
    timestamp: datetime = Field(default_factory=utc_now)

    # What the producing source reported about itself (simulator regime,
    # device alarm state). None when the source does not report one.
    source_status: PatientStatus | None = None
    source_alerts: tuple[str, ...] = ()


class AlertFact(BaseModel):
    """A single named alert derived from one reading."""

    model_config = ConfigDict(frozen=True)

    kind: str
    value: str
    severity: Severity


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: PatientStatus
    alerts: tuple[AlertFact, ...] = ()


class Protocol(BaseModel):
    """A named ordered list of clinical steps."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    steps: tuple[str, ...]
    medications: tuple[str, ...] = ()


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime = Field(default_factory=utc_now)
    direction: Literal["up", "down", "ack", "expired"]
    level: EscalationLevel
    event: str


class Notification(BaseModel):
    """One responder paged because a patient's level went up."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    level: EscalationLevel
    role: str
    time: datetime = Field(default_factory=utc_now)


class EscalationSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: EscalationLevel = EscalationLevel.NORMAL
    active_alerts: tuple[AlertFact, ...] = ()
    protocol: Protocol | None = None
    countdown: int | None = None
    acknowledged: bool = False
    timeline: tuple[TimelineEntry, ...] = ()
    notifications: tuple[Notification, ...] = ()


class EscalationTransition(BaseModel):
    """Outcome of one evaluation, used by the scheduler to write log entries."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    previous_level: EscalationLevel
    level: EscalationLevel
    notifications: tuple[Notification, ...] = ()

    @property
    def changed(self) -> bool:
        return self.previous_level != self.level

    @property
    def escalated(self) -> bool:
        return self.level > self.previous_level


class HistorySnapshot(BaseModel):
    """Four parallel sequences, always of equal length."""

    model_config = ConfigDict(frozen=True)

    timestamps: tuple[datetime, ...] = ()
    heart_rate: tuple[int, ...] = ()
    spo2: tuple[int, ...] = ()
    temperature: tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.timestamps)


class StoredState(BaseModel):
    model_config = ConfigDict(frozen=True)

    reading: VitalReading | None = None
    history: HistorySnapshot = Field(default_factory=HistorySnapshot)


class EventLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime = Field(default_factory=utc_now)
    type: str
    message: str


class PatientLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime = Field(default_factory=utc_now)
    type: str
    vital: str | None = None
    message: str
    value: str | None = None
    severity: Severity | None = None


class Snapshot(BaseModel):
    """Immutable point-in-time view of one patient."""

    model_config = ConfigDict(frozen=True)

    patient: Patient
    reading: VitalReading | None
    history: HistorySnapshot
    escalation: EscalationSnapshot


class TickReport(BaseModel):
    """Summary of one scheduler tick."""

    model_config = ConfigDict(frozen=True)

    tick: int = Field(ge=0)
    processed: int = Field(ge=0)
    failed: tuple[str, ...] = ()
    transitions: tuple[EscalationTransition, ...] = ()
    latency_ms: int = Field(ge=0, description="Synthetic transport latency metric")
    duration_seconds: float = Field(ge=0.0)
    completed_at: datetime = Field(default_factory=utc_now)
