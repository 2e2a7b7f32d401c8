"""
Per-patient emergency escalation state machine.

Levels: 0 Normal, 1 Alert, 2 Warning, 3 Critical, 4 Emergency.

Every evaluation recomputes the level from the latest reading. A change of
level is written to the patient's timeline; a rise additionally pages the
responders of the new level and clears any earlier acknowledgment. Reaching
level 3 or above starts a response countdown that runs on its own
one-second clock, independent of evaluation.

The engine favours availability: malformed readings and unknown patients
are logged and treated as "no alerts", never raised.
"""

import threading
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from vitalwatch.domain.models import (
    AlertFact,
    EscalationLevel,
    EscalationSnapshot,
    EscalationThresholds,
    EscalationTransition,
    Notification,
    PatientStatus,
    Protocol,
    Severity,
    TimelineEntry,
)

logger = structlog.get_logger(__name__)

DEFAULT_COUNTDOWN_SECONDS = 300
DEFAULT_TIMELINE_CAPACITY = 10
DEFAULT_NOTIFICATION_CAPACITY = 50

NotificationHandler = Callable[[Notification], None]

RESPONDERS: dict[EscalationLevel, tuple[str, ...]] = {
    EscalationLevel.NORMAL: (),
    EscalationLevel.ALERT: ("Bedside Nurse",),
    EscalationLevel.WARNING: ("Charge Nurse", "On-call Physician"),
    EscalationLevel.CRITICAL: ("Attending Physician", "ICU Team", "Specialist On-call"),
    EscalationLevel.EMERGENCY: ("Code Blue Team", "Anesthesiologist", "All Available Staff"),
}

PROTOCOLS: dict[str, Protocol] = {
    "cardiac": Protocol(
        key="cardiac",
        name="Cardiac Emergency Protocol",
        steps=(
            "Activate cardiac monitoring",
            "Prepare defibrillator",
            "Administer Aspirin 325mg if not contraindicated",
            "Establish IV access",
            "Prepare for 12-lead ECG",
            "Notify cardiology on-call",
        ),
        medications=("Aspirin", "Nitroglycerin", "Heparin", "Morphine"),
    ),
    "respiratory": Protocol(
        key="respiratory",
        name="Respiratory Distress Protocol",
        steps=(
            "Administer high-flow oxygen",
            "Position patient upright",
            "Prepare for intubation if needed",
            "Order ABG and chest X-ray",
            "Prepare bronchodilators",
            "Alert respiratory therapy",
        ),
        medications=("Albuterol", "Ipratropium", "Methylprednisolone"),
    ),
    "hypotension": Protocol(
        key="hypotension",
        name="Hypotension Protocol",
        steps=(
            "Initiate fluid resuscitation",
            "Place patient in Trendelenburg",
            "Check for hemorrhage",
            "Prepare vasopressors",
            "Order type and screen",
            "Monitor urine output",
        ),
        medications=("Normal Saline", "Norepinephrine", "Vasopressin"),
    ),
    "sepsis": Protocol(
        key="sepsis",
        name="Sepsis Bundle Protocol",
        steps=(
            "Draw blood cultures x2",
            "Initiate broad-spectrum antibiotics within 1 hour",
            "30ml/kg crystalloid bolus",
            "Measure lactate levels",
            "Monitor MAP >=65 mmHg",
            "Reassess fluid responsiveness",
        ),
        medications=("Piperacillin-Tazobactam", "Vancomycin", "Norepinephrine"),
    ),
}


def _vitals_of(reading: Any) -> tuple[float, float, float] | None:
    """Pull (hr, spo2, temp) as floats, or None if any is missing or not numeric."""
    if reading is None:
        return None
    values = []
    for name in ("heart_rate", "spo2", "temperature"):
        raw = getattr(reading, name, None)
        if raw is None or isinstance(raw, bool):
            return None
        try:
            values.append(float(raw))
        except (TypeError, ValueError):
            return None
    hr, spo2, temp = values
    return hr, spo2, temp


def compute_level(
    reading: Any,
    thresholds: EscalationThresholds | None = None,
    status_override: PatientStatus | str | None = None,
) -> tuple[EscalationLevel, tuple[AlertFact, ...]]:
    """
    Map a reading to an escalation level and the alerts that justify it.

    Only the alerts of the highest matching tier are reported. A
    ``status_override`` of "critical" forces at least level 3.
    """
    t = thresholds or EscalationThresholds()
    vitals = _vitals_of(reading)
    level = EscalationLevel.NORMAL
    alerts: list[AlertFact] = []

    if vitals is not None:
        hr, spo2, temp = vitals
        bpm, sat, deg = f"{hr:g} BPM", f"{spo2:g}%", f"{temp:.1f}°C"

        def add(kind: str, value: str, severity: Severity) -> None:
            alerts.append(AlertFact(kind=kind, value=value, severity=severity))

        if hr > t.emergency_hr_high or hr < t.emergency_hr_low or spo2 < t.emergency_spo2_low:
            level = EscalationLevel.EMERGENCY
            if hr > t.emergency_hr_high:
                add("Severe Tachycardia", bpm, Severity.EMERGENCY)
            if hr < t.emergency_hr_low:
                add("Severe Bradycardia", bpm, Severity.EMERGENCY)
            if spo2 < t.emergency_spo2_low:
                add("Severe Hypoxia", sat, Severity.EMERGENCY)
        elif (
            hr > t.critical_hr_high
            or hr < t.critical_hr_low
            or spo2 < t.critical_spo2_low
            or temp > t.critical_temp_high
        ):
            level = EscalationLevel.CRITICAL
            if hr > t.critical_hr_high:
                add("Tachycardia", bpm, Severity.CRITICAL)
            if hr < t.critical_hr_low:
                add("Bradycardia", bpm, Severity.CRITICAL)
            if spo2 < t.critical_spo2_low:
                add("Hypoxemia", sat, Severity.CRITICAL)
            if temp > t.critical_temp_high:
                add("Hyperthermia", deg, Severity.CRITICAL)
        elif (
            hr > t.warning_hr_high
            or hr < t.warning_hr_low
            or spo2 < t.warning_spo2_low
            or temp > t.warning_temp_high
        ):
            level = EscalationLevel.WARNING
            if hr > t.warning_hr_high:
                add("Elevated HR", bpm, Severity.WARNING)
            if hr < t.warning_hr_low:
                add("Low HR", bpm, Severity.WARNING)
            if spo2 < t.warning_spo2_low:
                add("Low SpO2", sat, Severity.WARNING)
            if temp > t.warning_temp_high:
                add("Fever", deg, Severity.WARNING)
        elif (
            hr > t.alert_hr_high
            or hr < t.alert_hr_low
            or spo2 < t.alert_spo2_low
            or temp > t.alert_temp_high
        ):
            level = EscalationLevel.ALERT
            if hr > t.alert_hr_high:
                add("Mild Tachycardia", bpm, Severity.WARNING)
            if hr < t.alert_hr_low:
                add("Mild Low HR", bpm, Severity.WARNING)
            if spo2 < t.alert_spo2_low:
                add("Borderline SpO2", sat, Severity.WARNING)
            if temp > t.alert_temp_high:
                add("Low-grade Fever", deg, Severity.WARNING)

    if status_override == "critical" and level < EscalationLevel.CRITICAL:
        level = EscalationLevel.CRITICAL

    return level, tuple(alerts)


def select_protocol(alerts: Iterable[AlertFact], reading: Any) -> Protocol | None:
    """Pick a protocol by priority: cardiac, then respiratory, then sepsis."""
    alerts = list(alerts)
    if not alerts:
        return None
    if any("Tachycardia" in a.kind or "Bradycardia" in a.kind for a in alerts):
        return PROTOCOLS["cardiac"]
    if any("Hypox" in a.kind or "SpO2" in a.kind for a in alerts):
        return PROTOCOLS["respiratory"]
    vitals = _vitals_of(reading)
    if vitals is not None:
        hr, _, temp = vitals
        if hr > 110 and temp > 38:
            return PROTOCOLS["sepsis"]
    return None


@dataclass
class _EscalationRecord:
    thresholds: EscalationThresholds
    timeline: deque[TimelineEntry]
    notifications: deque[Notification]
    level: EscalationLevel = EscalationLevel.NORMAL
    active_alerts: tuple[AlertFact, ...] = ()
    protocol: Protocol | None = None
    countdown: int | None = None
    acknowledged: bool = False

    def freeze(self) -> EscalationSnapshot:
        return EscalationSnapshot(
            level=self.level,
            active_alerts=self.active_alerts,
            protocol=self.protocol,
            countdown=self.countdown,
            acknowledged=self.acknowledged,
            timeline=tuple(self.timeline),
            notifications=tuple(self.notifications),
        )


class EscalationEngine:
    """
    Owns one escalation record per registered patient.

    Notification handlers are called for every page sent; a failing handler
    is logged and skipped so one bad integration cannot stall escalation.
    """

    def __init__(
        self,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        timeline_capacity: int = DEFAULT_TIMELINE_CAPACITY,
        notification_capacity: int = DEFAULT_NOTIFICATION_CAPACITY,
        handlers: list[NotificationHandler] | None = None,
    ) -> None:
        if countdown_seconds <= 0:
            raise ValueError("Countdown must be positive")
        self.countdown_seconds = countdown_seconds
        self.timeline_capacity = timeline_capacity
        self.notification_capacity = notification_capacity
        self.handlers: list[NotificationHandler] = list(handlers or [])
        self._records: dict[str, _EscalationRecord] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="escalation_engine")

    def register(self, patient_id: str, thresholds: EscalationThresholds | None = None) -> None:
        with self._lock:
            if patient_id in self._records:
                return
            self._records[patient_id] = _EscalationRecord(
                thresholds=thresholds or EscalationThresholds(),
                timeline=deque(maxlen=self.timeline_capacity),
                notifications=deque(maxlen=self.notification_capacity),
            )

    def add_handler(self, handler: NotificationHandler) -> None:
        self.handlers.append(handler)

    def evaluate(
        self,
        patient_id: str,
        reading: Any,
        status_override: PatientStatus | str | None = None,
    ) -> EscalationTransition:
        """Re-evaluate one patient against its latest reading."""
        with self._lock:
            record = self._records.get(patient_id)
            if record is None:
                self.logger.warning("unknown_patient_evaluation", patient_id=patient_id)
                return EscalationTransition(
                    patient_id=patient_id,
                    previous_level=EscalationLevel.NORMAL,
                    level=EscalationLevel.NORMAL,
                )

            if _vitals_of(reading) is None:
                self.logger.warning(
                    "malformed_reading",
                    patient_id=patient_id,
                    reading_type=type(reading).__name__,
                )

            level, alerts = compute_level(reading, record.thresholds, status_override)
            previous = record.level
            notifications: tuple[Notification, ...] = ()

            if level != previous:
                direction = "up" if level > previous else "down"
                record.timeline.append(
                    TimelineEntry(
                        direction=direction,
                        level=level,
                        event=(
                            f"Escalation {'raised' if direction == 'up' else 'lowered'}"
                            f" to Level {level.value}"
                        ),
                    )
                )
                if level > previous:
                    notifications = tuple(
                        Notification(patient_id=patient_id, level=level, role=role)
                        for role in RESPONDERS[level]
                    )
                    record.notifications.extend(notifications)
                    record.acknowledged = False
                record.countdown = (
                    self.countdown_seconds if level >= EscalationLevel.CRITICAL else None
                )
                record.level = level

                self.logger.info(
                    "escalation_changed",
                    patient_id=patient_id,
                    previous_level=previous.value,
                    level=level.value,
                    alerts=[a.kind for a in alerts],
                )

            record.active_alerts = alerts
            record.protocol = select_protocol(alerts, reading)

        self._dispatch(notifications)
        return EscalationTransition(
            patient_id=patient_id,
            previous_level=previous,
            level=level,
            notifications=notifications,
        )

    def tick_countdowns(self, seconds: int = 1) -> list[str]:
        """
        Advance every active response countdown.

        Returns the ids of patients whose countdown ran out on this tick.
        """
        expired = []
        with self._lock:
            for patient_id, record in self._records.items():
                if record.countdown is None:
                    continue
                record.countdown -= seconds
                if record.countdown <= 0:
                    record.countdown = None
                    record.timeline.append(
                        TimelineEntry(
                            direction="expired",
                            level=record.level,
                            event=f"Response window elapsed at Level {record.level.value}",
                        )
                    )
                    expired.append(patient_id)

        for patient_id in expired:
            self.logger.warning("response_window_expired", patient_id=patient_id)
        return expired

    def acknowledge(self, patient_id: str) -> bool:
        """Mark the current escalation as acknowledged; repeated calls are no-ops."""
        with self._lock:
            record = self._records.get(patient_id)
            if record is None:
                self.logger.warning("unknown_patient_acknowledge", patient_id=patient_id)
                return False
            if record.acknowledged:
                return True
            record.acknowledged = True
            record.timeline.append(
                TimelineEntry(
                    direction="ack",
                    level=record.level,
                    event="Alert acknowledged by staff",
                )
            )
            level = record.level

        self.logger.info("escalation_acknowledged", patient_id=patient_id, level=level.value)
        return True

    def state(self, patient_id: str) -> EscalationSnapshot | None:
        with self._lock:
            record = self._records.get(patient_id)
            return record.freeze() if record is not None else None

    def _dispatch(self, notifications: Iterable[Notification]) -> None:
        for notification in notifications:
            for handler in self.handlers:
                try:
                    handler(notification)
                except Exception as e:
                    self.logger.error(
                        "notification_dispatch_failed",
                        error=str(e),
                        patient_id=notification.patient_id,
                        role=notification.role,
                    )
