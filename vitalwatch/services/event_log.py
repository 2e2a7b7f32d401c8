"""
Append-only bounded logs: one system-wide, one per patient.

Entries are kept in insertion order; consumers reverse them for
most-recent-first display.
"""

import threading
from collections import deque

import structlog

from vitalwatch.domain.models import EventLogEntry, PatientLogEntry, Severity, VitalReading

logger = structlog.get_logger(__name__)

DEFAULT_LOG_CAPACITY = 50


def _vital(reading: VitalReading | None, name: str) -> float | None:
    """Numeric value of one vital, or None when absent or malformed."""
    value = getattr(reading, name, None)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


class EventLogger:
    """Owns the system event log and the per-patient vital-change logs."""

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("Log capacity must be positive")
        self.capacity = capacity
        self._system: deque[EventLogEntry] = deque(maxlen=capacity)
        self._patients: dict[str, deque[PatientLogEntry]] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="event_logger")

    def record_system_event(self, type: str, message: str) -> EventLogEntry:
        entry = EventLogEntry(type=type, message=message)
        with self._lock:
            self._system.append(entry)
        self.logger.info("system_event", event_type=type, message=message)
        return entry

    def record_patient_event(
        self,
        patient_id: str,
        type: str,
        vital: str | None,
        message: str,
        value: str | None = None,
        severity: Severity | str | None = None,
    ) -> PatientLogEntry:
        entry = PatientLogEntry(
            type=type,
            vital=vital,
            message=message,
            value=value,
            severity=Severity(severity) if severity is not None else None,
        )
        with self._lock:
            log = self._patients.get(patient_id)
            if log is None:
                log = self._patients[patient_id] = deque(maxlen=self.capacity)
            log.append(entry)
        return entry

    def record_vitals(
        self,
        patient_id: str,
        reading: VitalReading,
        previous: VitalReading | None = None,
    ) -> list[PatientLogEntry]:
        """
        Log notable vital changes for one patient.

        Abnormal values are always logged; normal heart rate and SpO2 are
        logged on the first reading or when they moved noticeably.
        """
        entries = []
        hr = _vital(reading, "heart_rate")
        sp = _vital(reading, "spo2")
        temp = _vital(reading, "temperature")
        prev_hr = _vital(previous, "heart_rate")
        prev_sp = _vital(previous, "spo2")

        # a missing or non-numeric vital is skipped; the others still log
        if hr is not None:
            if hr > 130:
                entries.append(("vitals", "HR", "Tachycardia detected", f"{hr} BPM", "critical"))
            elif hr > 120:
                entries.append(("vitals", "HR", "Elevated heart rate", f"{hr} BPM", "warning"))
            elif hr < 60:
                entries.append(("vitals", "HR", "Bradycardia detected", f"{hr} BPM", "warning"))
            elif prev_hr is None or abs(hr - prev_hr) > 15:
                entries.append(("vitals", "HR", "Heart rate recorded", f"{hr} BPM", "normal"))

        if sp is not None:
            if sp < 90:
                entries.append(("spo2", "SpO2", "Critical hypoxemia", f"{sp}%", "critical"))
            elif sp < 94:
                entries.append(("spo2", "SpO2", "Low oxygen saturation", f"{sp}%", "warning"))
            elif prev_sp is None or abs(sp - prev_sp) > 3:
                entries.append(("spo2", "SpO2", "Oxygen level recorded", f"{sp}%", "normal"))

        if temp is not None:
            if temp > 39:
                entries.append(("temp", "Temp", "High fever detected", f"{temp:.1f}°C", "critical"))
            elif temp > 38.5:
                entries.append(("temp", "Temp", "Elevated temperature", f"{temp:.1f}°C", "warning"))
            elif temp < 35.5:
                entries.append(("temp", "Temp", "Hypothermia warning", f"{temp:.1f}°C", "warning"))

        return [
            self.record_patient_event(patient_id, type, vital, message, value, severity)
            for type, vital, message, value, severity in entries
        ]

    def get_system_log(self) -> tuple[EventLogEntry, ...]:
        with self._lock:
            return tuple(self._system)

    def get_patient_log(self, patient_id: str) -> tuple[PatientLogEntry, ...]:
        with self._lock:
            return tuple(self._patients.get(patient_id, ()))
