"""
Tests for the bounded system and per-patient event logs.
"""

import pytest
from pydantic import ValidationError

from vitalwatch.domain.models import Severity, VitalReading
from vitalwatch.services.event_log import EventLogger


def reading(hr=80, spo2=98, temp=36.8) -> VitalReading:
    return VitalReading(heart_rate=hr, spo2=spo2, temperature=temp)


@pytest.fixture
def log() -> EventLogger:
    return EventLogger(capacity=50)


class TestSystemLog:
    def test_keeps_insertion_order(self, log: EventLogger) -> None:
        log.record_system_event("info", "first")
        log.record_system_event("warning", "second")
        assert [e.message for e in log.get_system_log()] == ["first", "second"]

    def test_capacity_drops_oldest(self, log: EventLogger) -> None:
        for i in range(55):
            log.record_system_event("info", f"event {i}")
        entries = log.get_system_log()
        assert len(entries) == 50
        assert entries[0].message == "event 5"
        assert entries[-1].message == "event 54"

    def test_entries_are_immutable(self, log: EventLogger) -> None:
        entry = log.record_system_event("info", "hello")
        with pytest.raises(ValidationError):
            entry.message = "changed"

    def test_read_returns_a_copy(self, log: EventLogger) -> None:
        log.record_system_event("info", "one")
        before = log.get_system_log()
        log.record_system_event("info", "two")
        assert len(before) == 1

    def test_non_positive_capacity_rejected(self) -> None:
        with pytest.raises(ValueError):
            EventLogger(capacity=0)


class TestPatientLog:
    def test_logs_are_per_patient(self, log: EventLogger) -> None:
        log.record_patient_event("p-1", "vitals", "HR", "Heart rate recorded", "80 BPM", "normal")
        assert len(log.get_patient_log("p-1")) == 1
        assert log.get_patient_log("p-2") == ()

    def test_severity_is_normalised(self, log: EventLogger) -> None:
        entry = log.record_patient_event("p-1", "temp", "Temp", "High fever", severity="critical")
        assert entry.severity == Severity.CRITICAL

    def test_unknown_severity_rejected(self, log: EventLogger) -> None:
        with pytest.raises(ValueError):
            log.record_patient_event("p-1", "temp", "Temp", "High fever", severity="dire")

    def test_capacity_per_patient(self, log: EventLogger) -> None:
        for i in range(60):
            log.record_patient_event("p-1", "vitals", "HR", f"entry {i}")
        log.record_patient_event("p-2", "vitals", "HR", "only")
        assert len(log.get_patient_log("p-1")) == 50
        assert len(log.get_patient_log("p-2")) == 1


class TestRecordVitals:
    def messages(self, log: EventLogger, patient_id: str = "p-1") -> list[tuple]:
        return [(e.vital, e.message, e.severity) for e in log.get_patient_log(patient_id)]

    def test_first_normal_reading_records_hr_and_spo2(self, log: EventLogger) -> None:
        log.record_vitals("p-1", reading())
        assert self.messages(log) == [
            ("HR", "Heart rate recorded", Severity.NORMAL),
            ("SpO2", "Oxygen level recorded", Severity.NORMAL),
        ]

    def test_stable_normal_reading_is_not_logged(self, log: EventLogger) -> None:
        assert log.record_vitals("p-1", reading(hr=90, spo2=97), previous=reading()) == []

    def test_large_changes_are_logged(self, log: EventLogger) -> None:
        entries = log.record_vitals("p-1", reading(hr=96, spo2=94), previous=reading())
        assert [e.message for e in entries] == ["Heart rate recorded", "Oxygen level recorded"]

    def test_change_at_limit_is_not_logged(self, log: EventLogger) -> None:
        assert log.record_vitals("p-1", reading(hr=95, spo2=95), previous=reading()) == []

    @pytest.mark.parametrize(
        "vitals, expected",
        [
            ({"hr": 135}, ("HR", "Tachycardia detected", "135 BPM", Severity.CRITICAL)),
            ({"hr": 125}, ("HR", "Elevated heart rate", "125 BPM", Severity.WARNING)),
            ({"hr": 55}, ("HR", "Bradycardia detected", "55 BPM", Severity.WARNING)),
            ({"spo2": 88}, ("SpO2", "Critical hypoxemia", "88%", Severity.CRITICAL)),
            ({"spo2": 92}, ("SpO2", "Low oxygen saturation", "92%", Severity.WARNING)),
            ({"temp": 39.5}, ("Temp", "High fever detected", "39.5°C", Severity.CRITICAL)),
            ({"temp": 38.8}, ("Temp", "Elevated temperature", "38.8°C", Severity.WARNING)),
            ({"temp": 35.4}, ("Temp", "Hypothermia warning", "35.4°C", Severity.WARNING)),
        ],
    )
    def test_abnormal_values_always_logged(self, log: EventLogger, vitals, expected) -> None:
        current = reading(**vitals)
        entries = log.record_vitals("p-1", current, previous=current)
        assert [(e.vital, e.message, e.value, e.severity) for e in entries] == [expected]

    def test_normal_temperature_never_logged(self, log: EventLogger) -> None:
        entries = log.record_vitals("p-1", reading(temp=37.0))
        assert all(e.vital != "Temp" for e in entries)

    def test_missing_vital_is_skipped(self, log: EventLogger) -> None:
        broken = VitalReading.model_construct(heart_rate=135, spo2=None, temperature=36.8)
        entries = log.record_vitals("p-1", broken)
        assert [(e.vital, e.message) for e in entries] == [("HR", "Tachycardia detected")]

    def test_malformed_previous_counts_as_first_reading(self, log: EventLogger) -> None:
        previous = VitalReading.model_construct(heart_rate="fast", spo2=98, temperature=36.8)
        entries = log.record_vitals("p-1", reading(), previous=previous)
        assert [e.message for e in entries] == ["Heart rate recorded"]
