"""
Threshold classification of a single reading.

Pure functions only: the classifier knows nothing about the simulator, so
simulated and real readings are classified identically. Bad input never
raises; it classifies as normal with no alerts.
"""

from typing import Any

from vitalwatch.domain.models import AlertFact, Classification, PatientStatus, Severity

_STATUS_RANK: dict[PatientStatus, int] = {"normal": 0, "warning": 1, "critical": 2}


def _to_float(x: Any) -> float | None:
    if isinstance(x, bool):
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def classify_heart_rate(hr: Any) -> tuple[PatientStatus, AlertFact | None]:
    value = _to_float(hr)
    if value is None:
        return "normal", None
    shown = f"{value:g} BPM"
    if value > 130:
        return "critical", AlertFact(kind="Tachycardia", value=shown, severity=Severity.CRITICAL)
    if value < 40:
        return "critical", AlertFact(kind="Bradycardia", value=shown, severity=Severity.CRITICAL)
    if value > 110:
        return "warning", AlertFact(
            kind="Elevated Heart Rate", value=shown, severity=Severity.WARNING
        )
    if value < 50:
        return "warning", AlertFact(kind="Low Heart Rate", value=shown, severity=Severity.WARNING)
    return "normal", None


def classify_spo2(spo2: Any) -> tuple[PatientStatus, AlertFact | None]:
    value = _to_float(spo2)
    if value is None:
        return "normal", None
    shown = f"{value:g}%"
    if value < 90:
        return "critical", AlertFact(kind="Hypoxemia", value=shown, severity=Severity.CRITICAL)
    if value < 94:
        return "warning", AlertFact(kind="Low SpO2", value=shown, severity=Severity.WARNING)
    return "normal", None


def classify_temperature(temp: Any) -> tuple[PatientStatus, AlertFact | None]:
    value = _to_float(temp)
    if value is None:
        return "normal", None
    shown = f"{value:.1f}°C"
    if value > 39:
        return "critical", AlertFact(kind="Hyperthermia", value=shown, severity=Severity.CRITICAL)
    if value < 35:
        return "critical", AlertFact(kind="Hypothermia", value=shown, severity=Severity.CRITICAL)
    if value > 38.5:
        return "warning", AlertFact(kind="Fever", value=shown, severity=Severity.WARNING)
    if value < 35.5:
        return "warning", AlertFact(
            kind="Low Temperature", value=shown, severity=Severity.WARNING
        )
    return "normal", None


def worst_status(statuses: list[PatientStatus]) -> PatientStatus:
    """Most severe wins: critical > warning > normal."""
    return max(statuses, key=_STATUS_RANK.__getitem__, default="normal")


def classify(reading: Any) -> Classification:
    """
    Classify a reading-like object with heart_rate/spo2/temperature attributes.

    Missing or non-numeric attributes contribute nothing.
    """
    results = [
        classify_heart_rate(getattr(reading, "heart_rate", None)),
        classify_spo2(getattr(reading, "spo2", None)),
        classify_temperature(getattr(reading, "temperature", None)),
    ]
    return Classification(
        status=worst_status([status for status, _ in results]),
        alerts=tuple(alert for _, alert in results if alert is not None),
    )
