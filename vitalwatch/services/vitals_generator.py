"""
Synthetic vitals generation.

Key patterns:
- Protocol-based dependency injection: anything with a matching ``generate``
  can stand in for the simulator (a replay file, a real device feed)
- Injected random source so every regime boundary is reproducible in tests
"""

import random
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from vitalwatch.domain.models import (
    HEART_RATE_BOUNDS,
    SPO2_BOUNDS,
    TEMPERATURE_BOUNDS,
    ConditionProfile,
    Patient,
    PatientStatus,
    VitalReading,
    utc_now,
)

logger = structlog.get_logger(__name__)

WARNING_REGIME_THRESHOLD = 0.85

CRITICAL_ALERTS = ("High Heart Rate", "Low SpO2")
WARNING_ALERTS = ("Elevated Heart Rate",)


class VitalsSource(Protocol):
    """
    Protocol for anything that produces one reading per patient per tick.

    Why Protocol over ABC: structural typing, so a real sensor feed needs no
    import from this package to be substitutable.
    """

    def generate(
        self, patient: Patient, previous_reading: VitalReading | None = None
    ) -> VitalReading: ...


class ProfileParameters(BaseModel):
    """Baseline vitals and critical-episode probability for one profile."""

    model_config = ConfigDict(frozen=True)

    base_hr: int
    base_spo2: int
    base_temp: float
    critical_chance: float = Field(ge=0.0, le=1.0)


CONDITION_PROFILES: dict[ConditionProfile, ProfileParameters] = {
    ConditionProfile.CARDIAC: ProfileParameters(
        base_hr=95, base_spo2=94, base_temp=37.0, critical_chance=0.08
    ),
    ConditionProfile.TRAUMA: ProfileParameters(
        base_hr=100, base_spo2=95, base_temp=36.8, critical_chance=0.10
    ),
    ConditionProfile.RESPIRATORY: ProfileParameters(
        base_hr=90, base_spo2=92, base_temp=37.2, critical_chance=0.12
    ),
    ConditionProfile.STROKE: ProfileParameters(
        base_hr=85, base_spo2=96, base_temp=36.9, critical_chance=0.06
    ),
}


def profile_for(condition: str) -> ProfileParameters:
    """Look up a condition profile; unknown conditions fall back to Cardiac."""
    try:
        return CONDITION_PROFILES[ConditionProfile(condition)]
    except ValueError:
        return CONDITION_PROFILES[ConditionProfile.CARDIAC]


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class VitalsGenerator:
    """
    Simulated bedside monitor.

    Each call draws one uniform value and picks a regime (critical, warning
    or normal) from it, then draws vitals around the profile baseline.
    Pure with respect to everything except the injected random source.
    """

    def __init__(self, rng: random.Random | None = None, seed: int | None = None) -> None:
        if rng is not None and seed is not None:
            raise ValueError("Pass either rng or seed, not both")
        self.rng = rng if rng is not None else random.Random(seed)

    def generate(
        self, patient: Patient, previous_reading: VitalReading | None = None
    ) -> VitalReading:
        """Produce one reading; ``previous_reading`` is unused by the simulator."""
        profile = profile_for(patient.condition_profile)
        r = self.rng.random()

        status: PatientStatus
        if r > 1 - profile.critical_chance:
            status = "critical"
            alerts: tuple[str, ...] = CRITICAL_ALERTS
            heart_rate = profile.base_hr + self.rng.randint(40, 60)
            spo2 = profile.base_spo2 - self.rng.randint(4, 8)
            temperature = profile.base_temp + self.rng.uniform(2.0, 2.8)
        elif r > WARNING_REGIME_THRESHOLD:
            status = "warning"
            alerts = WARNING_ALERTS
            heart_rate = profile.base_hr + self.rng.randint(25, 40)
            spo2 = profile.base_spo2 - self.rng.randint(0, 3)
            temperature = profile.base_temp + self.rng.uniform(1.0, 1.5)
        else:
            status = "normal"
            alerts = ()
            heart_rate = profile.base_hr + self.rng.randint(-10, 10)
            spo2 = profile.base_spo2 + self.rng.randint(-2, 2)
            temperature = profile.base_temp + self.rng.uniform(-0.3, 0.3)

        reading = VitalReading(
            heart_rate=int(clamp(heart_rate, *HEART_RATE_BOUNDS)),
            spo2=int(clamp(spo2, *SPO2_BOUNDS)),
            temperature=round(clamp(temperature, *TEMPERATURE_BOUNDS), 1),
            timestamp=utc_now(),
            source_status=status,
            source_alerts=alerts,
        )

        logger.debug(
            "vitals_generated",
            patient_id=patient.id,
            regime=status,
            heart_rate=reading.heart_rate,
            spo2=reading.spo2,
            temperature=reading.temperature,
        )
        return reading
