"""
Scenario-driven vitals simulation.

Unlike ``VitalsGenerator``, which draws an independent episode on every
tick, this source walks each patient through a short list of clinical
scenarios (stable, mild stress, recovery, ...). Vitals drift toward the
active scenario's targets, so consecutive readings look like a real
monitor trace rather than noise.
"""

import math
import random
import threading
from dataclasses import dataclass

import structlog
from pydantic import BaseModel, ConfigDict, Field

from vitalwatch.domain.models import (
    ConditionProfile,
    Patient,
    PatientStatus,
    VitalReading,
    utc_now,
)
from vitalwatch.services.vitals_generator import clamp

logger = structlog.get_logger(__name__)

# Narrower than the domain bounds: scenarios never leave the monitored range
SCENARIO_HEART_RATE_BOUNDS = (50, 160)
SCENARIO_SPO2_BOUNDS = (85, 100)
SCENARIO_TEMPERATURE_BOUNDS = (35.5, 40.0)

HEART_RATE_LERP = 0.03
SPO2_LERP = 0.02
TEMPERATURE_LERP = 0.01

SETTLE_CHANCE = 0.8
STABLE_CHANCE = 0.7
OSCILLATION_SPEED = 0.15


class Scenario(BaseModel):
    """One phase of a patient's course: targets, duration and jitter."""

    model_config = ConfigDict(frozen=True)

    name: str
    duration: int = Field(gt=0, description="Ticks before the next switch")
    heart_rate: float
    spo2: float
    temperature: float
    heart_rate_range: float = Field(ge=0.0)
    spo2_range: float = Field(ge=0.0)
    temperature_range: float = Field(ge=0.0)


def _scenario(name, duration, targets, ranges) -> Scenario:
    hr, spo2, temp = targets
    hr_range, spo2_range, temp_range = ranges
    return Scenario(
        name=name,
        duration=duration,
        heart_rate=hr,
        spo2=spo2,
        temperature=temp,
        heart_rate_range=hr_range,
        spo2_range=spo2_range,
        temperature_range=temp_range,
    )


# First entry is the resting state, last entry the settling one.
SCENARIOS: dict[ConditionProfile, tuple[Scenario, ...]] = {
    ConditionProfile.CARDIAC: (
        _scenario("Stable", 45, (76, 97, 36.7), (2, 0.5, 0.05)),
        _scenario("Slight Elevation", 20, (88, 96, 36.9), (3, 0.5, 0.05)),
        _scenario("Mild Stress", 15, (98, 95, 37.0), (3, 1, 0.1)),
        _scenario("Recovery", 30, (80, 97, 36.8), (2, 0.5, 0.05)),
    ),
    ConditionProfile.TRAUMA: (
        _scenario("Stable", 45, (80, 97, 36.6), (2, 0.5, 0.05)),
        _scenario("Pain Response", 18, (92, 96, 36.8), (3, 0.5, 0.05)),
        _scenario("Elevated", 12, (105, 94, 37.0), (4, 1, 0.1)),
        _scenario("Stabilizing", 35, (82, 97, 36.7), (2, 0.5, 0.05)),
    ),
    ConditionProfile.RESPIRATORY: (
        _scenario("Stable", 40, (74, 96, 36.8), (2, 0.5, 0.05)),
        _scenario("Slight Distress", 20, (82, 94, 37.0), (3, 1, 0.05)),
        _scenario("Mild Hypoxia", 15, (92, 91, 37.1), (3, 1, 0.1)),
        _scenario("Improving", 35, (76, 96, 36.9), (2, 0.5, 0.05)),
    ),
    ConditionProfile.STROKE: (
        _scenario("Stable", 45, (72, 97, 36.7), (2, 0.5, 0.05)),
        _scenario("Slight Change", 20, (82, 96, 36.9), (3, 0.5, 0.05)),
        _scenario("Elevated", 15, (95, 94, 37.2), (4, 1, 0.1)),
        _scenario("Monitoring", 35, (75, 97, 36.8), (2, 0.5, 0.05)),
    ),
}


def scenarios_for(condition: str) -> tuple[Scenario, ...]:
    """Scenario list for a condition; unknown conditions fall back to Cardiac."""
    try:
        return SCENARIOS[ConditionProfile(condition)]
    except ValueError:
        return SCENARIOS[ConditionProfile.CARDIAC]


def lerp(current: float, target: float, speed: float) -> float:
    return current + (target - current) * speed


def scenario_status(
    heart_rate: float, spo2: float, temperature: float
) -> tuple[PatientStatus, tuple[str, ...]]:
    """Status and alert names the scenario monitor reports for one reading."""
    alerts: list[str] = []
    if heart_rate > 120 or spo2 < 90 or temperature > 38.5:
        if heart_rate > 120:
            alerts.append("Tachycardia")
        if spo2 < 90:
            alerts.append("Hypoxemia")
        if temperature > 38.5:
            alerts.append("High Fever")
        return "critical", tuple(alerts)
    if heart_rate > 100 or spo2 < 94 or temperature > 37.8:
        if heart_rate > 100:
            alerts.append("Elevated HR")
        if spo2 < 94:
            alerts.append("Low SpO2")
        if temperature > 37.8:
            alerts.append("Fever")
        return "warning", tuple(alerts)
    return "normal", ()


@dataclass
class _PatientCourse:
    scenario_index: int
    timer: int
    heart_rate: float
    spo2: float
    temperature: float
    phase: int
    ticks: int = 0


class ScenarioVitalsGenerator:
    """
    Per-patient scenario walker.

    Every call advances the patient's scenario timer. When the active
    scenario has run its course the patient usually settles (back to the
    resting or the settling scenario) and otherwise moves on to the next
    one. Tracked vitals are interpolated toward the scenario targets and a
    slow oscillation plus a small random component is added on output.
    """

    def __init__(self, rng: random.Random | None = None, seed: int | None = None) -> None:
        if rng is not None and seed is not None:
            raise ValueError("Pass either rng or seed, not both")
        self.rng = rng if rng is not None else random.Random(seed)
        self._courses: dict[str, _PatientCourse] = {}
        self._lock = threading.Lock()

    def scenario_name(self, patient_id: str, condition: str = "Cardiac") -> str | None:
        """Name of the patient's active scenario, or None before the first reading."""
        with self._lock:
            course = self._courses.get(patient_id)
            if course is None:
                return None
            return scenarios_for(condition)[course.scenario_index].name

    def generate(
        self, patient: Patient, previous_reading: VitalReading | None = None
    ) -> VitalReading:
        scenarios = scenarios_for(patient.condition_profile)
        with self._lock:
            course = self._courses.get(patient.id)
            if course is None:
                course = self._courses[patient.id] = self._start_course(
                    patient, scenarios, previous_reading
                )
            # a profile change can shorten the list
            course.scenario_index %= len(scenarios)

            course.timer += 1
            course.ticks += 1
            if course.timer >= scenarios[course.scenario_index].duration:
                course.timer = 0
                previous_name = scenarios[course.scenario_index].name
                course.scenario_index = self._next_index(course.scenario_index, len(scenarios))
                logger.debug(
                    "scenario_switched",
                    patient_id=patient.id,
                    previous=previous_name,
                    current=scenarios[course.scenario_index].name,
                )

            scenario = scenarios[course.scenario_index]
            course.heart_rate = lerp(course.heart_rate, scenario.heart_rate, HEART_RATE_LERP)
            course.spo2 = lerp(course.spo2, scenario.spo2, SPO2_LERP)
            course.temperature = lerp(course.temperature, scenario.temperature, TEMPERATURE_LERP)

            heart_rate = round(
                clamp(
                    self._vary(course.heart_rate, scenario.heart_rate_range, course, 0),
                    *SCENARIO_HEART_RATE_BOUNDS,
                )
            )
            spo2 = round(
                clamp(
                    self._vary(course.spo2, scenario.spo2_range, course, 10),
                    *SCENARIO_SPO2_BOUNDS,
                )
            )
            temperature = round(
                clamp(
                    self._vary(course.temperature, scenario.temperature_range, course, 20),
                    *SCENARIO_TEMPERATURE_BOUNDS,
                ),
                1,
            )

        status, alerts = scenario_status(heart_rate, spo2, temperature)
        logger.debug(
            "vitals_generated",
            patient_id=patient.id,
            scenario=scenario.name,
            heart_rate=heart_rate,
            spo2=spo2,
            temperature=temperature,
        )
        return VitalReading(
            heart_rate=heart_rate,
            spo2=spo2,
            temperature=temperature,
            timestamp=utc_now(),
            source_status=status,
            source_alerts=alerts,
        )

    def _start_course(
        self,
        patient: Patient,
        scenarios: tuple[Scenario, ...],
        previous_reading: VitalReading | None,
    ) -> _PatientCourse:
        start = scenarios[0]
        course = _PatientCourse(
            scenario_index=0,
            timer=0,
            heart_rate=start.heart_rate,
            spo2=start.spo2,
            temperature=start.temperature,
            phase=ord(patient.id[-1]) if patient.id else 0,
        )
        if previous_reading is not None:
            course.heart_rate = previous_reading.heart_rate
            course.spo2 = previous_reading.spo2
            course.temperature = previous_reading.temperature
        return course

    def _next_index(self, index: int, count: int) -> int:
        if self.rng.random() < SETTLE_CHANCE:
            return 0 if self.rng.random() < STABLE_CHANCE else count - 1
        return (index + 1) % count

    def _vary(self, value: float, spread: float, course: _PatientCourse, offset: int) -> float:
        # slow oscillation keyed on the tick count, plus a small random jitter
        wave = math.sin(course.ticks * OSCILLATION_SPEED + course.phase + offset) * spread * 0.5
        jitter = (self.rng.random() - 0.5) * spread * 0.3
        return value + wave + jitter
