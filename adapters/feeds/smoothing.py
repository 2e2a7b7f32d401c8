"""
Moving-average filter over any VitalsSource.

Mirrors the noise filter an edge gateway applies before forwarding device
readings: each vital is averaged over the last few samples per patient.
"""

import threading
from collections import deque
from dataclasses import dataclass, field

import structlog

from vitalwatch.domain.models import Patient, VitalReading
from vitalwatch.services.vitals_generator import VitalsSource

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW = 5


@dataclass
class _Window:
    heart_rate: deque[float] = field(default_factory=deque)
    spo2: deque[float] = field(default_factory=deque)
    temperature: deque[float] = field(default_factory=deque)


def _mean(values: deque[float]) -> float:
    return sum(values) / len(values)


class MovingAverageSource:
    """
    Wraps another source and smooths its output.

    The inner source's self-reported status and alerts pass through
    unchanged; only the three vitals are averaged.
    """

    def __init__(self, inner: VitalsSource, window: int = DEFAULT_WINDOW) -> None:
        if window <= 0:
            raise ValueError("Window must be positive")
        self.inner = inner
        self.window = window
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(source="moving_average", window=window)

    def generate(
        self, patient: Patient, previous_reading: VitalReading | None = None
    ) -> VitalReading:
        raw = self.inner.generate(patient, previous_reading)
        with self._lock:
            window = self._windows.get(patient.id)
            if window is None:
                window = self._windows[patient.id] = _Window(
                    heart_rate=deque(maxlen=self.window),
                    spo2=deque(maxlen=self.window),
                    temperature=deque(maxlen=self.window),
                )
            window.heart_rate.append(raw.heart_rate)
            window.spo2.append(raw.spo2)
            window.temperature.append(raw.temperature)
            samples = len(window.heart_rate)
            heart_rate = round(_mean(window.heart_rate))
            spo2 = round(_mean(window.spo2))
            temperature = round(_mean(window.temperature), 1)

        self.logger.debug(
            "vitals_smoothed",
            patient_id=patient.id,
            samples=samples,
            raw_heart_rate=raw.heart_rate,
            heart_rate=heart_rate,
        )
        return raw.model_copy(
            update={"heart_rate": heart_rate, "spo2": spo2, "temperature": temperature}
        )

    def reset(self, patient_id: str) -> None:
        with self._lock:
            self._windows.pop(patient_id, None)
