"""
Latest reading and bounded history per patient.

Writers and readers share one lock per patient slot, so a reader never sees a
new reading without its history entry. Reads return frozen copies.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from vitalwatch.domain.models import HistorySnapshot, StoredState, VitalReading

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_CAPACITY = 60


@dataclass
class HistoryBuffer:
    """Four parallel ring buffers that always grow and evict together."""

    capacity: int = DEFAULT_HISTORY_CAPACITY
    timestamps: deque[datetime] = field(init=False)
    heart_rate: deque[int] = field(init=False)
    spo2: deque[int] = field(init=False)
    temperature: deque[float] = field(init=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("History capacity must be positive")
        self.timestamps = deque(maxlen=self.capacity)
        self.heart_rate = deque(maxlen=self.capacity)
        self.spo2 = deque(maxlen=self.capacity)
        self.temperature = deque(maxlen=self.capacity)

    def append(self, reading: VitalReading) -> None:
        # every field is read before any series grows
        timestamp, heart_rate, spo2, temperature = (
            reading.timestamp,
            reading.heart_rate,
            reading.spo2,
            reading.temperature,
        )
        self.timestamps.append(timestamp)
        self.heart_rate.append(heart_rate)
        self.spo2.append(spo2)
        self.temperature.append(temperature)

    def __len__(self) -> int:
        return len(self.timestamps)

    def freeze(self) -> HistorySnapshot:
        return HistorySnapshot(
            timestamps=tuple(self.timestamps),
            heart_rate=tuple(self.heart_rate),
            spo2=tuple(self.spo2),
            temperature=tuple(self.temperature),
        )


@dataclass
class _PatientSlot:
    history: HistoryBuffer
    reading: VitalReading | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)


class PatientStateStore:
    """Owns every patient's VitalReading and HistoryBuffer."""

    def __init__(self, history_capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if history_capacity <= 0:
            raise ValueError("History capacity must be positive")
        self.history_capacity = history_capacity
        self._slots: dict[str, _PatientSlot] = {}
        self._registry_lock = threading.Lock()
        self.logger = logger.bind(component="patient_state_store")

    def register(self, patient_id: str) -> None:
        """Create an empty slot; registering twice keeps the existing data."""
        with self._registry_lock:
            if patient_id not in self._slots:
                self._slots[patient_id] = _PatientSlot(
                    history=HistoryBuffer(capacity=self.history_capacity)
                )

    def __contains__(self, patient_id: object) -> bool:
        return patient_id in self._slots

    def update(self, patient_id: str, reading: VitalReading) -> bool:
        """
        Replace the current reading and append it to history.

        Returns False (and logs a warning) for an unknown patient.
        """
        slot = self._slots.get(patient_id)
        if slot is None:
            self.logger.warning("unknown_patient_update", patient_id=patient_id)
            return False

        with slot.lock:
            slot.history.append(reading)
            slot.reading = reading
        return True

    def reading(self, patient_id: str) -> VitalReading | None:
        slot = self._slots.get(patient_id)
        if slot is None:
            return None
        with slot.lock:
            return slot.reading

    def snapshot(self, patient_id: str) -> StoredState | None:
        slot = self._slots.get(patient_id)
        if slot is None:
            return None
        with slot.lock:
            return StoredState(reading=slot.reading, history=slot.history.freeze())

    def snapshot_all(self) -> dict[str, StoredState]:
        with self._registry_lock:
            patient_ids = list(self._slots)
        snapshots = {}
        for patient_id in patient_ids:
            state = self.snapshot(patient_id)
            if state is not None:
                snapshots[patient_id] = state
        return snapshots
