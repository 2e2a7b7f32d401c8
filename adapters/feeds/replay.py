"""
Replay of recorded vitals through the VitalsSource protocol.

Stands in for a real device feed: the scheduler cannot tell a replay from the
simulator. Readings are replayed per patient in recorded order and cycle when
exhausted.
"""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from itertools import cycle
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vitalwatch.domain.models import (
    HEART_RATE_BOUNDS,
    SPO2_BOUNDS,
    TEMPERATURE_BOUNDS,
    Patient,
    VitalReading,
)
from vitalwatch.services.vitals_generator import clamp

logger = structlog.get_logger(__name__)


class RecordedVitals(BaseModel):
    """One recorded row as exported by a bedside monitor."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    heart_rate: int = Field(ge=0, le=300)
    spo2: int = Field(ge=0, le=100)
    temperature: float = Field(ge=25.0, le=45.0)


class ReplayReadingSource:
    """Replays recorded rows; unknown patients raise LookupError."""

    def __init__(self, recordings: Mapping[str, list[RecordedVitals]]) -> None:
        self.source_name = "replay"
        self._counts = {pid: len(rows) for pid, rows in recordings.items() if rows}
        self._iterators = {pid: cycle(rows) for pid, rows in recordings.items() if rows}
        self.logger = logger.bind(source=self.source_name)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "ReplayReadingSource":
        """Build a replay from flat dict rows; malformed rows raise ValueError."""
        recordings: dict[str, list[RecordedVitals]] = {}
        for index, row in enumerate(records):
            try:
                recorded = RecordedVitals.model_validate(row)
            except ValidationError as e:
                raise ValueError(f"Malformed vitals record at row {index}: {e}") from e
            recordings.setdefault(recorded.patient_id, []).append(recorded)
        return cls(recordings)

    def patient_ids(self) -> list[str]:
        return list(self._iterators)

    def generate(
        self, patient: Patient, previous_reading: VitalReading | None = None
    ) -> VitalReading:
        iterator = self._iterators.get(patient.id)
        if iterator is None:
            raise LookupError(f"No recorded vitals for patient {patient.id!r}")

        row = next(iterator)
        self.logger.debug(
            "recorded_vitals_replayed",
            patient_id=patient.id,
            recorded_rows=self._counts[patient.id],
        )
        return VitalReading(
            heart_rate=int(clamp(row.heart_rate, *HEART_RATE_BOUNDS)),
            spo2=int(clamp(row.spo2, *SPO2_BOUNDS)),
            temperature=round(clamp(row.temperature, *TEMPERATURE_BOUNDS), 1),
            timestamp=datetime.now(UTC),
        )
