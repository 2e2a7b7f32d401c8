"""Patient registry: the set of patients the scheduler fans out over."""

import threading

import structlog

from vitalwatch.domain.models import Patient

logger = structlog.get_logger(__name__)


class PatientRegistry:
    """Insertion-ordered, thread-safe registry of immutable Patient entries."""

    def __init__(self, patients: list[Patient] | None = None) -> None:
        self._patients: dict[str, Patient] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="patient_registry")
        for patient in patients or []:
            self.register(patient)

    def register(self, patient: Patient) -> None:
        """Add a patient. Re-using an id is a programming error."""
        with self._lock:
            if patient.id in self._patients:
                raise ValueError(f"Patient {patient.id!r} is already registered")
            self._patients[patient.id] = patient
        self.logger.info(
            "patient_registered",
            patient_id=patient.id,
            condition=patient.condition_profile,
        )

    def get(self, patient_id: str) -> Patient | None:
        with self._lock:
            return self._patients.get(patient_id)

    def list_patients(self) -> list[Patient]:
        with self._lock:
            return list(self._patients.values())

    def __contains__(self, patient_id: object) -> bool:
        with self._lock:
            return patient_id in self._patients

    def __len__(self) -> int:
        with self._lock:
            return len(self._patients)
