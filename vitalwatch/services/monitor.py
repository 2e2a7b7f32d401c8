"""
The monitoring core as seen by its collaborators (UI, transport, storage).

Wires registry, generator, store, classifier, escalation engine, logs and
scheduler together, and exposes only snapshot-style reads. Any transport
(WebSocket push, REST poll) is a thin adapter over ``snapshot`` and
``get_system_log``.
"""

import random

import structlog

from vitalwatch.config import AppConfig, get_config
from vitalwatch.domain.models import (
    EscalationSnapshot,
    EventLogEntry,
    HistorySnapshot,
    Patient,
    PatientLogEntry,
    Snapshot,
    TickReport,
)
from vitalwatch.services.escalation import EscalationEngine, NotificationHandler
from vitalwatch.services.event_log import EventLogger
from vitalwatch.services.registry import PatientRegistry
from vitalwatch.services.scenario_generator import ScenarioVitalsGenerator
from vitalwatch.services.scheduler import Scheduler, SchedulerConfig
from vitalwatch.services.state_store import PatientStateStore
from vitalwatch.services.vitals_generator import VitalsGenerator, VitalsSource

logger = structlog.get_logger(__name__)


class MonitoringCore:
    """
    Main service that owns one monitoring session.

    This combines:
    - Patient registry and the reading source (simulator or real feed)
    - Per-patient state store and escalation engine
    - System and patient event logs
    - The periodic scheduler
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        source: VitalsSource | None = None,
        rng: random.Random | None = None,
        notification_handlers: list[NotificationHandler] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="monitoring_core")

        if source is None and not self.config.simulator.enabled:
            raise ValueError("Simulator is disabled; pass a reading source")
        engine_config = self.config.engine
        self.rng = rng or random.Random(self.config.simulator.seed)

        self.registry = PatientRegistry()
        self.store = PatientStateStore(history_capacity=engine_config.history_capacity)
        self.engine = EscalationEngine(
            countdown_seconds=engine_config.countdown_seconds,
            timeline_capacity=engine_config.timeline_capacity,
            handlers=notification_handlers,
        )
        self.event_log = EventLogger(capacity=engine_config.log_capacity)
        self.source: VitalsSource = source or self._build_simulator()
        self.scheduler = Scheduler(
            registry=self.registry,
            store=self.store,
            engine=self.engine,
            event_log=self.event_log,
            source=self.source,
            config=SchedulerConfig(interval_seconds=engine_config.tick_interval_seconds),
            rng=self.rng,
        )
        self.logger.info(
            "monitoring_core_initialized",
            source_type=type(self.source).__name__,
            history_capacity=engine_config.history_capacity,
        )

    def register_patient(self, patient: Patient) -> None:
        # visible to the scheduler only once its store and escalation slots exist
        self.store.register(patient.id)
        self.engine.register(patient.id, patient.escalation_thresholds)
        self.registry.register(patient)

    def _build_simulator(self) -> VitalsSource:
        if self.config.simulator.mode == "scenario":
            return ScenarioVitalsGenerator(rng=self.rng)
        return VitalsGenerator(rng=self.rng)

    def list_patients(self) -> list[Patient]:
        return self.registry.list_patients()

    def snapshot(self, patient_id: str) -> Snapshot | None:
        """Immutable view of one patient, or None (with a warning) if unknown."""
        patient = self.registry.get(patient_id)
        stored = self.store.snapshot(patient_id)
        escalation = self.engine.state(patient_id)
        if patient is None or stored is None:
            self.logger.warning("unknown_patient_snapshot", patient_id=patient_id)
            return None
        return Snapshot(
            patient=patient,
            reading=stored.reading,
            history=stored.history,
            escalation=escalation or EscalationSnapshot(),
        )

    def snapshot_all(self) -> dict[str, Snapshot]:
        snapshots = {}
        for patient in self.registry.list_patients():
            snap = self.snapshot(patient.id)
            if snap is not None:
                snapshots[patient.id] = snap
        return snapshots

    def history(self, patient_id: str) -> HistorySnapshot | None:
        stored = self.store.snapshot(patient_id)
        return stored.history if stored else None

    def acknowledge(self, patient_id: str) -> bool:
        before = self.engine.state(patient_id)
        acknowledged = self.engine.acknowledge(patient_id)
        if acknowledged and before is not None and not before.acknowledged:
            patient = self.registry.get(patient_id)
            name = patient.name if patient else patient_id
            self.event_log.record_system_event("info", f"{name}: alert acknowledged")
        return acknowledged

    def get_system_log(self) -> tuple[EventLogEntry, ...]:
        return self.event_log.get_system_log()

    def get_patient_log(self, patient_id: str) -> tuple[PatientLogEntry, ...]:
        return self.event_log.get_patient_log(patient_id)

    def tick(self) -> TickReport:
        return self.scheduler.tick()

    def tick_countdowns(self, seconds: int = 1) -> list[str]:
        return self.engine.tick_countdowns(seconds)

    def start(self, interval_ms: int | None = None) -> None:
        self.scheduler.start(interval_ms)

    async def stop(self) -> None:
        await self.scheduler.stop()
