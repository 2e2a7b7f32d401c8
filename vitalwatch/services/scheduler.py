"""
Periodic driver for the monitoring pipeline.

``tick()`` is a plain synchronous step so tests can drive the whole state
machine without waiting on a clock. ``start()``/``stop()`` wrap it in two
asyncio tasks: the tick loop and a one-second countdown clock.

Per patient the order is fixed: generate, store, classify, escalate, log.
A failure in one patient's pipeline is logged and recorded as a system event;
the remaining patients still run.
"""

import asyncio
import random
import time
from collections.abc import AsyncIterator
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from vitalwatch.domain.models import EscalationTransition, Patient, TickReport, VitalReading
from vitalwatch.services.classifier import classify, worst_status
from vitalwatch.services.escalation import EscalationEngine
from vitalwatch.services.event_log import EventLogger
from vitalwatch.services.registry import PatientRegistry
from vitalwatch.services.state_store import PatientStateStore
from vitalwatch.services.vitals_generator import VitalsSource

logger = structlog.get_logger(__name__)


def _validated_reading(raw: Any) -> VitalReading | None:
    """Re-validate source output; None if any vital is missing or malformed."""
    try:
        if isinstance(raw, VitalReading):
            return VitalReading.model_validate(dict(raw))
        return VitalReading.model_validate(raw, from_attributes=True)
    except ValidationError:
        return None


class SchedulerConfig(BaseModel):
    """Timing configuration with validation and smart defaults."""

    interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Interval between ticks in seconds.",
    )
    countdown_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Wall-clock length of one countdown second.",
    )


class Scheduler:
    """
    Fans one tick out across every registered patient.

    Design principles:
    - Graceful degradation (one patient failing never aborts a tick)
    - Observable (structured logging per tick)
    - Cooperative cancellation (an in-flight tick always completes)
    """

    def __init__(
        self,
        registry: PatientRegistry,
        store: PatientStateStore,
        engine: EscalationEngine,
        event_log: EventLogger,
        source: VitalsSource,
        config: SchedulerConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.engine = engine
        self.event_log = event_log
        self.source = source
        self.config = config or SchedulerConfig()
        self.rng = rng or random.Random()
        self.logger = logger.bind(component="scheduler")

        self.tick_count = 0
        self.readings_processed = 0
        self.last_report: TickReport | None = None

        self._is_running = False
        self._stop_event: asyncio.Event | None = None
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return self._is_running

    def tick(self) -> TickReport:
        """Run one pipeline pass over all registered patients."""
        start_time = time.perf_counter()
        processed = 0
        failed: list[str] = []
        transitions: list[EscalationTransition] = []

        for patient in self.registry.list_patients():
            try:
                transition = self._process_patient(patient)
            except Exception as e:
                self.logger.exception(
                    "patient_pipeline_failed", patient_id=patient.id, error=str(e)
                )
                self.event_log.record_system_event(
                    "warning", f"Processing failed for {patient.name}: {e}"
                )
                failed.append(patient.id)
                continue

            processed += 1
            if transition.changed:
                transitions.append(transition)
                self._record_transition(patient, transition)

        self.tick_count += 1
        self.readings_processed += processed
        duration = time.perf_counter() - start_time

        report = TickReport(
            tick=self.tick_count,
            processed=processed,
            failed=tuple(failed),
            transitions=tuple(transitions),
            latency_ms=self.rng.randint(10, 60),
            duration_seconds=duration,
        )
        self.last_report = report

        self.logger.info(
            "tick_completed",
            tick=report.tick,
            processed=processed,
            failed=len(failed),
            transitions=len(transitions),
            duration_seconds=round(duration, 4),
        )
        return report

    def _process_patient(self, patient: Patient) -> EscalationTransition:
        previous = self.store.reading(patient.id)
        raw = self.source.generate(patient, previous)
        reading = _validated_reading(raw)
        if reading is None:
            # store and patient log are left untouched; escalation sees no alerts
            self.logger.warning(
                "malformed_reading_dropped",
                patient_id=patient.id,
                reading_type=type(raw).__name__,
            )
            return self.engine.evaluate(patient.id, None)

        self.store.update(patient.id, reading)

        classification = classify(reading)
        override = worst_status([classification.status, reading.source_status or "normal"])
        transition = self.engine.evaluate(patient.id, reading, status_override=override)

        self.event_log.record_vitals(patient.id, reading, previous)
        return transition

    def _record_transition(self, patient: Patient, transition: EscalationTransition) -> None:
        state = self.engine.state(patient.id)
        alert_names = ", ".join(a.kind for a in state.active_alerts) if state else ""
        suffix = f" ({alert_names})" if alert_names else ""

        if transition.escalated:
            event_type = "critical" if transition.level >= 3 else "warning"
            self.event_log.record_system_event(
                event_type,
                f"{patient.name}: escalation raised to Level {transition.level.value}{suffix}",
            )
            for notification in transition.notifications:
                self.event_log.record_system_event(
                    "info", f"{patient.name}: notified {notification.role}"
                )
        else:
            self.event_log.record_system_event(
                "info",
                f"{patient.name}: escalation lowered to Level {transition.level.value}",
            )

    async def run(self, max_ticks: int | None = None) -> AsyncIterator[TickReport]:
        """
        Tick continuously, yielding each report.

        Stops after ``max_ticks`` or once ``stop()`` is requested.
        """
        if self._stop_event is None or (not self._tasks and self._stop_event.is_set()):
            self._stop_event = asyncio.Event()
        self._is_running = True
        ticks = 0

        try:
            while self._is_running and not self._stop_event.is_set():
                tick_start_time = time.perf_counter()
                yield self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break

                elapsed_time = time.perf_counter() - tick_start_time
                sleep_time = max(0.0, self.config.interval_seconds - elapsed_time)
                if sleep_time == 0:
                    self.logger.warning(
                        "tick_slower_than_interval",
                        elapsed_seconds=round(elapsed_time, 3),
                        interval_seconds=self.config.interval_seconds,
                    )
                if await self._wait_for_stop(sleep_time):
                    break
        finally:
            self._is_running = False

    async def _tick_loop(self) -> None:
        async for _ in self.run():
            pass

    async def _countdown_clock(self) -> None:
        while not await self._wait_for_stop(self.config.countdown_interval_seconds):
            self.engine.tick_countdowns(1)

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout``; True if stop was requested meanwhile."""
        if self._stop_event is None:
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    def start(self, interval_ms: int | None = None) -> None:
        """Begin periodic ticking on the running event loop."""
        if self._tasks:
            self.logger.warning("scheduler_already_running")
            return
        if interval_ms is not None:
            self.config = self.config.model_copy(update={"interval_seconds": interval_ms / 1000})

        self._stop_event = asyncio.Event()
        self._is_running = True
        self._tasks = [
            asyncio.create_task(self._tick_loop(), name="vitalwatch-ticks"),
            asyncio.create_task(self._countdown_clock(), name="vitalwatch-countdown"),
        ]
        patient_count = len(self.registry)
        self.event_log.record_system_event("info", "Multi-patient simulator started")
        self.event_log.record_system_event("info", f"Tracking {patient_count} patients")
        self.logger.info(
            "scheduler_started",
            interval_seconds=self.config.interval_seconds,
            patients=patient_count,
        )

    async def stop(self) -> None:
        """Cooperative stop: the current tick finishes, the next never starts."""
        if not self._tasks:
            return
        self._is_running = False
        if self._stop_event is not None:
            self._stop_event.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        self.event_log.record_system_event("info", "Multi-patient simulator stopped")
        self.logger.info("scheduler_stopped", ticks=self.tick_count)
