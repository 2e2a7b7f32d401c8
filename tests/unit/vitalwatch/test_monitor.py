"""
Integration tests for the MonitoringCore facade.

These exercise the complete pipeline (generator, store, classifier,
escalation, logs) through the public snapshot API.
"""

import asyncio
import random

import pytest

from vitalwatch.config import AppConfig, EngineConfig, SimulatorConfig
from vitalwatch.domain.models import EscalationLevel, EscalationThresholds, Patient
from vitalwatch.services.classifier import classify
from vitalwatch.services.monitor import MonitoringCore
from vitalwatch.services.scenario_generator import ScenarioVitalsGenerator
from vitalwatch.services.vitals_generator import VitalsGenerator


class ScriptedRandom(random.Random):
    """Seeded Random whose ``random()`` draw is fixed."""

    def __init__(self, r: float) -> None:
        super().__init__(11)
        self.r = r

    def random(self) -> float:
        return self.r


@pytest.fixture
def cardiac() -> Patient:
    return Patient(
        id="AMB-001",
        name="Patient A",
        condition_profile="Cardiac",
        location="Sector 15",
        ambulance="Ambulance 1",
    )


def make_core(r: float = 0.5, **config) -> MonitoringCore:
    return MonitoringCore(AppConfig(**config), rng=ScriptedRandom(r))


class TestRegistration:
    def test_list_patients_in_registration_order(self, cardiac: Patient) -> None:
        core = make_core()
        core.register_patient(cardiac)
        core.register_patient(Patient(id="AMB-002", name="Patient B"))
        assert [p.id for p in core.list_patients()] == ["AMB-001", "AMB-002"]

    def test_duplicate_registration_rejected(self, cardiac: Patient) -> None:
        core = make_core()
        core.register_patient(cardiac)
        with pytest.raises(ValueError):
            core.register_patient(cardiac)

    def test_snapshot_before_first_tick(self, cardiac: Patient) -> None:
        core = make_core()
        core.register_patient(cardiac)
        snap = core.snapshot("AMB-001")

        assert snap.patient == cardiac
        assert snap.reading is None
        assert len(snap.history) == 0
        assert snap.escalation.level == EscalationLevel.NORMAL

    def test_unknown_snapshot_is_none(self) -> None:
        core = make_core()
        assert core.snapshot("missing") is None
        assert core.history("missing") is None

    def test_per_patient_thresholds(self) -> None:
        core = make_core(r=0.5)
        strict = EscalationThresholds(alert_hr_high=0)
        core.register_patient(Patient(id="p-1", name="Strict", escalation_thresholds=strict))
        core.tick()
        assert core.snapshot("p-1").escalation.level >= EscalationLevel.ALERT

    def test_patient_is_listed_only_after_state_exists(
        self, cardiac: Patient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        core = make_core()
        seen: list[tuple[bool, bool]] = []
        register = core.registry.register

        def checking_register(patient: Patient) -> None:
            seen.append((patient.id in core.store, core.engine.state(patient.id) is not None))
            register(patient)

        monkeypatch.setattr(core.registry, "register", checking_register)
        core.register_patient(cardiac)

        assert seen == [(True, True)]
        assert core.snapshot("AMB-001") is not None


class TestSourceSelection:
    def test_regime_simulator_by_default(self) -> None:
        assert isinstance(make_core().source, VitalsGenerator)

    def test_scenario_mode(self, cardiac: Patient) -> None:
        core = make_core(simulator=SimulatorConfig(mode="scenario"))
        core.register_patient(cardiac)
        core.tick()

        assert isinstance(core.source, ScenarioVitalsGenerator)
        assert core.source.scenario_name("AMB-001", "Cardiac") == "Stable"

    def test_disabled_simulator_requires_a_source(self) -> None:
        with pytest.raises(ValueError, match="Simulator is disabled"):
            MonitoringCore(AppConfig(simulator=SimulatorConfig(enabled=False)))

    def test_disabled_simulator_with_injected_source(self, cardiac: Patient) -> None:
        feed = VitalsGenerator(seed=3)
        core = MonitoringCore(AppConfig(simulator=SimulatorConfig(enabled=False)), source=feed)
        core.register_patient(cardiac)
        core.tick()

        assert core.source is feed
        assert core.snapshot("AMB-001").reading is not None


class TestCriticalEpisode:
    def test_cardiac_critical_episode_end_to_end(self, cardiac: Patient) -> None:
        """A critical draw escalates, pages one batch of responders and logs it."""
        core = make_core(r=0.97)
        core.register_patient(cardiac)

        report = core.tick()
        snap = core.snapshot("AMB-001")

        assert 135 <= snap.reading.heart_rate <= 155
        assert 86 <= snap.reading.spo2 <= 90
        assert snap.reading.source_alerts == ("High Heart Rate", "Low SpO2")
        assert classify(snap.reading).status == "critical"

        assert snap.escalation.level in (EscalationLevel.CRITICAL, EscalationLevel.EMERGENCY)
        assert snap.escalation.countdown == 300
        assert snap.escalation.protocol.key == "cardiac"
        assert len(report.transitions) == 1
        assert len(report.transitions[0].notifications) == 3
        assert len(snap.escalation.notifications) == 3

        assert any("escalation raised" in e.message for e in core.get_system_log())
        assert core.get_patient_log("AMB-001")[0].message == "Tachycardia detected"

    def test_countdown_expires_through_facade(self, cardiac: Patient) -> None:
        core = make_core(r=0.97)
        core.register_patient(cardiac)
        core.tick()

        for _ in range(299):
            core.tick_countdowns()
        assert core.snapshot("AMB-001").escalation.countdown == 1

        assert core.tick_countdowns() == ["AMB-001"]
        assert core.snapshot("AMB-001").escalation.countdown is None

    def test_acknowledge_logs_once(self, cardiac: Patient) -> None:
        core = make_core(r=0.97)
        core.register_patient(cardiac)
        core.tick()

        assert core.acknowledge("AMB-001") is True
        once = core.snapshot("AMB-001").escalation
        assert core.acknowledge("AMB-001") is True

        assert core.snapshot("AMB-001").escalation == once
        acks = [e for e in core.get_system_log() if e.message == "Patient A: alert acknowledged"]
        assert len(acks) == 1

    def test_acknowledge_unknown(self) -> None:
        assert make_core().acknowledge("missing") is False


class TestSnapshots:
    def test_snapshot_is_not_affected_by_later_ticks(self, cardiac: Patient) -> None:
        core = make_core()
        core.register_patient(cardiac)
        core.tick()
        before = core.snapshot("AMB-001")
        core.tick()

        assert len(before.history) == 1
        assert len(core.snapshot("AMB-001").history) == 2

    def test_history_capacity_from_config(self, cardiac: Patient) -> None:
        core = make_core(engine=EngineConfig(history_capacity=5))
        core.register_patient(cardiac)
        for _ in range(8):
            core.tick()
        assert len(core.history("AMB-001")) == 5

    def test_snapshot_all(self, cardiac: Patient) -> None:
        core = make_core()
        core.register_patient(cardiac)
        core.register_patient(Patient(id="AMB-002", name="Patient B", condition_profile="Stroke"))
        core.tick()

        snaps = core.snapshot_all()
        assert list(snaps) == ["AMB-001", "AMB-002"]
        assert all(s.reading is not None for s in snaps.values())

    def test_seeded_sessions_are_reproducible(self, cardiac: Patient) -> None:
        def run() -> list[int]:
            core = MonitoringCore(AppConfig(simulator=SimulatorConfig(seed=99)))
            core.register_patient(cardiac)
            for _ in range(10):
                core.tick()
            return list(core.history("AMB-001").heart_rate)

        assert run() == run()


class TestNotificationHandlers:
    def test_handlers_receive_pages(self, cardiac: Patient) -> None:
        received = []
        core = MonitoringCore(
            AppConfig(), rng=ScriptedRandom(0.97), notification_handlers=[received.append]
        )
        core.register_patient(cardiac)
        core.tick()
        assert len(received) == 3
        assert {n.patient_id for n in received} == {"AMB-001"}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, cardiac: Patient) -> None:
        core = make_core(engine=EngineConfig(tick_interval_seconds=0.01))
        core.register_patient(cardiac)

        core.start()
        await _wait_for_ticks(core, 2)
        await core.stop()

        assert core.snapshot("AMB-001").reading is not None
        assert core.get_system_log()[-1].message == "Multi-patient simulator stopped"


async def _wait_for_ticks(core: MonitoringCore, count: int) -> None:
    for _ in range(100):
        if core.scheduler.tick_count >= count:
            return
        await asyncio.sleep(0.01)
