"""
Smoke tests for the console demo.
"""

import io
from collections.abc import Iterator

import pytest
from rich.console import Console

from vitalwatch import demo
from vitalwatch.config import AppConfig, get_config
from vitalwatch.domain.models import EscalationLevel, Notification
from vitalwatch.services.monitor import MonitoringCore


@pytest.fixture
def output(monkeypatch: pytest.MonkeyPatch) -> Iterator[io.StringIO]:
    """Capture demo output and keep global logging configuration untouched."""
    buffer = io.StringIO()
    monkeypatch.setattr(demo, "console", Console(file=buffer, width=160))
    monkeypatch.setattr(demo, "configure_logging", lambda config=None: None)
    monkeypatch.setenv("TICK_INTERVAL_SECONDS", "0.01")
    get_config.cache_clear()
    yield buffer
    get_config.cache_clear()


class TestDemo:
    @pytest.mark.asyncio
    async def test_run_demo_prints_overview(self, output: io.StringIO) -> None:
        await demo.run_demo(ticks=3, seed=5)

        text = output.getvalue()
        assert "tick 3:" in text
        assert "Patient Overview" in text
        assert "AMB-004" in text

    def test_render_snapshots_before_first_tick(self, output: io.StringIO) -> None:
        core = MonitoringCore(AppConfig())
        for patient in demo.DEMO_PATIENTS:
            core.register_patient(patient)

        demo.console.print(demo.render_snapshots(core))
        assert "Patient A" in output.getvalue()

    def test_print_notification(self, output: io.StringIO) -> None:
        demo.print_notification(
            Notification(patient_id="AMB-001", level=EscalationLevel.CRITICAL, role="ICU Team")
        )
        assert "paging ICU Team for AMB-001 (Level 3)" in output.getvalue()
