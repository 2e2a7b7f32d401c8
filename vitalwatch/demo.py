"""
Console demonstration of the full monitoring pipeline.

Registers a small ambulance fleet, runs the scheduler for a few ticks and
prints the resulting snapshots, escalations and logs.

Run with: python -m vitalwatch.demo
"""

import argparse
import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vitalwatch.config import get_config
from vitalwatch.domain.models import Notification, Patient
from vitalwatch.observability import configure_logging
from vitalwatch.services.monitor import MonitoringCore

console = Console()

DEMO_PATIENTS = [
    Patient(
        id="AMB-001",
        name="Patient A",
        ambulance="Ambulance 1",
        location="Sector 15",
        condition_profile="Cardiac",
    ),
    Patient(
        id="AMB-002",
        name="Patient B",
        ambulance="Ambulance 2",
        location="MG Road",
        condition_profile="Trauma",
    ),
    Patient(
        id="AMB-003",
        name="Patient C",
        ambulance="Ambulance 3",
        location="Central Station",
        condition_profile="Respiratory",
    ),
    Patient(
        id="AMB-004",
        name="Patient D",
        ambulance="Ambulance 4",
        location="Riverside",
        condition_profile="Stroke",
    ),
]

LEVEL_STYLES = {0: "green", 1: "blue", 2: "yellow", 3: "red", 4: "bold red"}


def print_notification(notification: Notification) -> None:
    console.print(
        f"  paging {notification.role} for {notification.patient_id}"
        f" (Level {notification.level.value})",
        style="magenta",
    )


def render_snapshots(core: MonitoringCore) -> Table:
    table = Table(title="Patient Overview")
    table.add_column("Patient", style="cyan")
    table.add_column("Condition")
    table.add_column("HR", justify="right")
    table.add_column("SpO2", justify="right")
    table.add_column("Temp", justify="right")
    table.add_column("Level", justify="center")
    table.add_column("Protocol")
    table.add_column("Countdown", justify="right")

    for patient_id, snap in core.snapshot_all().items():
        reading = snap.reading
        escalation = snap.escalation
        level = escalation.level.value
        table.add_row(
            f"{snap.patient.name} ({patient_id})",
            snap.patient.condition_profile,
            str(reading.heart_rate) if reading else "-",
            f"{reading.spo2}%" if reading else "-",
            f"{reading.temperature:.1f}" if reading else "-",
            f"[{LEVEL_STYLES[level]}]{level}[/]",
            escalation.protocol.name if escalation.protocol else "-",
            str(escalation.countdown) if escalation.countdown is not None else "-",
        )
    return table


async def run_demo(ticks: int, seed: int | None) -> None:
    config = get_config()
    if seed is not None:
        config = config.model_copy(
            update={"simulator": config.simulator.model_copy(update={"seed": seed})}
        )
    configure_logging(config.logging.model_copy(update={"level": "WARNING"}))

    core = MonitoringCore(config, notification_handlers=[print_notification])
    for patient in DEMO_PATIENTS:
        core.register_patient(patient)

    console.print(Panel(f"Monitoring {len(DEMO_PATIENTS)} patients for {ticks} ticks"))

    async for report in core.scheduler.run(max_ticks=ticks):
        core.tick_countdowns(1)
        console.print(
            f"tick {report.tick}: {report.processed} processed,"
            f" {len(report.transitions)} transitions, latency {report.latency_ms}ms"
        )

    console.print(render_snapshots(core))

    events = Table(title="System Events (most recent first)")
    events.add_column("Time", style="dim")
    events.add_column("Type")
    events.add_column("Message")
    for entry in reversed(core.get_system_log()):
        events.add_row(entry.time.strftime("%H:%M:%S"), entry.type, entry.message)
    console.print(events)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the vitals monitoring demo")
    parser.add_argument("--ticks", type=int, default=10, help="Number of ticks to run")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    args = parser.parse_args()

    try:
        asyncio.run(run_demo(args.ticks, args.seed))
    except KeyboardInterrupt:
        console.print("Monitoring stopped by user", style="yellow")


if __name__ == "__main__":
    main()
