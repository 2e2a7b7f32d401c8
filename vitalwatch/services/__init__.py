"""
Core services for the monitoring engine.

This package contains the vitals generators, classifier, escalation engine,
state store, event logs and the scheduler that drives them.
"""

from .classifier import classify
from .escalation import EscalationEngine, compute_level, select_protocol
from .event_log import EventLogger
from .monitor import MonitoringCore
from .registry import PatientRegistry
from .scenario_generator import ScenarioVitalsGenerator
from .scheduler import Scheduler, SchedulerConfig
from .state_store import HistoryBuffer, PatientStateStore
from .vitals_generator import VitalsGenerator, VitalsSource

__all__ = [
    "classify",
    "compute_level",
    "select_protocol",
    "EscalationEngine",
    "EventLogger",
    "HistoryBuffer",
    "MonitoringCore",
    "PatientRegistry",
    "PatientStateStore",
    "ScenarioVitalsGenerator",
    "Scheduler",
    "SchedulerConfig",
    "VitalsGenerator",
    "VitalsSource",
]
