"""Vitals simulation and emergency escalation engine.

This package contains the clinical state machine and domain models,
isolated from UI and transport concerns for easy testing and reasoning.
"""
