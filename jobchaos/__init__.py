"""Fault-injection test orchestrator for job-processing clusters."""

__version__ = "1.0.0"
