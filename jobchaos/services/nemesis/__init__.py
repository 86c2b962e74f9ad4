"""
Fault injection.

This module provides:
- The set-once stop signal shared with the client stream
- The registry of nemesis strategies
- The fault scheduler that runs a strategy until stopped
"""

from jobchaos.services.nemesis.stop_signal import StopSignal, StopReason
from jobchaos.services.nemesis.strategies import (
    NemesisParams,
    NEMESIS_GENERATOR_FACTORIES,
    get_nemesis_generator,
)
from jobchaos.services.nemesis.scheduler import FaultScheduler

__all__ = [
    "StopSignal",
    "StopReason",
    "NemesisParams",
    "NEMESIS_GENERATOR_FACTORIES",
    "get_nemesis_generator",
    "FaultScheduler",
]
