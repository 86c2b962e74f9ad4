"""
Recovery checking.

This module provides:
- Health samples and the healthy-streak counter
- The recovery checker state machine and its verdict
- The online watcher that ends fault injection
"""

from jobchaos.services.checker.models import (
    CheckerState,
    GracePeriodWindow,
    HealthSample,
    HealthyStreak,
    RecoveryMetrics,
    Verdict,
    VerdictStatus,
)
from jobchaos.services.checker.recovery import RecoveryChecker
from jobchaos.services.checker.watcher import RecoveryWatcher

__all__ = [
    "CheckerState",
    "GracePeriodWindow",
    "HealthSample",
    "HealthyStreak",
    "RecoveryMetrics",
    "Verdict",
    "VerdictStatus",
    "RecoveryChecker",
    "RecoveryWatcher",
]
