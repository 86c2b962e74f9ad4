"""
Recovery model types.

Health samples are derived from completed ``job-running?`` polls; the checker
folds them, together with fault completions, into a verdict.
"""

import enum
from typing import List, Optional
from pydantic import BaseModel, Field

from jobchaos.services.history.models import (
    Operation,
    OperationType,
    CLIENT,
    JOB_RUNNING,
)


class CheckerState(str, enum.Enum):
    """States of the recovery checker."""
    IDLE = "idle"
    AWAITING_RECOVERY = "awaiting-recovery"
    SATISFIED = "satisfied"
    VIOLATED = "violated"
    CANCELLED = "cancelled"


class VerdictStatus(str, enum.Enum):
    PASS = "pass"
    FAIL = "fail"


class HealthSample(BaseModel):
    """One observation of whether the job was running."""
    time: float
    running: bool


def sample_from(op: Operation) -> Optional[HealthSample]:
    """
    Health evidence carried by a completed poll.

    A failed poll means the cluster could not be asked, which counts as not
    running; an indeterminate poll carries no evidence.
    """
    if op.process != CLIENT or op.f != JOB_RUNNING:
        return None
    if op.type == OperationType.OK:
        return HealthSample(time=op.time, running=bool(op.value))
    if op.type == OperationType.FAIL:
        return HealthSample(time=op.time, running=False)
    return None


class HealthyStreak:
    """Number of consecutive running samples seen since the last reset."""

    def __init__(self):
        self.count = 0

    def observe(self, running: bool) -> int:
        self.count = self.count + 1 if running else 0
        return self.count

    def reset(self) -> None:
        self.count = 0


class GracePeriodWindow(BaseModel):
    """Interval after a fault in which the job must become healthy again."""
    fault_end: float
    deadline: float

    @property
    def grace_period(self) -> float:
        return self.deadline - self.fault_end

    def contains(self, time: float) -> bool:
        return self.fault_end <= time < self.deadline


class RecoveryMetrics(BaseModel):
    """Recovery statistics for one run."""
    faults_observed: int = 0
    recoveries: int = 0
    health_samples: int = 0
    healthy_samples: int = 0

    # Time metrics
    recovery_times: List[float] = Field(default_factory=list)
    mean_time_to_recovery: Optional[float] = None
    max_time_to_recovery: Optional[float] = None
    min_time_to_recovery: Optional[float] = None

    @property
    def availability(self) -> float:
        """Share of health samples that saw the job running."""
        if self.health_samples == 0:
            return 0.0
        return self.healthy_samples / self.health_samples

    def compute_time_metrics(self) -> None:
        """Compute time-based metrics from recovery times."""
        if self.recovery_times:
            self.mean_time_to_recovery = sum(self.recovery_times) / len(self.recovery_times)
            self.max_time_to_recovery = max(self.recovery_times)
            self.min_time_to_recovery = min(self.recovery_times)


class Verdict(BaseModel):
    """Outcome of a run."""
    status: VerdictStatus
    reason: Optional[str] = None
    window: Optional[GracePeriodWindow] = None
    final_state: CheckerState = CheckerState.IDLE
    metrics: RecoveryMetrics = Field(default_factory=RecoveryMetrics)

    @property
    def valid(self) -> bool:
        return self.status == VerdictStatus.PASS

    @classmethod
    def failed(cls, reason: str, **kwargs) -> "Verdict":
        return cls(status=VerdictStatus.FAIL, reason=reason, **kwargs)
