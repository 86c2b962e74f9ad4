"""
Recovery checker - decides whether the job recovered after every fault.

State machine:
- IDLE -> AWAITING_RECOVERY on a completed fault; the deadline is the fault's
  end time plus the grace period
- AWAITING_RECOVERY -> SATISFIED -> IDLE once the healthy streak counted
  since the fault reaches the threshold strictly before the deadline
- AWAITING_RECOVERY -> VIOLATED (terminal) on a sample at or after the
  deadline, or if the run ends at or after it, without recovery
- a newer fault while awaiting, and before the deadline, moves the deadline
  to the newest fault's end; a fault at or after the deadline is a violation
- a successful cancellation moves to CANCELLED; the job is expected to stop,
  so later faults open no window
"""

import structlog
from typing import Iterable, Optional

from jobchaos.services.checker.models import (
    CheckerState,
    GracePeriodWindow,
    HealthSample,
    HealthyStreak,
    RecoveryMetrics,
    Verdict,
    VerdictStatus,
    sample_from,
)
from jobchaos.services.history.models import Operation, OperationType, CANCEL_JOB

logger = structlog.get_logger()


class RecoveryChecker:
    """
    Folds a run history into a verdict.

    Operations may be fed one at a time with ``step()`` (in time order) and
    the verdict taken with ``finish()``, or a whole history checked at once
    with ``check()``.
    """

    def __init__(self, healthy_threshold: int, grace_period: float):
        if healthy_threshold <= 0:
            raise ValueError("healthy_threshold must be positive")
        if grace_period <= 0:
            raise ValueError("grace_period must be positive")
        self.healthy_threshold = healthy_threshold
        self.grace_period = grace_period
        self.reset()

    def reset(self) -> None:
        self.state = CheckerState.IDLE
        self.window: Optional[GracePeriodWindow] = None
        self.streak = HealthyStreak()
        self.metrics = RecoveryMetrics()
        self.violation: Optional[str] = None
        self._last_sample_time: Optional[float] = None

    def check(self, operations: Iterable[Operation], end_time: Optional[float] = None) -> Verdict:
        """
        Check a complete history.

        Args:
            operations: Operation records, invocations included
            end_time: When the run ended; defaults to the last record's time

        Returns:
            The run's Verdict
        """
        self.reset()
        ops = sorted(operations, key=lambda op: (op.time, op.index))
        for op in ops:
            self.step(op)
        if end_time is None and ops:
            end_time = ops[-1].time
        return self.finish(end_time)

    def step(self, op: Operation) -> CheckerState:
        if self.state == CheckerState.VIOLATED or not op.is_completion:
            return self.state

        if op.is_fault:
            if op.type != OperationType.FAIL:
                self._observe_fault(op.time)
            return self.state

        sample = sample_from(op)
        if sample is not None:
            self._observe_sample(sample)
        elif op.f == CANCEL_JOB and op.type == OperationType.OK:
            logger.info("Job cancelled, recovery no longer required", time=op.time)
            self.state = CheckerState.CANCELLED
            self.window = None
        return self.state

    def finish(self, end_time: Optional[float] = None) -> Verdict:
        if (
            self.state == CheckerState.AWAITING_RECOVERY
            and end_time is not None
            and end_time >= self.window.deadline
        ):
            self._violate(
                f"Run ended at t={end_time:g} without the job recovering"
            )

        self.metrics.compute_time_metrics()

        if self.state == CheckerState.VIOLATED:
            return Verdict.failed(
                self.violation,
                window=self.window,
                final_state=self.state,
                metrics=self.metrics
            )
        if self.metrics.health_samples == 0:
            return Verdict.failed(
                "No health evidence (no ok/fail job-running? completion)",
                final_state=self.state,
                metrics=self.metrics
            )
        return Verdict(
            status=VerdictStatus.PASS,
            final_state=self.state,
            metrics=self.metrics
        )

    def _observe_fault(self, time: float) -> None:
        self.metrics.faults_observed += 1
        if self.state == CheckerState.CANCELLED:
            return
        if self.state == CheckerState.AWAITING_RECOVERY and time >= self.window.deadline:
            self._missed_deadline()
            return
        if self.state == CheckerState.AWAITING_RECOVERY:
            logger.debug(
                "Fault during recovery, moving deadline",
                previous_deadline=self.window.deadline,
                deadline=time + self.grace_period
            )
        self.window = GracePeriodWindow(fault_end=time, deadline=time + self.grace_period)
        self.state = CheckerState.AWAITING_RECOVERY
        self.streak.reset()

    def _observe_sample(self, sample: HealthSample) -> None:
        if self._last_sample_time is not None and sample.time <= self._last_sample_time:
            raise ValueError(f"Health samples out of order or duplicated at t={sample.time}")
        self._last_sample_time = sample.time

        self.metrics.health_samples += 1
        if sample.running:
            self.metrics.healthy_samples += 1

        if self.state == CheckerState.AWAITING_RECOVERY and sample.time >= self.window.deadline:
            self._missed_deadline()
            return

        count = self.streak.observe(sample.running)
        if self.state == CheckerState.AWAITING_RECOVERY and count >= self.healthy_threshold:
            self.state = CheckerState.SATISFIED
            self.metrics.recoveries += 1
            self.metrics.recovery_times.append(sample.time - self.window.fault_end)
            logger.debug("Job recovered", time=sample.time, fault_end=self.window.fault_end)
            self.window = None
            self.state = CheckerState.IDLE

    def _missed_deadline(self) -> None:
        self._violate(
            f"Job not running {self.healthy_threshold} consecutive times within "
            f"{self.grace_period:g} time units after the fault at t={self.window.fault_end:g}"
        )

    def _violate(self, reason: str) -> None:
        self.state = CheckerState.VIOLATED
        self.violation = reason
        logger.info(
            "Recovery violated",
            reason=reason,
            fault_end=self.window.fault_end,
            deadline=self.window.deadline
        )
