"""Online threshold evaluator that ends fault injection."""
import asyncio
import structlog

from jobchaos.services.checker.models import HealthyStreak, sample_from
from jobchaos.services.history.history import History
from jobchaos.services.history.models import OperationType, CANCEL_JOB
from jobchaos.services.nemesis.stop_signal import StopReason, StopSignal
from jobchaos.services.orchestration.clock import RunClock

logger = structlog.get_logger()


class RecoveryWatcher:
    """
    Watches the live history after the last fault and sets the stop signal.

    The signal is set once the job has been seen running ``healthy_threshold``
    consecutive times after the most recent fault, once the grace period after
    that fault has run out, or once the job has been cancelled.
    """

    def __init__(
        self,
        history: History,
        clock: RunClock,
        stop: StopSignal,
        healthy_threshold: int,
        grace_period: float
    ):
        self.history = history
        self.clock = clock
        self.stop = stop
        self.healthy_threshold = healthy_threshold
        self.grace_period = grace_period
        self.cancelled = False
        self._streak = HealthyStreak()
        self._cursor = 0

    def healthy_streak(self, since: float) -> int:
        """
        Fold records appended since the last call into the running streak.

        Only samples after ``since`` count. Records arrive in time order on a
        live run, so each one is read once.
        """
        for op in self.history.since(self._cursor):
            if op.f == CANCEL_JOB and op.type == OperationType.OK:
                self.cancelled = True
            sample = sample_from(op)
            if sample is not None and sample.time > since:
                self._streak.observe(sample.running)
        self._cursor = len(self.history)
        return self._streak.count

    async def await_recovery(self) -> StopReason:
        fault_end = self.history.last_fault_end()
        if fault_end is None:
            fault_end = self.clock.now()
        deadline = fault_end + self.grace_period
        logger.info(
            "Awaiting recovery",
            fault_end=fault_end,
            deadline=deadline,
            threshold=self.healthy_threshold
        )

        while not self.stop.is_set:
            self.history.appended.clear()
            streak = self.healthy_streak(fault_end)
            if self.cancelled:
                self.stop.set_if_unset(StopReason.JOB_CANCELLED)
            elif streak >= self.healthy_threshold:
                self.stop.set_if_unset(StopReason.JOB_RECOVERED)
            elif self.clock.now() >= deadline:
                self.stop.set_if_unset(StopReason.GRACE_PERIOD_EXPIRED)
            else:
                await self._wait_for_change(deadline - self.clock.now())

        return self.stop.reason

    async def _wait_for_change(self, units: float) -> None:
        waiters = [
            asyncio.ensure_future(self.history.appended.wait()),
            asyncio.ensure_future(self.stop.wait()),
        ]
        try:
            await asyncio.wait(
                waiters,
                timeout=self.clock.to_seconds(units),
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
