"""
Interfaces to the cluster under test.

Concrete implementations own how components are installed, how the job's
status is read, and how faults are applied. The orchestrator only relies on
the interfaces below.
"""

import structlog
from abc import ABC, abstractmethod
from typing import Any, List, Sequence
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from jobchaos.errors import ClusterUnavailableError
from jobchaos.services.history.models import Operation, CANCEL_JOB, JOB_RUNNING

logger = structlog.get_logger()


class ClusterLifecycle(ABC):
    """One component of the cluster that can be started and torn down."""

    name: str = "component"

    @abstractmethod
    def start(self) -> None:
        """Install, configure and start the component."""
        pass

    @abstractmethod
    def teardown(self) -> None:
        """Stop the component and remove its state."""
        pass


class CombinedLifecycle(ClusterLifecycle):
    """
    Sequences several lifecycles.

    Components start in order, each start retried on
    ``ClusterUnavailableError``, and are torn down in reverse order. If a
    component cannot be started, the ones already running are torn down
    before the error is raised.
    """

    name = "combined"

    def __init__(
        self,
        components: Sequence[ClusterLifecycle],
        setup_retries: int = 3,
        retry_backoff: float = 1.0
    ):
        self.components: List[ClusterLifecycle] = list(components)
        self.setup_retries = setup_retries
        self.retry_backoff = retry_backoff
        self._started: List[ClusterLifecycle] = []

    def start(self) -> None:
        for component in self.components:
            try:
                self._start_with_retry(component)
            except ClusterUnavailableError as e:
                logger.error("Component failed to start", component=component.name, error=str(e))
                self.teardown()
                raise
            self._started.append(component)
            logger.info("Component started", component=component.name)

    def teardown(self) -> None:
        errors = []
        while self._started:
            component = self._started.pop()
            try:
                component.teardown()
                logger.info("Component torn down", component=component.name)
            except ClusterUnavailableError as e:
                logger.error("Component teardown failed", component=component.name, error=str(e))
                errors.append(f"{component.name}: {e}")
        if errors:
            raise ClusterUnavailableError("Teardown failed for " + "; ".join(errors))

    def _start_with_retry(self, component: ClusterLifecycle) -> None:
        for attempt in Retrying(
            stop=stop_after_attempt(self.setup_retries),
            wait=wait_exponential(multiplier=self.retry_backoff, max=60),
            retry=retry_if_exception_type(ClusterUnavailableError),
            reraise=True
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying component start",
                        component=component.name,
                        attempt=attempt.retry_state.attempt_number
                    )
                component.start()


class JobClient(ABC):
    """Asks the cluster about the monitored job."""

    async def setup(self) -> None:
        pass

    async def teardown(self) -> None:
        pass

    @abstractmethod
    async def job_running(self) -> bool:
        """Whether the job is currently running. Raises ClusterUnavailableError."""
        pass

    @abstractmethod
    async def cancel_job(self) -> None:
        """Cancel the job. Raises ClusterUnavailableError."""
        pass

    async def invoke(self, op: Operation) -> Any:
        if op.f == JOB_RUNNING:
            return await self.job_running()
        if op.f == CANCEL_JOB:
            await self.cancel_job()
            return None
        raise ValueError(f"Unsupported client operation: {op.f}")


class Nemesis(ABC):
    """Applies faults to the cluster."""

    async def setup(self) -> None:
        pass

    async def teardown(self) -> None:
        pass

    @abstractmethod
    async def invoke(self, op: Operation) -> Any:
        """Apply the fault named by ``op.f``. Returns a description of what was done."""
        pass
