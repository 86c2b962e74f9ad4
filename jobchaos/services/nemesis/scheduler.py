"""
Fault scheduler.

Runs a named nemesis strategy against a nemesis collaborator. The stop signal
is re-checked before every step, so no fault is injected once it is set;
a fault already in flight is allowed to complete.
"""

import structlog

from jobchaos.services.cluster.base import Nemesis
from jobchaos.services.generators.base import Generator, Stoppable
from jobchaos.services.history.history import History
from jobchaos.services.history.models import NEMESIS
from jobchaos.services.nemesis.stop_signal import StopSignal
from jobchaos.services.nemesis.strategies import NemesisParams, get_nemesis_generator
from jobchaos.services.orchestration.clock import RunClock
from jobchaos.services.orchestration.executor import OperationExecutor

logger = structlog.get_logger()


class FaultScheduler:
    """Produces fault operations from a registered strategy until stopped."""

    def __init__(
        self,
        name: str,
        params: NemesisParams,
        nemesis: Nemesis,
        history: History,
        clock: RunClock,
        stop: StopSignal
    ):
        # Resolve eagerly so unknown names fail before the run starts
        self.factory = get_nemesis_generator(name)
        self.name = name
        self.params = params
        self.nemesis = nemesis
        self.history = history
        self.clock = clock
        self.stop = stop

    def generator(self) -> Generator:
        return Stoppable(self.stop, self.factory(self.params))

    async def run(self) -> int:
        """Inject faults until the schedule is exhausted or the stop signal is set."""
        logger.info(
            "Starting fault schedule",
            nemesis_gen=self.name,
            fault_count=self.params.fault_count,
            fault_interval=self.params.fault_interval
        )
        executor = OperationExecutor(
            process=NEMESIS,
            handler=self.nemesis.invoke,
            history=self.history,
            clock=self.clock,
            stop=self.stop
        )
        injected = await executor.run(self.generator())
        logger.info(
            "Fault schedule finished",
            nemesis_gen=self.name,
            injected=injected,
            stopped=self.stop.is_set
        )
        return injected
