"""
Operation executor.

Drains one generator on behalf of one process. Operations are strictly
sequential: each is recorded as an invocation, handed to the collaborator,
and recorded again as a completion before the next step is taken.
"""

import structlog
from typing import Any, Awaitable, Callable, Collection, Optional

from jobchaos.errors import ClusterUnavailableError, FatalOperationError
from jobchaos.services.generators.base import Generator, GeneratorContext, Sleep
from jobchaos.services.history.history import History
from jobchaos.services.history.models import Operation, OperationType
from jobchaos.services.orchestration.clock import RunClock

logger = structlog.get_logger()

Handler = Callable[[Operation], Awaitable[Any]]


class OperationExecutor:
    """Runs a generator's operations one at a time against a collaborator."""

    def __init__(
        self,
        process: str,
        handler: Handler,
        history: History,
        clock: RunClock,
        stop=None,
        fatal_actions: Collection[str] = ()
    ):
        self.process = process
        self.handler = handler
        self.history = history
        self.clock = clock
        self.stop = stop
        self.fatal_actions = set(fatal_actions)
        self.executed = 0

    async def run(self, generator: Generator) -> int:
        """
        Drain ``generator``.

        Sleeps end early when the stop signal is set. Returns the number of
        operations executed.
        """
        ctx = GeneratorContext(self.clock.now)
        try:
            while True:
                step = generator.next(ctx)
                if step is None:
                    break
                if isinstance(step, Sleep):
                    await self.pause(step.seconds)
                    continue
                await self.execute(step)
        finally:
            generator.close()
        return self.executed

    async def pause(self, units: float) -> None:
        if self.stop is None:
            await self.clock.sleep(units)
        else:
            await self.clock.wait(self.stop.wait(), units)

    async def execute(self, template: Operation) -> Operation:
        """Invoke one operation and record its completion."""
        invoke = self.history.append(
            template.model_copy(update={"process": self.process}).invocation(self.clock.now())
        )
        try:
            value = await self.handler(invoke)
        except ClusterUnavailableError as e:
            completion = self.history.append(
                invoke.complete(OperationType.FAIL, self.clock.now(), error=str(e))
            )
            logger.warning(
                "Operation failed",
                process=self.process,
                f=invoke.f,
                error=str(e)
            )
            if invoke.f in self.fatal_actions:
                raise FatalOperationError(invoke.f, str(e)) from e
            self.executed += 1
            return completion
        except Exception as e:
            self.history.append(
                invoke.complete(OperationType.INFO, self.clock.now(), error=repr(e))
            )
            logger.error(
                "Operation crashed",
                process=self.process,
                f=invoke.f,
                error=repr(e)
            )
            raise

        self.executed += 1
        completion = self.history.append(
            invoke.complete(OperationType.OK, self.clock.now(), value=value)
        )
        logger.debug(
            "Operation completed",
            process=self.process,
            f=invoke.f,
            value=value,
            time=completion.time
        )
        return completion
