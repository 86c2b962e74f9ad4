"""
Test orchestrator - runs one chaos test against a cluster.

A run:
1. Resolves the client generator and nemesis strategy (before touching the cluster)
2. Starts the cluster components
3. Runs the client stream and the fault stream concurrently, sharing a stop signal
4. Tears the cluster down
5. Checks the merged history with the recovery checker
"""

import asyncio
import structlog
from datetime import datetime, timezone
from typing import Optional, Set

from jobchaos.errors import FatalOperationError, RunTimeoutError
from jobchaos.services.checker.models import Verdict
from jobchaos.services.checker.recovery import RecoveryChecker
from jobchaos.services.checker.watcher import RecoveryWatcher
from jobchaos.services.cluster.base import ClusterLifecycle, JobClient, Nemesis
from jobchaos.services.generators.base import Generator, Stoppable
from jobchaos.services.generators.client import get_client_generator
from jobchaos.services.history.history import History
from jobchaos.services.history.models import CLIENT, CANCEL_JOB
from jobchaos.services.history.store import RunStore
from jobchaos.services.nemesis.scheduler import FaultScheduler
from jobchaos.services.nemesis.stop_signal import StopReason, StopSignal
from jobchaos.services.nemesis.strategies import get_nemesis_generator
from jobchaos.services.orchestration.clock import RunClock
from jobchaos.services.orchestration.config import RunConfig
from jobchaos.services.orchestration.executor import OperationExecutor
from jobchaos.services.orchestration.models import RunResult
from jobchaos.services.orchestration.reporter import RunReporter

logger = structlog.get_logger()

# Client operations whose failure ends the run
FATAL_CLIENT_ACTIONS = {CANCEL_JOB}


class TestOrchestrator:
    """
    Composes the client stream, the fault stream and the recovery checker.

    The client stream runs on one logical thread: one operation outstanding
    at a time. The fault stream runs concurrently on its own schedule. Both
    share a fresh StopSignal per run.
    """

    __test__ = False

    def __init__(
        self,
        config: RunConfig,
        lifecycle: ClusterLifecycle,
        client: JobClient,
        nemesis: Nemesis,
        clock: Optional[RunClock] = None,
        store: Optional[RunStore] = None
    ):
        # Unknown names raise ConfigurationError here, before any cluster call
        self.client_factory = get_client_generator(config.client_gen)
        get_nemesis_generator(config.nemesis_gen)

        self.config = config
        self.lifecycle = lifecycle
        self.client = client
        self.nemesis = nemesis
        self.clock = clock or RunClock(config.time_scale)
        self.store = store
        self._client_operations = 0
        self._faults_injected = 0

    def client_generator(self, stop: StopSignal) -> Generator:
        return Stoppable(
            stop,
            self.client_factory(
                poll_interval=self.config.poll_interval,
                cancel_after=self.config.cancel_after
            )
        )

    async def run(self) -> RunResult:
        """
        Run the test.

        Returns:
            RunResult with the verdict. Timeouts, fatal client failures and
            crashed collaborators are folded into a failing verdict.
        """
        history = History()
        stop = StopSignal()
        started_at = datetime.now(timezone.utc)
        failure: Optional[str] = None

        logger.info(
            "Starting chaos test",
            test_name=self.config.test_name,
            client_gen=self.config.client_gen,
            nemesis_gen=self.config.nemesis_gen,
            threshold=self.config.job_running_healthy_threshold,
            grace_period=self.config.job_recovery_grace_period
        )

        self.lifecycle.start()
        try:
            await self.client.setup()
            await self.nemesis.setup()
            try:
                await self._run_streams(history, stop)
            except RunTimeoutError as e:
                logger.error("Run timed out", time_limit=e.time_limit)
                failure = "timeout"
            except FatalOperationError as e:
                logger.error("Client failed fatally", error=str(e))
                failure = str(e)
            except Exception as e:
                logger.exception("Run crashed", error=repr(e))
                failure = f"crashed: {e!r}"
            end_time = self.clock.now()
        finally:
            try:
                await self.nemesis.teardown()
                await self.client.teardown()
            finally:
                self.lifecycle.teardown()

        checker = RecoveryChecker(
            self.config.job_running_healthy_threshold,
            self.config.job_recovery_grace_period
        )
        verdict = checker.check(history.merged(), end_time=end_time)
        if failure is not None:
            verdict = Verdict.failed(
                failure,
                window=verdict.window,
                final_state=verdict.final_state,
                metrics=verdict.metrics
            )

        for op in history.pending_invocations():
            logger.warning("Operation never completed", process=op.process, f=op.f, time=op.time)

        result = RunResult(
            test_name=self.config.test_name,
            config=self.config,
            verdict=verdict,
            stop_reason=stop.reason,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration=end_time,
            client_operations=self._client_operations,
            faults_injected=self._faults_injected
        )

        if self.store is not None:
            reporter = RunReporter()
            path = self.store.save(
                history,
                results=reporter.to_dict(result),
                report=reporter.generate_report(result),
                started_at=started_at
            )
            result.store_path = str(path)

        logger.info(
            "Chaos test finished",
            test_name=self.config.test_name,
            valid=verdict.valid,
            reason=verdict.reason,
            stop_reason=stop.reason.value if stop.reason else None
        )
        return result

    async def _run_streams(self, history: History, stop: StopSignal) -> None:
        self.clock.start()
        client_executor = OperationExecutor(
            process=CLIENT,
            handler=self.client.invoke,
            history=history,
            clock=self.clock,
            stop=stop,
            fatal_actions=FATAL_CLIENT_ACTIONS
        )
        scheduler = FaultScheduler(
            name=self.config.nemesis_gen,
            params=self.config.nemesis_params(),
            nemesis=self.nemesis,
            history=history,
            clock=self.clock,
            stop=stop
        )
        watcher = RecoveryWatcher(
            history=history,
            clock=self.clock,
            stop=stop,
            healthy_threshold=self.config.job_running_healthy_threshold,
            grace_period=self.config.job_recovery_grace_period
        )

        client_task = asyncio.ensure_future(client_executor.run(self.client_generator(stop)))
        fault_task = asyncio.ensure_future(self._fault_stream(scheduler, watcher))
        try:
            await asyncio.wait_for(
                self._join(client_task, fault_task, stop),
                timeout=self.clock.to_seconds(self.config.time_limit)
            )
        except asyncio.TimeoutError:
            stop.set_if_unset(StopReason.TIMEOUT)
            raise RunTimeoutError(self.config.time_limit) from None
        finally:
            for task in (client_task, fault_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(client_task, fault_task, return_exceptions=True)
            self._client_operations = client_executor.executed
            self._faults_injected = len(history.completions(lambda op: op.is_fault))

    async def _fault_stream(self, scheduler: FaultScheduler, watcher: RecoveryWatcher) -> StopReason:
        await scheduler.run()
        return await watcher.await_recovery()

    async def _join(self, client_task: asyncio.Task, fault_task: asyncio.Task, stop: StopSignal) -> None:
        tasks: Set[asyncio.Task] = {client_task, fault_task}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        failed = [task for task in done if task.exception() is not None]
        if not failed:
            return

        stop.set_if_unset(StopReason.CLIENT_FAILED if client_task in failed else StopReason.NEMESIS_FAILED)
        await asyncio.wait(tasks)
        raise failed[0].exception()
