"""
Simulated cluster for demo mode.

Models a job that stops running whenever a fault hits the cluster and starts
running again ``recovery_time`` time units later. Used when no real cluster
collaborators are plugged in, and by the tests.
"""

import random
import structlog
from typing import Any, Callable, Dict, Optional, Set, Tuple

from jobchaos.errors import ClusterUnavailableError
from jobchaos.services.cluster.base import ClusterLifecycle, CombinedLifecycle, JobClient, Nemesis
from jobchaos.services.cluster.components import ComponentDefinition
from jobchaos.services.history.models import Operation
from jobchaos.services.nemesis.strategies import (
    KILL_JOB_MANAGERS,
    KILL_TASK_MANAGERS,
    START_NAME_NODE,
    START_PARTITION,
    STOP_NAME_NODE,
    STOP_PARTITION,
)

logger = structlog.get_logger()


class SimulatedCluster:
    """Shared state of the simulated cluster."""

    def __init__(
        self,
        now: Callable[[], float],
        recovery_time: float = 20.0,
        task_manager_count: int = 3,
        ha_storage_dir: Optional[str] = None,
        seed: Optional[int] = None
    ):
        self.now = now
        self.recovery_time = recovery_time
        self.task_manager_count = task_manager_count
        self.ha_storage_dir = ha_storage_dir
        self.rng = random.Random(seed)

        self.running_components: Set[str] = set()
        self.job_submitted = False
        self.job_cancelled = False
        self.partitioned = False
        self.name_node_up = True
        self.recovering_until = 0.0

    def submit_job(self) -> None:
        self.job_submitted = True
        self.job_cancelled = False
        self.recovering_until = self.now()

    def job_running(self) -> bool:
        if self.partitioned:
            raise ClusterUnavailableError("Control API unreachable: network partitioned")
        if not self.job_submitted or self.job_cancelled:
            return False
        if not self.name_node_up:
            return False
        return self.now() >= self.recovering_until

    def cancel_job(self) -> None:
        if self.partitioned:
            raise ClusterUnavailableError("Control API unreachable: network partitioned")
        if not self.job_submitted:
            raise ClusterUnavailableError("No job to cancel")
        self.job_cancelled = True

    def disrupt(self) -> float:
        """The job restarts; returns when it will be running again."""
        self.recovering_until = max(self.recovering_until, self.now() + self.recovery_time)
        return self.recovering_until

    def kill_task_managers(self, count: Any = "all") -> Dict[str, Any]:
        if count == "all":
            killed = self.task_manager_count
        else:
            killed = min(int(count), self.task_manager_count)
        return {"killed": killed, "recovering_until": self.disrupt()}

    def kill_job_managers(self) -> Dict[str, Any]:
        return {"killed": "job-managers", "recovering_until": self.disrupt()}

    def start_partition(self) -> Dict[str, Any]:
        self.partitioned = True
        nodes = ["n1", "n2", "n3", "n4", "n5"]
        self.rng.shuffle(nodes)
        half = len(nodes) // 2
        self.disrupt()
        return {"partition": [sorted(nodes[:half]), sorted(nodes[half:])]}

    def stop_partition(self) -> Dict[str, Any]:
        self.partitioned = False
        return {"healed": True, "recovering_until": self.disrupt()}

    def stop_name_node(self) -> Dict[str, Any]:
        self.name_node_up = False
        return {"name_node": "stopped"}

    def start_name_node(self) -> Dict[str, Any]:
        self.name_node_up = True
        return {"name_node": "started", "recovering_until": self.disrupt()}


class SimulatedComponent(ClusterLifecycle):
    """A cluster component that only tracks whether it is running."""

    def __init__(
        self,
        definition: ComponentDefinition,
        cluster: SimulatedCluster,
        failed_starts: int = 0
    ):
        self.definition = definition
        self.name = definition.name
        self.cluster = cluster
        self.failed_starts = failed_starts
        self.start_attempts = 0

    def start(self) -> None:
        self.start_attempts += 1
        if self.start_attempts <= self.failed_starts:
            raise ClusterUnavailableError(f"{self.name} did not come up")
        self.cluster.running_components.add(self.name)
        if self.definition.submits_job:
            self.cluster.submit_job()

    def teardown(self) -> None:
        self.cluster.running_components.discard(self.name)
        if self.definition.submits_job:
            self.cluster.job_submitted = False


class SimulatedJobClient(JobClient):
    def __init__(self, cluster: SimulatedCluster):
        self.cluster = cluster

    async def job_running(self) -> bool:
        return self.cluster.job_running()

    async def cancel_job(self) -> None:
        self.cluster.cancel_job()


class SimulatedNemesis(Nemesis):
    """Applies fault operations to the simulated cluster."""

    def __init__(self, cluster: SimulatedCluster):
        self.cluster = cluster
        self.handlers: Dict[str, Callable[[Operation], Dict[str, Any]]] = {
            KILL_TASK_MANAGERS: lambda op: self.cluster.kill_task_managers(
                (op.value or {}).get("count", "all")
            ),
            KILL_JOB_MANAGERS: lambda op: self.cluster.kill_job_managers(),
            START_PARTITION: lambda op: self.cluster.start_partition(),
            STOP_PARTITION: lambda op: self.cluster.stop_partition(),
            STOP_NAME_NODE: lambda op: self.cluster.stop_name_node(),
            START_NAME_NODE: lambda op: self.cluster.start_name_node(),
        }

    async def invoke(self, op: Operation) -> Dict[str, Any]:
        handler = self.handlers.get(op.f)
        if handler is None:
            raise ValueError(f"Unsupported fault: {op.f}")
        result = handler(op)
        logger.info("Fault applied", f=op.f, result=result)
        return result


def build_simulated_cluster(
    components,
    now: Callable[[], float],
    recovery_time: float = 20.0,
    task_manager_count: int = 3,
    ha_storage_dir: Optional[str] = None,
    setup_retries: int = 3,
    seed: Optional[int] = None
) -> Tuple[SimulatedCluster, CombinedLifecycle, SimulatedJobClient, SimulatedNemesis]:
    """Wire a simulated cluster for the given component definitions."""
    cluster = SimulatedCluster(
        now=now,
        recovery_time=recovery_time,
        task_manager_count=task_manager_count,
        ha_storage_dir=ha_storage_dir,
        seed=seed
    )
    lifecycle = CombinedLifecycle(
        [SimulatedComponent(definition, cluster) for definition in components],
        setup_retries=setup_retries
    )
    return cluster, lifecycle, SimulatedJobClient(cluster), SimulatedNemesis(cluster)
