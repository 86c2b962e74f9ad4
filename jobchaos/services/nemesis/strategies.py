"""
Nemesis strategies.

A strategy turns ``NemesisParams`` into a finite schedule of fault operations
and pauses. The registry maps the name passed as ``--nemesis-gen`` to its
strategy; lookups fail fast with ``UnknownFaultGenerator``.
"""

import random
from typing import Callable, Dict, List, Optional
from pydantic import BaseModel, Field

from jobchaos.errors import UnknownFaultGenerator
from jobchaos.services.generators.base import Generator, Seq, Sleep, Step
from jobchaos.services.history.models import Operation, NEMESIS

# Fault actions understood by nemesis collaborators
KILL_TASK_MANAGERS = "kill-task-managers"
KILL_JOB_MANAGERS = "kill-job-managers"
START_PARTITION = "start-partition"
STOP_PARTITION = "stop-partition"
STOP_NAME_NODE = "stop-name-node"
START_NAME_NODE = "start-name-node"

FAULT_ACTIONS = (
    KILL_TASK_MANAGERS,
    KILL_JOB_MANAGERS,
    START_PARTITION,
    STOP_PARTITION,
    STOP_NAME_NODE,
    START_NAME_NODE,
)


class NemesisParams(BaseModel):
    """Inputs every strategy receives."""
    healthy_threshold: int = Field(default=5, gt=0)
    grace_period: float = Field(default=180, gt=0)
    fault_interval: float = Field(default=30.0, ge=0, description="Pause before each fault")
    fault_count: int = Field(default=3, ge=0)
    task_manager_count: int = Field(default=3, gt=0)
    seed: Optional[int] = None

    @property
    def partition_duration(self) -> float:
        """How long a partition stays up; always shorter than the grace period."""
        return min(self.fault_interval, self.grace_period / 3)

    @property
    def burst_spacing(self) -> float:
        return min(5.0, self.fault_interval)


def fault(f: str, value=None) -> Operation:
    """Template for a fault operation."""
    return Operation(f=f, process=NEMESIS, value=value)


def _repeat(params: NemesisParams, make_fault: Callable[[int], List[Step]]) -> List[Step]:
    steps: List[Step] = []
    for i in range(params.fault_count):
        steps.append(Sleep(seconds=params.fault_interval))
        steps.extend(make_fault(i))
    return steps


def kill_task_managers(params: NemesisParams) -> Generator:
    """Repeatedly kills all task managers."""
    return Seq(_repeat(params, lambda i: [fault(KILL_TASK_MANAGERS, {"count": "all"})]))


def kill_single_task_manager(params: NemesisParams) -> Generator:
    """Repeatedly kills one task manager."""
    return Seq(_repeat(params, lambda i: [fault(KILL_TASK_MANAGERS, {"count": 1})]))


def kill_random_task_managers(params: NemesisParams) -> Generator:
    """Repeatedly kills a random number of task managers."""
    rng = random.Random(params.seed)
    counts = [rng.randint(1, params.task_manager_count) for _ in range(params.fault_count)]
    return Seq(_repeat(params, lambda i: [fault(KILL_TASK_MANAGERS, {"count": counts[i]})]))


def kill_task_managers_bursts(params: NemesisParams) -> Generator:
    """Kills task managers in bursts of three closely spaced kills."""
    def burst(i: int) -> List[Step]:
        steps: List[Step] = []
        for k in range(3):
            if k:
                steps.append(Sleep(seconds=params.burst_spacing))
            steps.append(fault(KILL_TASK_MANAGERS, {"count": 1}))
        return steps
    return Seq(_repeat(params, burst))


def kill_job_managers(params: NemesisParams) -> Generator:
    """Repeatedly kills the job managers."""
    return Seq(_repeat(params, lambda i: [fault(KILL_JOB_MANAGERS)]))


def fail_name_node_during_recovery(params: NemesisParams) -> Generator:
    """Kills the job managers and takes the name node away while the job recovers."""
    return Seq([
        Sleep(seconds=params.fault_interval),
        fault(KILL_JOB_MANAGERS),
        fault(STOP_NAME_NODE),
        Sleep(seconds=params.partition_duration),
        fault(START_NAME_NODE),
    ])


def network_partition(params: NemesisParams) -> Generator:
    """Repeatedly splits the cluster into random halves, then heals it."""
    return Seq(_repeat(params, lambda i: [
        fault(START_PARTITION, {"strategy": "random-halves"}),
        Sleep(seconds=params.partition_duration),
        fault(STOP_PARTITION),
    ]))


def utopia(params: NemesisParams) -> Generator:
    """Injects no faults."""
    return Seq([Sleep(seconds=params.fault_interval)])


NemesisGeneratorFactory = Callable[[NemesisParams], Generator]

# Registry of nemesis strategies
NEMESIS_GENERATOR_FACTORIES: Dict[str, NemesisGeneratorFactory] = {
    "kill-task-managers": kill_task_managers,
    "kill-single-task-manager": kill_single_task_manager,
    "kill-random-task-managers": kill_random_task_managers,
    "kill-task-managers-bursts": kill_task_managers_bursts,
    "kill-job-managers": kill_job_managers,
    "fail-name-node-during-recovery": fail_name_node_during_recovery,
    "network-partition": network_partition,
    "utopia": utopia,
}


def get_nemesis_generator(name: str) -> NemesisGeneratorFactory:
    """Look up a nemesis strategy, failing fast on unknown names."""
    try:
        return NEMESIS_GENERATOR_FACTORIES[name]
    except KeyError:
        raise UnknownFaultGenerator(name, NEMESIS_GENERATOR_FACTORIES.keys()) from None


def list_nemesis_generators() -> Dict[str, str]:
    return {
        name: (factory.__doc__ or "").strip()
        for name, factory in NEMESIS_GENERATOR_FACTORIES.items()
    }
