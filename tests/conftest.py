"""Pytest configuration and fixtures."""
import json
import pytest
from typing import Callable, List, Optional, Tuple

from jobchaos.services.generators.base import Generator, GeneratorContext, Sleep
from jobchaos.services.history.models import (
    Operation,
    OperationType,
    CLIENT,
    NEMESIS,
    JOB_RUNNING,
    CANCEL_JOB,
)
from jobchaos.services.orchestration.clock import RunClock
from jobchaos.services.orchestration.config import RunConfig

# 1 time unit = 1 ms keeps grace periods of 60+ units short in tests
TEST_TIME_SCALE = 0.001


class ManualTime:
    """Clock advanced by hand."""

    def __init__(self, t: float = 0.0):
        self.t = t

    def now(self) -> float:
        return self.t


@pytest.fixture
def manual_time() -> ManualTime:
    return ManualTime()


@pytest.fixture
def drain(manual_time) -> Callable[[Generator, int], List[Tuple[str, float]]]:
    """Consume up to ``limit`` operations, advancing manual time by every sleep."""
    def _drain(generator: Generator, limit: int = 50) -> List[Tuple[str, float]]:
        ctx = GeneratorContext(manual_time.now)
        emitted = []
        while len(emitted) < limit:
            step = generator.next(ctx)
            if step is None:
                break
            if isinstance(step, Sleep):
                manual_time.t += step.seconds
            else:
                emitted.append((step.f, manual_time.t))
        return emitted
    return _drain


@pytest.fixture
def clock() -> RunClock:
    clock = RunClock(time_scale=TEST_TIME_SCALE)
    clock.start()
    return clock


@pytest.fixture
def fault_at():
    def _fault_at(t: float, type: OperationType = OperationType.OK, f: str = "kill-task-managers") -> Operation:
        return Operation(type=type, f=f, process=NEMESIS, time=t)
    return _fault_at


@pytest.fixture
def poll_at():
    def _poll_at(t: float, running: Optional[bool] = True, type: OperationType = OperationType.OK) -> Operation:
        return Operation(type=type, f=JOB_RUNNING, process=CLIENT, value=running, time=t)
    return _poll_at


@pytest.fixture
def cancel_at():
    def _cancel_at(t: float, type: OperationType = OperationType.OK) -> Operation:
        return Operation(type=type, f=CANCEL_JOB, process=CLIENT, time=t)
    return _cancel_at


@pytest.fixture
def make_config():
    """RunConfig with short, test-friendly durations."""
    def _make_config(**overrides) -> RunConfig:
        options = {
            "job_running_healthy_threshold": 3,
            "job_recovery_grace_period": 60,
            "poll_interval": 5,
            "fault_interval": 20,
            "fault_count": 2,
            "simulated_recovery_time": 10,
            "time_limit": 2000,
            "time_scale": TEST_TIME_SCALE,
            "setup_retries": 1,
        }
        options.update(overrides)
        return RunConfig.from_options(**options)
    return _make_config


@pytest.fixture
def test_spec_file(tmp_path):
    """Write a test specification and return its path."""
    def _write(data) -> str:
        path = tmp_path / "test-spec.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        return str(path)
    return _write
