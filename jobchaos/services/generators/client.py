"""
Client generators.

Both client generators are consumed by a single executor: one operation is
outstanding at a time and each must complete before the next is issued.
"""

from typing import Callable, Dict

from jobchaos.errors import UnknownClientGenerator
from jobchaos.services.generators.base import (
    Concat,
    Cycle,
    Generator,
    Once,
    Sleep,
    TimeLimit,
)
from jobchaos.services.history.models import cancel_job, poll_job_running

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_CANCEL_AFTER = 15.0


class HealthPoller(Cycle):
    """Polls whether the job is running, forever, with a fixed delay between polls."""

    def __init__(self, interval: float = DEFAULT_POLL_INTERVAL):
        if interval < 0:
            raise ValueError("Poll interval must not be negative")
        super().__init__([poll_job_running(), Sleep(seconds=interval)])
        self.interval = interval

    def restart(self) -> "HealthPoller":
        return HealthPoller(self.interval)


class CancellingSequence(Concat):
    """
    Runs ``poller`` for ``cancel_after`` time units, cancels the job exactly
    once, then runs a fresh copy of ``poller`` without a bound.
    """

    def __init__(self, poller: Generator, cancel_after: float = DEFAULT_CANCEL_AFTER):
        self.poller = poller
        self.cancel_after = cancel_after
        super().__init__(
            TimeLimit(cancel_after, poller),
            Once(cancel_job()),
            poller.restart(),
        )

    def restart(self) -> "CancellingSequence":
        return CancellingSequence(self.poller.restart(), self.cancel_after)


def poll_job_running_gen(
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel_after: float = DEFAULT_CANCEL_AFTER
) -> Generator:
    """Client generator that polls for the job running status."""
    return HealthPoller(poll_interval)


def cancelling_client_gen(
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel_after: float = DEFAULT_CANCEL_AFTER
) -> Generator:
    """Client generator that polls for the job running status and cancels the job after a while."""
    return CancellingSequence(HealthPoller(poll_interval), cancel_after)


ClientGeneratorFactory = Callable[..., Generator]

# Registry of client generators
CLIENT_GENERATORS: Dict[str, ClientGeneratorFactory] = {
    "poll-job-running": poll_job_running_gen,
    "cancel-jobs": cancelling_client_gen,
}


def get_client_generator(name: str) -> ClientGeneratorFactory:
    """Look up a client generator factory, failing fast on unknown names."""
    try:
        return CLIENT_GENERATORS[name]
    except KeyError:
        raise UnknownClientGenerator(name, CLIENT_GENERATORS.keys()) from None


def list_client_generators() -> Dict[str, str]:
    """Client generator names with the first line of their description."""
    return {
        name: (factory.__doc__ or "").strip().splitlines()[0]
        for name, factory in CLIENT_GENERATORS.items()
    }
