"""Exception taxonomy for chaos test runs."""
from typing import Iterable, Optional


def allowed_values_help_text(names: Iterable[str]) -> str:
    """Explain which values are allowed for a registry-backed option."""
    return "Must be one of: " + ", ".join(names)


class JobChaosError(Exception):
    """Base class for all errors raised by the orchestrator."""


class ConfigurationError(JobChaosError):
    """Invalid run configuration. Always raised before the cluster is touched."""


class UnknownFaultGenerator(ConfigurationError):
    """The requested nemesis generator is not registered."""

    def __init__(self, name: str, known: Iterable[str]):
        self.name = name
        self.known = sorted(known)
        super().__init__(
            f"Unknown nemesis generator '{name}'. {allowed_values_help_text(self.known)}"
        )


class UnknownClientGenerator(ConfigurationError):
    """The requested client generator is not registered."""

    def __init__(self, name: str, known: Iterable[str]):
        self.name = name
        self.known = sorted(known)
        super().__init__(
            f"Unknown client generator '{name}'. {allowed_values_help_text(self.known)}"
        )


class ClusterUnavailableError(JobChaosError):
    """A cluster collaborator could not serve a request."""


class FatalOperationError(JobChaosError):
    """A client operation failed in a way that ends the run."""

    def __init__(self, f: str, error: Optional[str] = None):
        self.f = f
        self.error = error
        super().__init__(f"{f} failed: {error}" if error else f"{f} failed")


class RunTimeoutError(JobChaosError):
    """The outer time budget of the run was exceeded."""

    def __init__(self, time_limit: float):
        self.time_limit = time_limit
        super().__init__(f"Run exceeded its time limit of {time_limit} time units")
