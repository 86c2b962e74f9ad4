"""
Operation records.

An operation is written to the history twice: once when it is invoked and
once when it completes. Completions are ``ok`` (succeeded), ``fail``
(definitely did not happen) or ``info`` (indeterminate).
"""

import enum
from typing import Any, Optional
from pydantic import BaseModel, Field


# Processes
CLIENT = "client"
NEMESIS = "nemesis"

# Client actions
JOB_RUNNING = "job-running?"
CANCEL_JOB = "cancel-job"


class OperationType(str, enum.Enum):
    """Lifecycle stage of an operation record."""
    INVOKE = "invoke"
    OK = "ok"
    FAIL = "fail"
    INFO = "info"


class Operation(BaseModel):
    """A single entry in the run history."""
    type: OperationType = OperationType.INVOKE
    f: str = Field(description="Action: job-running?, cancel-job or a fault name")
    process: str = Field(default=CLIENT, description="Which stream issued the operation")
    value: Any = None
    time: float = Field(default=0.0, description="Run-relative time in time units")
    error: Optional[str] = None
    index: int = Field(default=-1, description="Position in the history; -1 until appended")

    @property
    def is_invoke(self) -> bool:
        return self.type == OperationType.INVOKE

    @property
    def is_completion(self) -> bool:
        return self.type != OperationType.INVOKE

    @property
    def is_fault(self) -> bool:
        return self.process == NEMESIS

    def invocation(self, time: float) -> "Operation":
        """Copy of this template as an invoke record at ``time``."""
        return self.model_copy(update={"type": OperationType.INVOKE, "time": time, "index": -1})

    def complete(
        self,
        type: OperationType,
        time: float,
        value: Any = None,
        error: Optional[str] = None
    ) -> "Operation":
        """Completion record matching this invocation."""
        return self.model_copy(
            update={"type": type, "time": time, "value": value, "error": error, "index": -1}
        )


def poll_job_running() -> Operation:
    """Template for a job status poll."""
    return Operation(f=JOB_RUNNING)


def cancel_job() -> Operation:
    """Template for a job cancellation."""
    return Operation(f=CANCEL_JOB)
