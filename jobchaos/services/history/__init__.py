"""Operation records and the run history."""

from jobchaos.services.history.models import (
    Operation,
    OperationType,
    CLIENT,
    NEMESIS,
    JOB_RUNNING,
    CANCEL_JOB,
)
from jobchaos.services.history.history import History
from jobchaos.services.history.store import RunStore

__all__ = [
    "Operation",
    "OperationType",
    "CLIENT",
    "NEMESIS",
    "JOB_RUNNING",
    "CANCEL_JOB",
    "History",
    "RunStore",
]
