"""Set-once stop signal shared by the client stream and the fault stream."""
import asyncio
import enum
import threading
from typing import Optional

import structlog

logger = structlog.get_logger()


class StopReason(str, enum.Enum):
    """Why a run stopped injecting faults."""
    JOB_RECOVERED = "job-recovered"
    GRACE_PERIOD_EXPIRED = "grace-period-expired"
    JOB_CANCELLED = "job-cancelled"
    CLIENT_FAILED = "client-failed"
    NEMESIS_FAILED = "nemesis-failed"
    TIMEOUT = "timeout"


class StopSignal:
    """
    One-way flag: once set it stays set for the rest of the run.

    Writers go through ``set_if_unset``; readers use the ``is_set`` property,
    which is a plain attribute read. Waiters can ``await wait()``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reason: Optional[StopReason] = None
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[StopReason]:
        return self._reason

    def set_if_unset(self, reason: StopReason) -> bool:
        """Set the signal. Returns False if it was already set."""
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason
        self._event.set()
        logger.info("Stop signal set", reason=reason.value)
        return True

    async def wait(self) -> StopReason:
        await self._event.wait()
        return self._reason
