"""Run outcome."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from jobchaos.services.checker.models import Verdict
from jobchaos.services.nemesis.stop_signal import StopReason
from jobchaos.services.orchestration.config import RunConfig


class RunResult(BaseModel):
    """
    Complete result of a chaos test run.
    """
    test_name: str
    config: RunConfig
    verdict: Verdict
    stop_reason: Optional[StopReason] = None

    # Timing
    started_at: datetime
    completed_at: datetime
    duration: float = 0.0

    # Stream statistics
    client_operations: int = 0
    faults_injected: int = 0

    store_path: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.verdict.valid
