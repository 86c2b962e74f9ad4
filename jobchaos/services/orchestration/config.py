"""Per-run configuration."""
from typing import Any, Optional
from pydantic import BaseModel, Field, ValidationError

from jobchaos.config import settings
from jobchaos.errors import ConfigurationError
from jobchaos.services.cluster.components import TestSpec
from jobchaos.services.nemesis.strategies import NemesisParams


class RunConfig(BaseModel):
    """Validated options for one chaos test run. Durations are in time units."""
    test_name: str = settings.TEST_NAME
    test_spec: Optional[TestSpec] = None
    ha_storage_dir: Optional[str] = None

    client_gen: str = settings.CLIENT_GEN
    nemesis_gen: str = settings.NEMESIS_GEN

    job_running_healthy_threshold: int = Field(
        default=settings.JOB_RUNNING_HEALTHY_THRESHOLD,
        gt=0,
        description="Consecutive healthy polls required after a fault"
    )
    job_recovery_grace_period: int = Field(
        default=settings.JOB_RECOVERY_GRACE_PERIOD,
        ge=settings.MIN_JOB_RECOVERY_GRACE_PERIOD,
        description="Time the job has to become healthy after a fault"
    )

    poll_interval: float = Field(default=settings.POLL_INTERVAL_SECONDS, gt=0)
    cancel_after: float = Field(default=settings.CANCEL_AFTER_SECONDS, ge=0)
    fault_interval: float = Field(default=settings.FAULT_INTERVAL_SECONDS, ge=0)
    fault_count: int = Field(default=settings.FAULT_COUNT, ge=0)
    seed: Optional[int] = settings.NEMESIS_SEED

    time_limit: float = Field(default=settings.RUN_TIME_LIMIT_SECONDS, gt=0)
    time_scale: float = Field(default=settings.TIME_SCALE, gt=0)

    setup_retries: int = Field(default=settings.CLUSTER_SETUP_RETRIES, ge=1)
    task_manager_count: int = Field(default=settings.TASK_MANAGER_COUNT, gt=0)
    simulated_recovery_time: float = Field(default=settings.SIMULATED_RECOVERY_SECONDS, ge=0)

    @classmethod
    def from_options(cls, **options: Any) -> "RunConfig":
        """
        Build a config from invocation-time options.

        Options that are None fall back to the settings defaults. Any invalid
        value is reported as a ConfigurationError.
        """
        values = {k: v for k, v in options.items() if v is not None}
        try:
            return cls(**values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid run configuration: {problems}") from e

    def nemesis_params(self) -> NemesisParams:
        return NemesisParams(
            healthy_threshold=self.job_running_healthy_threshold,
            grace_period=self.job_recovery_grace_period,
            fault_interval=self.fault_interval,
            fault_count=self.fault_count,
            task_manager_count=self.task_manager_count,
            seed=self.seed
        )
