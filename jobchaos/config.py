"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Job Chaos"
    APP_VERSION: str = "1.0.0"
    TEST_NAME: str = "flink"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" or "console"

    # Generators
    CLIENT_GEN: str = "poll-job-running"
    NEMESIS_GEN: str = "kill-task-managers"
    POLL_INTERVAL_SECONDS: float = 5.0
    CANCEL_AFTER_SECONDS: float = 15.0

    # Recovery model
    JOB_RUNNING_HEALTHY_THRESHOLD: int = 5
    JOB_RECOVERY_GRACE_PERIOD: int = 180
    MIN_JOB_RECOVERY_GRACE_PERIOD: int = 60

    # Nemesis schedule
    FAULT_INTERVAL_SECONDS: float = 30.0
    FAULT_COUNT: int = 3
    NEMESIS_SEED: int = 0

    # Run budget; 1 time unit = TIME_SCALE real seconds
    RUN_TIME_LIMIT_SECONDS: float = 900.0
    TIME_SCALE: float = 1.0

    # Cluster
    CLUSTER_SETUP_RETRIES: int = 3
    TASK_MANAGER_COUNT: int = 3
    SIMULATED_RECOVERY_SECONDS: float = 20.0

    # Results store
    STORE_DIR: str = "store"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
