"""Command line entry point."""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import structlog

from jobchaos.config import settings
from jobchaos.errors import ClusterUnavailableError, ConfigurationError, allowed_values_help_text
from jobchaos.services.cluster.components import list_available_components, load_test_spec
from jobchaos.services.cluster.simulated import build_simulated_cluster
from jobchaos.services.generators.client import CLIENT_GENERATORS, list_client_generators
from jobchaos.services.history.store import RunStore
from jobchaos.services.nemesis.strategies import NEMESIS_GENERATOR_FACTORIES, list_nemesis_generators
from jobchaos.services.orchestration.clock import RunClock
from jobchaos.services.orchestration.config import RunConfig
from jobchaos.services.orchestration.orchestrator import TestOrchestrator
from jobchaos.services.orchestration.reporter import RunReporter

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_CONFIGURATION_ERROR = 2


def configure_logging(level: str = settings.LOG_LEVEL, fmt: str = settings.LOG_FORMAT) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())
    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="job-chaos",
        description="Fault-injection tests for a job-processing cluster"
    )
    parser.add_argument("--version", action="version", version=f"{settings.APP_NAME} {settings.APP_VERSION}")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    parser.add_argument("--log-format", default=settings.LOG_FORMAT, choices=["json", "console"])
    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", help="Run a single chaos test")
    test.add_argument("--test-spec", required=True, metavar="FILE",
                      help="Path to a test specification (.json)")
    test.add_argument("--ha-storage-dir", metavar="DIR", help="high-availability.storageDir")
    test.add_argument("--nemesis-gen", default=settings.NEMESIS_GEN, metavar="GEN",
                      help="Which nemesis should be used? "
                      + allowed_values_help_text(NEMESIS_GENERATOR_FACTORIES))
    test.add_argument("--client-gen", default=settings.CLIENT_GEN, metavar="GEN",
                      help="Which client should be used? "
                      + allowed_values_help_text(CLIENT_GENERATORS))
    test.add_argument("--job-running-healthy-threshold", type=int, metavar="TIMES",
                      default=settings.JOB_RUNNING_HEALTHY_THRESHOLD,
                      help="Number of consecutive times the job must be running to be considered healthy.")
    test.add_argument("--job-recovery-grace-period", type=int, metavar="SECONDS",
                      default=settings.JOB_RECOVERY_GRACE_PERIOD,
                      help="Time period in which the job must become healthy.")
    test.add_argument("--time-limit", type=float, metavar="SECONDS",
                      default=settings.RUN_TIME_LIMIT_SECONDS,
                      help="Outer time budget of the run.")
    test.add_argument("--time-scale", type=float, default=settings.TIME_SCALE,
                      help="Real seconds per time unit.")
    test.add_argument("--store-dir", default=settings.STORE_DIR, metavar="DIR")
    test.add_argument("--seed", type=int, default=settings.NEMESIS_SEED)

    subparsers.add_parser("list", help="List client generators, nemeses and cluster components")
    return parser


def list_registries() -> str:
    lines = ["Client generators:"]
    lines += [f"  {name:32} {doc}" for name, doc in list_client_generators().items()]
    lines.append("Nemesis generators:")
    lines += [f"  {name:32} {doc}" for name, doc in list_nemesis_generators().items()]
    lines.append("Cluster components:")
    lines += [f"  {c['name']:32} {c['description']}" for c in list_available_components()]
    return "\n".join(lines)


def run_test(args: argparse.Namespace) -> int:
    test_spec = load_test_spec(args.test_spec)
    config = RunConfig.from_options(
        test_spec=test_spec,
        ha_storage_dir=args.ha_storage_dir,
        nemesis_gen=args.nemesis_gen,
        client_gen=args.client_gen,
        job_running_healthy_threshold=args.job_running_healthy_threshold,
        job_recovery_grace_period=args.job_recovery_grace_period,
        time_limit=args.time_limit,
        time_scale=args.time_scale,
        seed=args.seed
    )
    clock = RunClock(config.time_scale)
    _, lifecycle, client, nemesis = build_simulated_cluster(
        test_spec.components,
        now=clock.now,
        recovery_time=config.simulated_recovery_time,
        task_manager_count=config.task_manager_count,
        ha_storage_dir=config.ha_storage_dir,
        setup_retries=config.setup_retries,
        seed=config.seed
    )
    orchestrator = TestOrchestrator(
        config,
        lifecycle=lifecycle,
        client=client,
        nemesis=nemesis,
        clock=clock,
        store=RunStore(args.store_dir, config.test_name)
    )

    result = asyncio.run(orchestrator.run())
    print(RunReporter().generate_report(result))
    return EXIT_PASS if result.success else EXIT_FAIL


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    if args.command == "list":
        print(list_registries())
        return EXIT_PASS

    try:
        return run_test(args)
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except ClusterUnavailableError as e:
        logger.error("Cluster unavailable", error=str(e))
        return EXIT_FAIL


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
