"""
Run Reporter - Generates reports for chaos test runs.

Produces:
- Markdown reports for the terminal and the run store
- JSON payloads (results.json)
- Metrics summaries
"""

import json
from typing import Any, Dict, Optional

from jobchaos.services.checker.models import RecoveryMetrics
from jobchaos.services.orchestration.models import RunResult


def _units(value: Optional[float]) -> str:
    return f"{value:.1f}" if value is not None else "N/A"


class RunReporter:
    """Formats a RunResult as Markdown or JSON."""

    def generate_report(self, result: RunResult, format: str = "markdown") -> str:
        """
        Generate a report for a run.

        Args:
            result: The run result to report on
            format: Output format ("markdown" or "json")

        Returns:
            Formatted report string
        """
        if format == "json":
            return json.dumps(self.to_dict(result), indent=2, default=str)
        return self._generate_markdown_report(result)

    def _generate_markdown_report(self, result: RunResult) -> str:
        verdict = result.verdict
        metrics = verdict.metrics
        config = result.config
        stop_reason = result.stop_reason.value if result.stop_reason else "N/A"

        report = f"""# Chaos Test Report

## Run Details

| Field | Value |
|-------|-------|
| **Test** | {result.test_name} |
| **Client Generator** | `{config.client_gen}` |
| **Nemesis Generator** | `{config.nemesis_gen}` |
| **Components** | {", ".join(config.test_spec.dbs) if config.test_spec else "N/A"} |
| **Healthy Threshold** | {config.job_running_healthy_threshold} |
| **Grace Period** | {config.job_recovery_grace_period} |
| **Started** | {result.started_at.isoformat()} |
| **Completed** | {result.completed_at.isoformat()} |
| **Duration** | {_units(result.duration)} |
| **Stop Reason** | {stop_reason} |

---

## Recovery Metrics

| Metric | Value |
|--------|-------|
| **Client Operations** | {result.client_operations} |
| **Faults Injected** | {result.faults_injected} |
| **Faults Observed** | {metrics.faults_observed} |
| **Recoveries** | {metrics.recoveries} |
| **Health Samples** | {metrics.health_samples} |
| **Availability** | {metrics.availability:.1%} |
| **Mean Time To Recovery** | {_units(metrics.mean_time_to_recovery)} |
| **Max Time To Recovery** | {_units(metrics.max_time_to_recovery)} |

---

## Verdict

**{"PASS" if verdict.valid else "FAIL"}**
"""

        if not verdict.valid:
            report += f"\n- Reason: {verdict.reason}\n"
            if verdict.window is not None:
                report += (
                    f"- Violating window: [{verdict.window.fault_end:g}, "
                    f"{verdict.window.deadline:g}]\n"
                )
            report += f"- Checker state: `{verdict.final_state.value}`\n"

        return report

    def to_dict(self, result: RunResult) -> Dict[str, Any]:
        """JSON-serialisable view of a run result."""
        verdict = result.verdict
        return {
            "test_name": result.test_name,
            "valid": verdict.valid,
            "status": verdict.status.value,
            "reason": verdict.reason,
            "window": verdict.window.model_dump() if verdict.window else None,
            "final_state": verdict.final_state.value,
            "stop_reason": result.stop_reason.value if result.stop_reason else None,
            "started_at": result.started_at.isoformat(),
            "completed_at": result.completed_at.isoformat(),
            "duration": result.duration,
            "client_operations": result.client_operations,
            "faults_injected": result.faults_injected,
            "config": result.config.model_dump(mode="json"),
            "metrics": self.generate_metrics_summary(verdict.metrics),
        }

    def generate_metrics_summary(self, metrics: RecoveryMetrics) -> Dict[str, Any]:
        """Summary dictionary of recovery metrics."""
        return {
            "faults": {
                "observed": metrics.faults_observed,
                "recovered": metrics.recoveries,
            },
            "health": {
                "samples": metrics.health_samples,
                "healthy": metrics.healthy_samples,
                "availability": round(metrics.availability, 3),
            },
            "time_to_recovery": {
                "mean": round(metrics.mean_time_to_recovery, 1) if metrics.mean_time_to_recovery is not None else None,
                "min": round(metrics.min_time_to_recovery, 1) if metrics.min_time_to_recovery is not None else None,
                "max": round(metrics.max_time_to_recovery, 1) if metrics.max_time_to_recovery is not None else None,
            },
        }
