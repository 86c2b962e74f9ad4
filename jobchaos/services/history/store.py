"""
Run store.

Every run gets its own directory under ``<store>/<test-name>/<timestamp>/``
containing:
- history.jsonl: one operation record per line, in merged order
- results.json: the verdict
- report.md: the human-readable report
"""

import json
import structlog
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from jobchaos.services.history.history import History

logger = structlog.get_logger()


class RunStore:
    """Writes run artefacts to the local filesystem."""

    def __init__(self, base_dir: str, test_name: str):
        self.base_dir = Path(base_dir)
        self.test_name = test_name

    def run_dir(self, started_at: datetime) -> Path:
        return self.base_dir / self.test_name / started_at.strftime("%Y%m%dT%H%M%S.%f")

    def save(
        self,
        history: History,
        results: dict,
        report: Optional[str] = None,
        started_at: Optional[datetime] = None
    ) -> Path:
        """
        Persist a finished run.

        Args:
            history: The run history
            results: JSON-serialisable verdict payload
            report: Optional Markdown report
            started_at: Run start, used to name the directory

        Returns:
            The directory the artefacts were written to
        """
        path = self.run_dir(started_at or datetime.now(timezone.utc))
        path.mkdir(parents=True, exist_ok=True)

        with open(path / "history.jsonl", "w") as fh:
            for op in history:
                fh.write(op.model_dump_json())
                fh.write("\n")

        with open(path / "results.json", "w") as fh:
            json.dump(results, fh, indent=2, default=str)

        if report is not None:
            (path / "report.md").write_text(report)

        logger.info("Run stored", path=str(path), operations=len(history))
        return path
