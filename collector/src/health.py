"""
Health file writer for the collector.

Writes a JSON health file at a configurable path with five fields:
- last_run_ts: ISO timestamp of the most recent run attempt.
- last_success_ts: ISO timestamp of the most recent successful run.
- last_date: Record date (YYYY-MM-DD) of the most recent run attempt.
- last_outcome: Reconcile outcome of the last run, or "failed".
- consecutive_failures: Failed runs since the last success.

The file is rewritten on every state change, providing a simple liveness
signal that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes collector run status to a JSON file.

    Each recording method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest run.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_run_ts: str | None = None
        self._last_success_ts: str | None = None
        self._last_date: str | None = None
        self._last_outcome: str | None = None
        self._consecutive_failures: int = 0

    def record_success(self, day: str, outcome: str) -> None:
        """Record a successful run for *day* and write health file."""
        now = datetime.now(tz=UTC).isoformat()
        self._last_run_ts = now
        self._last_success_ts = now
        self._last_date = day
        self._last_outcome = outcome
        self._consecutive_failures = 0
        self._write()

    def record_failure(self, day: str) -> None:
        """Record a failed run for *day* and write health file."""
        self._last_run_ts = datetime.now(tz=UTC).isoformat()
        self._last_date = day
        self._last_outcome = "failed"
        self._consecutive_failures += 1
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_run_ts": self._last_run_ts,
            "last_success_ts": self._last_success_ts,
            "last_date": self._last_date,
            "last_outcome": self._last_outcome,
            "consecutive_failures": self._consecutive_failures,
        }
        self.path.write_text(json.dumps(data))
