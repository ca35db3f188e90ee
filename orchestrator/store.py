"""In-memory store for pipeline run records."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from core import PipelineRunRecord, RunState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRunStore:
    """Thread-safe store for run records. Implements the run-recorder port."""

    def __init__(self) -> None:
        self._runs: Dict[str, PipelineRunRecord] = {}
        self._order: List[str] = []
        self._lock = Lock()

    def _put(self, row: PipelineRunRecord) -> PipelineRunRecord:
        if row.run_id not in self._runs:
            self._order.append(row.run_id)
        self._runs[row.run_id] = row
        return row.model_copy(deep=True)

    def start_run(self, record: PipelineRunRecord) -> PipelineRunRecord:
        with self._lock:
            row = record.model_copy(deep=True)
            row.status = RunState.RUNNING
            row.ended_at = None
            return self._put(row)

    def finish_run(self, record: PipelineRunRecord) -> PipelineRunRecord:
        with self._lock:
            row = record.model_copy(deep=True)
            row.ended_at = row.ended_at or _utcnow()
            return self._put(row)

    def get_run(self, run_id: str) -> Optional[PipelineRunRecord]:
        with self._lock:
            row = self._runs.get(run_id)
            return row.model_copy(deep=True) if row else None

    def list_runs(self, *, status: Optional[RunState] = None) -> List[PipelineRunRecord]:
        """Runs in start order, optionally filtered by status."""
        with self._lock:
            rows = [self._runs[run_id] for run_id in self._order]
            return [row.model_copy(deep=True) for row in rows if status is None or row.status == status]
