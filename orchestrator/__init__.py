"""Run orchestration around the producer: locking, queueing, run records."""

from .lock import FileLeaseLock, InMemoryLeaseLock, Lease, lease
from .queue import InMemoryRequestQueue
from .service import PipelineRunSummary, PipelineService, build_pipeline_service
from .store import InMemoryRunStore

__all__ = [
    "FileLeaseLock",
    "InMemoryLeaseLock",
    "InMemoryRequestQueue",
    "InMemoryRunStore",
    "Lease",
    "PipelineRunSummary",
    "PipelineService",
    "build_pipeline_service",
    "lease",
]
