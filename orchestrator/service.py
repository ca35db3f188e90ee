"""Pipeline service: lease lock, request queue, producer runs and critical alerts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core import ProduceResult, ProducerRequest, QualityPolicy, RunMode
from producer.link_probe import SourceLinkProber
from producer.notification import AlertNotifier
from producer.ports import ArticleGenerator, ArticleRepository
from producer.runtime import ArticleProducer
from utils.exceptions import LockUnavailableError, describe_error

from .lock import FileLeaseLock, InMemoryLeaseLock, lease
from .queue import InMemoryRequestQueue
from .store import InMemoryRunStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineRunSummary:
    """Outcome of one locked pipeline pass over one or more requests."""

    owner: str
    mode: RunMode
    skipped: bool = False
    results: List[ProduceResult] = field(default_factory=list)
    failures: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "mode": self.mode.value,
            "skipped": self.skipped,
            "published": [
                {
                    "run_id": item.run_id,
                    "source_key": item.article.source_key,
                    "article_id": item.article.id,
                    "slug": item.article.slug,
                    "origin": item.origin.value,
                    "score": item.report.score_total,
                    "attempts": item.attempts_used,
                    "revisions": item.revisions_used,
                }
                for item in self.results
            ],
            "failures": [dict(item) for item in self.failures],
        }


class PipelineService:
    """Serialize producer runs behind a lease lock and alert on fatal failures."""

    def __init__(
        self,
        producer: ArticleProducer,
        *,
        lock: Optional[Any] = None,
        lock_key: str = "424242",
        lease_seconds: float = 1200,
        queue: Optional[InMemoryRequestQueue] = None,
        notifier: Optional[AlertNotifier] = None,
    ) -> None:
        self._producer = producer
        self._lock = lock or InMemoryLeaseLock()
        self.lock_key = str(lock_key)
        self.lease_seconds = float(lease_seconds)
        self._queue = queue or InMemoryRequestQueue()
        self._notifier = notifier or AlertNotifier()

    def enqueue(self, request: ProducerRequest) -> bool:
        queued = self._queue.enqueue(request)
        logger.info("request_enqueued source_key=%s queued=%s size=%d", request.source_key, queued, self._queue.size())
        return queued

    def queue_size(self) -> int:
        return self._queue.size()

    def run_once(self, request: ProducerRequest, *, mode: RunMode = RunMode.ONDEMAND) -> PipelineRunSummary:
        return asyncio.run(self.arun([request], mode=mode))

    def run_queued(self, *, mode: RunMode = RunMode.SCHEDULED) -> PipelineRunSummary:
        return asyncio.run(self.arun_queued(mode=mode))

    async def arun_queued(self, *, mode: RunMode = RunMode.SCHEDULED) -> PipelineRunSummary:
        requests: List[ProducerRequest] = []
        while True:
            request = self._queue.dequeue()
            if request is None:
                break
            requests.append(request)
        return await self.arun(requests, mode=mode)

    async def arun(self, requests: List[ProducerRequest], *, mode: RunMode = RunMode.ONDEMAND) -> PipelineRunSummary:
        """Produce every request while holding the pipeline lock.

        A held lock skips the pass instead of waiting. One failing request does
        not stop the rest; it is reported through a critical alert. The lease
        is renewed before each request after the first; if it was lost in the
        meantime the remaining requests go back on the queue.
        """
        owner = f"worker_{uuid4().hex[:8]}"
        summary = PipelineRunSummary(owner=owner, mode=mode)
        try:
            with lease(self._lock, self.lock_key, owner, self.lease_seconds):
                for index, request in enumerate(requests):
                    if index and not self._lock.try_acquire(self.lock_key, owner, self.lease_seconds):
                        logger.warning("lease_lost key=%s owner=%s requeued=%d", self.lock_key, owner, len(requests) - index)
                        for pending in requests[index:]:
                            self._queue.enqueue(pending)
                        break
                    await self._produce_one(request, mode, summary)
        except LockUnavailableError as exc:
            logger.warning("pipeline_skipped reason=lock_held key=%s detail=%s", self.lock_key, exc)
            summary.skipped = True
            for request in requests:
                self._queue.enqueue(request)
        return summary

    async def _produce_one(self, request: ProducerRequest, mode: RunMode, summary: PipelineRunSummary) -> None:
        try:
            result = await self._producer.produce(request, mode=mode)
        except Exception as exc:
            error = describe_error(exc)
            logger.exception("pipeline_request_failed source_key=%s error=%s", request.source_key, error)
            summary.failures.append({"source_key": request.source_key, "error": error})
            await self._notifier.send_critical(
                "Article pipeline failed",
                f"{request.source_key}: {error}",
                context={"mode": mode.value, "owner": summary.owner},
            )
            return
        summary.results.append(result)


def build_pipeline_service(
    *,
    settings=None,
    generator: Optional[ArticleGenerator] = None,
    repository: Optional[ArticleRepository] = None,
    run_store: Optional[InMemoryRunStore] = None,
) -> PipelineService:
    """Wire a service from settings. The LLM generator is created lazily from config."""
    from config import get_settings
    from storage import InMemoryArticleStore, JsonFileArticleStore

    settings = settings or get_settings()
    if repository is None:
        if settings.storage.backend == "json":
            repository = JsonFileArticleStore(settings.storage.articles_path)
        else:
            repository = InMemoryArticleStore()
    if generator is None:
        from generation import LLMArticleGenerator
        from generation.llm import get_llm

        generator = LLMArticleGenerator(get_llm(), prompt_version=settings.producer.prompt_version)

    producer = ArticleProducer(
        generator,
        repository,
        policy=QualityPolicy.from_settings(settings.quality),
        max_attempts=settings.producer.max_attempts,
        max_revisions=settings.producer.max_revisions,
        prober_factory=lambda: SourceLinkProber.from_settings(settings.probe),
        run_recorder=run_store or InMemoryRunStore(),
        prompt_version=settings.producer.prompt_version,
    )
    return PipelineService(
        producer,
        lock=FileLeaseLock(settings.lock.path),
        lock_key=settings.lock.key,
        lease_seconds=settings.lock.lease_seconds,
        notifier=AlertNotifier.from_settings(settings.alert),
    )
