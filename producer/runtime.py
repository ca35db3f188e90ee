"""Attempt/revision/fallback state machine that produces one article per run."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from core import (
    GENERATIVE_STATES,
    TERMINAL_STATES,
    ArticleDraft,
    ArticleOrigin,
    ArticleOutline,
    AttemptFailure,
    ContentStatus,
    PipelineRunRecord,
    ProduceResult,
    ProducerRequest,
    ProducerState,
    QualityContext,
    QualityPolicy,
    RunMode,
    RunState,
    StateTransition,
    StoredArticle,
)
from producer.fallback import build_fallback, mutate_fallback_variant
from producer.link_probe import SourceLinkProber
from producer.normalize import content_hash, normalize_draft
from producer.ports import ArticleGenerator, ArticleRepository, LinkProber, RunRecorder
from producer.quality import evaluate
from producer.revision import Assessment, RevisionLoop, needs_revision
from producer.structure import build_signature, count_duplicated_structure
from utils.exceptions import (
    DuplicateContentError,
    FallbackQualityError,
    ProducerError,
    describe_error,
)

logger = logging.getLogger(__name__)

StateHandler = Callable[["_RunContext"], Awaitable[ProducerState]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"run_{_utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


@dataclass
class _RunContext:
    run_id: str
    request: ProducerRequest
    prober: LinkProber
    attempt: int = 1
    outline: Optional[ArticleOutline] = None
    last_outline: Optional[ArticleOutline] = None
    draft: Optional[ArticleDraft] = None
    assessment: Optional[Assessment] = None
    content_hash: str = ""
    origin: ArticleOrigin = ArticleOrigin.GENERATED
    revisions_used: int = 0
    variant_applied: bool = False
    pending_failure: Optional[AttemptFailure] = None
    attempt_failures: List[AttemptFailure] = field(default_factory=list)
    trace: List[StateTransition] = field(default_factory=list)
    article: Optional[StoredArticle] = None
    fatal: Optional[ProducerError] = None


class ArticleProducer:
    """Turn an unreliable generator into a bounded, always-terminating run.

    Each attempt drafts, normalizes, scores and optionally revises an article,
    then deduplicates it by content hash before persisting. Quality misses,
    hash collisions and generator exceptions each consume one attempt. Once
    ``max_attempts`` are spent the deterministic fallback is built; only a
    fallback that cannot be accepted surfaces as an error.
    """

    def __init__(
        self,
        generator: ArticleGenerator,
        repository: ArticleRepository,
        *,
        policy: Optional[QualityPolicy] = None,
        max_attempts: int = 3,
        max_revisions: int = 2,
        prober_factory: Optional[Callable[[], LinkProber]] = None,
        run_recorder: Optional[RunRecorder] = None,
        prompt_version: str = "v1",
        model_version: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._generator = generator
        self._repository = repository
        self.policy = policy or QualityPolicy()
        self.max_attempts = max(1, int(max_attempts))
        self.max_revisions = max(0, int(max_revisions))
        self._prober_factory = prober_factory or (lambda: SourceLinkProber(enabled=False))
        self._run_recorder = run_recorder
        self.prompt_version = prompt_version
        self.model_version = model_version or str(getattr(generator, "model_version", "") or "")
        self._clock = clock
        self._handlers: Dict[ProducerState, StateHandler] = {
            ProducerState.OUTLINE_PENDING: self._on_outline_pending,
            ProducerState.DRAFT_PENDING: self._on_draft_pending,
            ProducerState.EVALUATING: self._on_evaluating,
            ProducerState.REVISING: self._on_revising,
            ProducerState.DEDUPING: self._on_deduping,
            ProducerState.PERSISTING: self._on_persisting,
            ProducerState.ATTEMPT_FAILED: self._on_attempt_failed,
            ProducerState.FALLBACK_BUILD: self._on_fallback_build,
            ProducerState.FALLBACK_EVALUATE: self._on_fallback_evaluate,
            ProducerState.FALLBACK_DEDUPE: self._on_fallback_dedupe,
            ProducerState.FALLBACK_PERSIST: self._on_persisting,
        }

    def produce_sync(self, request: ProducerRequest, *, mode: RunMode = RunMode.ONDEMAND) -> ProduceResult:
        return asyncio.run(self.produce(request, mode=mode))

    async def produce(
        self,
        request: ProducerRequest,
        *,
        mode: RunMode = RunMode.ONDEMAND,
        run_id: Optional[str] = None,
    ) -> ProduceResult:
        """Run the state machine for ``request`` to DONE or FAILED.

        Raises:
            FallbackQualityError: the fallback article did not pass evaluation.
            DuplicateContentError: the fallback and its variant both collided.
        """
        ctx = _RunContext(
            run_id=run_id or new_run_id(),
            request=request,
            prober=self._prober_factory(),
        )
        record = PipelineRunRecord(run_id=ctx.run_id, mode=mode, source_key=request.source_key)
        if self._run_recorder is not None:
            self._run_recorder.start_run(record)
        logger.info(
            "run_start run_id=%s mode=%s source_key=%s max_attempts=%d",
            ctx.run_id,
            mode.value,
            request.source_key,
            self.max_attempts,
        )

        final_state = ProducerState.FAILED
        try:
            final_state = await self._drive(ctx)
        finally:
            self._finish_record(record, ctx, final_state)

        if final_state != ProducerState.DONE or ctx.article is None or ctx.assessment is None:
            error = ctx.fatal or FallbackQualityError("run ended without an accepted article")
            logger.error("run_failed run_id=%s error=%s", ctx.run_id, describe_error(error))
            raise error

        logger.info(
            "run_completed run_id=%s origin=%s article_id=%s score=%d attempts=%d revisions=%d",
            ctx.run_id,
            ctx.origin.value,
            ctx.article.id,
            ctx.assessment.report.score_total,
            ctx.attempt,
            ctx.revisions_used,
        )
        return ProduceResult(
            run_id=ctx.run_id,
            article=ctx.article,
            report=ctx.assessment.report,
            origin=ctx.origin,
            attempts_used=ctx.attempt,
            revisions_used=ctx.revisions_used,
            attempt_failures=list(ctx.attempt_failures),
            trace=list(ctx.trace),
        )

    async def _drive(self, ctx: _RunContext) -> ProducerState:
        state = ProducerState.OUTLINE_PENDING
        logger.info("attempt_started run_id=%s attempt=%d", ctx.run_id, ctx.attempt)
        while state not in TERMINAL_STATES:
            logger.debug("phase_started run_id=%s attempt=%d state=%s", ctx.run_id, ctx.attempt, state.value)
            try:
                next_state = await self._handlers[state](ctx)
            except Exception as exc:
                next_state = self._on_error(ctx, state, exc)
            else:
                logger.debug("phase_completed run_id=%s attempt=%d state=%s", ctx.run_id, ctx.attempt, state.value)
            ctx.trace.append(StateTransition(from_state=state, to_state=next_state, attempt=ctx.attempt))
            if next_state == ProducerState.OUTLINE_PENDING:
                logger.info("attempt_started run_id=%s attempt=%d", ctx.run_id, ctx.attempt)
            state = next_state
        return state

    def _on_error(self, ctx: _RunContext, state: ProducerState, exc: Exception) -> ProducerState:
        if state in GENERATIVE_STATES:
            ctx.pending_failure = AttemptFailure(
                attempt=ctx.attempt,
                reason=f"{state.value}: {describe_error(exc)}",
                failure_codes=[type(exc).__name__],
            )
            logger.warning(
                "attempt_error run_id=%s attempt=%d state=%s error=%s",
                ctx.run_id,
                ctx.attempt,
                state.value,
                describe_error(exc),
            )
            return ProducerState.ATTEMPT_FAILED

        if isinstance(exc, ProducerError):
            ctx.fatal = exc
        else:
            ctx.fatal = FallbackQualityError(
                f"fallback failed in {state.value}: {describe_error(exc)}",
                run_id=ctx.run_id,
            )
            ctx.fatal.__cause__ = exc
        return ProducerState.FAILED

    async def _assess(self, ctx: _RunContext, draft: ArticleDraft) -> Assessment:
        """Normalize ``draft`` and score it with freshly measured facts."""
        normalized = normalize_draft(draft)
        signature = build_signature(normalized.content)
        duplicated = count_duplicated_structure(signature, self._repository)
        reachable = await ctx.prober.probe(normalized.source_links)
        report = evaluate(
            normalized,
            QualityContext(
                reachable_source_links_count=len(reachable),
                duplicated_structure_count=duplicated,
                policy=self.policy,
            ),
            checked_at=self._clock(),
        )
        logger.info(
            "quality_evaluated run_id=%s attempt=%d score=%d min=%d hard=%d soft=%d passed=%s codes=%s",
            ctx.run_id,
            ctx.attempt,
            report.score_total,
            report.min_score,
            report.hard_failure_count,
            report.soft_failure_count,
            report.passed,
            ",".join(report.failure_codes),
        )
        return Assessment(draft=normalized, report=report, signature=signature)

    def _quality_miss(self, ctx: _RunContext, assessment: Assessment) -> ProducerState:
        report = assessment.report
        ctx.pending_failure = AttemptFailure(
            attempt=ctx.attempt,
            reason=f"quality gate: score {report.score_total}/{report.min_score}, hard={report.hard_failure_count}",
            failure_codes=list(report.failure_codes),
            score_total=report.score_total,
        )
        return ProducerState.ATTEMPT_FAILED

    # generative path

    async def _on_outline_pending(self, ctx: _RunContext) -> ProducerState:
        req = ctx.request
        outline = await self._generator.generate_outline(req.topic, req.city, req.keyword, req.language)
        ctx.outline = outline
        ctx.last_outline = outline
        return ProducerState.DRAFT_PENDING

    async def _on_draft_pending(self, ctx: _RunContext) -> ProducerState:
        req = ctx.request
        ctx.draft = await self._generator.generate_draft(ctx.outline, req.topic, req.city, req.keyword, req.language)
        return ProducerState.EVALUATING

    async def _on_evaluating(self, ctx: _RunContext) -> ProducerState:
        ctx.assessment = await self._assess(ctx, ctx.draft)
        report = ctx.assessment.report
        if report.passed:
            return ProducerState.DEDUPING
        if needs_revision(report) and self.max_revisions > 0:
            return ProducerState.REVISING
        return self._quality_miss(ctx, ctx.assessment)

    async def _on_revising(self, ctx: _RunContext) -> ProducerState:
        loop = RevisionLoop(
            self._generator,
            lambda draft: self._assess(ctx, draft),
            max_revisions=self.max_revisions,
        )
        try:
            outcome = await loop.run(ctx.assessment, language=ctx.request.language, run_id=ctx.run_id, attempt=ctx.attempt)
        finally:
            ctx.revisions_used += loop.revisions_used
        # final pass on the normalized output of the loop
        ctx.assessment = await self._assess(ctx, outcome.assessment.draft)
        ctx.draft = ctx.assessment.draft
        if ctx.assessment.report.passed:
            return ProducerState.DEDUPING
        return self._quality_miss(ctx, ctx.assessment)

    async def _on_deduping(self, ctx: _RunContext) -> ProducerState:
        digest = content_hash(ctx.assessment.draft)
        owner = self._repository.find_by_content_hash(digest)
        if owner is not None and owner.source_key != ctx.request.source_key:
            ctx.pending_failure = AttemptFailure(
                attempt=ctx.attempt,
                reason=f"duplicate content hash owned by {owner.source_key}",
                failure_codes=["duplicate-content"],
                score_total=ctx.assessment.report.score_total,
            )
            return ProducerState.ATTEMPT_FAILED
        ctx.content_hash = digest
        return ProducerState.PERSISTING

    async def _on_persisting(self, ctx: _RunContext) -> ProducerState:
        article = self._to_article(ctx)
        stored = self._repository.upsert(article, ContentStatus.GENERATED)
        published = self._repository.mark_published([stored.id])
        ctx.article = published[0] if published else stored
        return ProducerState.DONE

    async def _on_attempt_failed(self, ctx: _RunContext) -> ProducerState:
        failure = ctx.pending_failure or AttemptFailure(attempt=ctx.attempt, reason="unknown")
        ctx.attempt_failures.append(failure)
        ctx.pending_failure = None
        logger.warning(
            "attempt_failed run_id=%s attempt=%d/%d reason=%s",
            ctx.run_id,
            ctx.attempt,
            self.max_attempts,
            failure.reason,
        )
        if ctx.attempt >= self.max_attempts:
            return ProducerState.FALLBACK_BUILD
        ctx.attempt += 1
        ctx.outline = None
        ctx.draft = None
        ctx.assessment = None
        ctx.content_hash = ""
        return ProducerState.OUTLINE_PENDING

    # fallback path

    async def _on_fallback_build(self, ctx: _RunContext) -> ProducerState:
        logger.warning(
            "fallback_started run_id=%s attempts=%d seeded=%s",
            ctx.run_id,
            ctx.attempt,
            ctx.last_outline is not None,
        )
        ctx.origin = ArticleOrigin.FALLBACK
        ctx.draft = build_fallback(
            ctx.request,
            now=self._clock(),
            prior_outline=ctx.last_outline,
            forbidden_terms=self.policy.forbidden_terms,
        )
        return ProducerState.FALLBACK_EVALUATE

    async def _on_fallback_evaluate(self, ctx: _RunContext) -> ProducerState:
        ctx.assessment = await self._assess(ctx, ctx.draft)
        report = ctx.assessment.report
        if not report.passed:
            raise FallbackQualityError(
                "fallback article failed quality gate",
                failure_codes=report.failure_codes,
                run_id=ctx.run_id,
                score_total=report.score_total,
            )
        return ProducerState.FALLBACK_DEDUPE

    async def _on_fallback_dedupe(self, ctx: _RunContext) -> ProducerState:
        digest = content_hash(ctx.assessment.draft)
        owner = self._repository.find_by_content_hash(digest)
        if owner is None or owner.source_key == ctx.request.source_key:
            ctx.content_hash = digest
            return ProducerState.FALLBACK_PERSIST
        if ctx.variant_applied:
            raise DuplicateContentError(
                "fallback variant still collides with an existing article",
                content_hash=digest,
                owner=owner.source_key,
                run_id=ctx.run_id,
            )
        logger.warning("fallback_collision run_id=%s owner=%s", ctx.run_id, owner.source_key)
        ctx.variant_applied = True
        ctx.draft = mutate_fallback_variant(ctx.assessment.draft, ctx.run_id, ctx.request.city)
        return ProducerState.FALLBACK_EVALUATE

    def _to_article(self, ctx: _RunContext) -> StoredArticle:
        draft = ctx.assessment.draft
        report = ctx.assessment.report
        req = ctx.request
        now = self._clock()
        return StoredArticle(
            id=f"art_{uuid4().hex[:12]}",
            source_key=req.source_key,
            topic=req.topic,
            city=req.city,
            keyword=req.keyword,
            language=req.language,
            title=draft.title,
            description=draft.description,
            slug=draft.slug,
            tags=list(draft.tags),
            content=draft.content,
            source_links=list(draft.source_links),
            lastmod=draft.lastmod,
            structure_signature=ctx.assessment.signature,
            content_hash=ctx.content_hash,
            quality_score=report.score_total,
            quality_report=report,
            origin=ctx.origin,
            prompt_version=self.prompt_version,
            model_version="fallback" if ctx.origin == ArticleOrigin.FALLBACK else self.model_version,
            raw_json=draft.model_dump(mode="json"),
            created_at=now,
            updated_at=now,
        )

    def _finish_record(self, record: PipelineRunRecord, ctx: _RunContext, final_state: ProducerState) -> None:
        record.status = RunState.SUCCESS if final_state == ProducerState.DONE else RunState.FAILED
        record.attempts_used = ctx.attempt
        record.revisions_used = ctx.revisions_used
        record.fallback_used = ctx.origin == ArticleOrigin.FALLBACK
        record.published_count = 1 if final_state == ProducerState.DONE and ctx.article is not None else 0
        record.failed_count = len(ctx.attempt_failures) + (0 if final_state == ProducerState.DONE else 1)
        if ctx.fatal is not None:
            record.error_message = str(ctx.fatal)
        elif final_state != ProducerState.DONE:
            record.error_message = "run interrupted"
        record.ended_at = _utcnow()
        if self._run_recorder is not None:
            self._run_recorder.finish_run(record)


