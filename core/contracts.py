"""Canonical data contracts for the article producer pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from config.settings import DEFAULT_FORBIDDEN_TERMS


_SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
_WS_RE = re.compile(r"\s+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    out: List[str] = []
    for item in value:
        text = str(item or "").strip()
        if text:
            out.append(text)
    return out


class RunMode(str, Enum):
    """Trigger mode for a producer run."""

    ONDEMAND = "ondemand"
    SCHEDULED = "scheduled"
    EVAL = "eval"


class RunState(str, Enum):
    """Terminal/non-terminal state of a pipeline run record."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class ContentStatus(str, Enum):
    """Lifecycle status of a persisted article."""

    GENERATED = "generated"
    PUBLISHED = "published"
    FAILED = "failed"


class ArticleOrigin(str, Enum):
    """Which path produced the accepted article."""

    GENERATED = "generated"
    FALLBACK = "fallback"


class ProducerState(str, Enum):
    """Named states of the attempt/revision/fallback state machine."""

    OUTLINE_PENDING = "outline_pending"
    DRAFT_PENDING = "draft_pending"
    EVALUATING = "evaluating"
    REVISING = "revising"
    DEDUPING = "deduping"
    PERSISTING = "persisting"
    ATTEMPT_FAILED = "attempt_failed"
    FALLBACK_BUILD = "fallback_build"
    FALLBACK_EVALUATE = "fallback_evaluate"
    FALLBACK_DEDUPE = "fallback_dedupe"
    FALLBACK_PERSIST = "fallback_persist"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ProducerState.DONE, ProducerState.FAILED})
GENERATIVE_STATES = frozenset(
    {
        ProducerState.OUTLINE_PENDING,
        ProducerState.DRAFT_PENDING,
        ProducerState.EVALUATING,
        ProducerState.REVISING,
        ProducerState.DEDUPING,
        ProducerState.PERSISTING,
    }
)


class ProducerRequest(BaseModel):
    """One article to produce: a (topic, city, keyword) triple."""

    topic: str
    city: str
    keyword: str
    language: str = "en"

    @field_validator("topic", "city", "keyword", mode="before")
    @classmethod
    def _non_empty_text(cls, value: Any) -> str:
        text = _WS_RE.sub(" ", str(value or "")).strip()
        if not text:
            raise ValueError("value is required")
        return text

    @field_validator("language", mode="before")
    @classmethod
    def _language(cls, value: Any) -> str:
        return str(value or "").strip() or "en"

    @property
    def source_key(self) -> str:
        return f"{self.city}::{self.topic}::{self.keyword}".lower()


class ArticleOutline(BaseModel):
    """Outline returned by the generator before drafting."""

    title: str = ""
    audience: str = ""
    intent: str = ""
    sections: List[str] = Field(default_factory=list)
    decision_checklist: List[str] = Field(default_factory=list)
    key_takeaways: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
    faq_questions: List[str] = Field(default_factory=list)
    source_links: List[str] = Field(default_factory=list)

    @field_validator("title", "audience", "intent", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator(
        "sections",
        "decision_checklist",
        "key_takeaways",
        "common_mistakes",
        "faq_questions",
        "source_links",
        mode="before",
    )
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return _text_list(value)


class ArticleDraft(BaseModel):
    """Article candidate under evaluation. Lives inside a single attempt."""

    title: str = ""
    description: str = ""
    slug: str = Field(pattern=_SLUG_PATTERN)
    tags: List[str] = Field(min_length=1)
    audience: str = ""
    intent: str = ""
    key_takeaways: List[str] = Field(default_factory=list)
    decision_checklist: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
    evidence_notes: List[str] = Field(default_factory=list)
    content: str = ""
    source_links: List[str] = Field(default_factory=list)
    lastmod: datetime = Field(default_factory=_utcnow)

    @field_validator("title", "description", "audience", "intent", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator(
        "tags",
        "key_takeaways",
        "decision_checklist",
        "common_mistakes",
        "evidence_notes",
        "source_links",
        mode="before",
    )
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return _text_list(value)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: List[str]) -> List[str]:
        seen = set()
        out: List[str] = []
        for tag in value:
            if tag.lower() not in seen:
                seen.add(tag.lower())
                out.append(tag)
        return out

    @field_validator("lastmod")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class RuleFailure(BaseModel):
    """One failed quality rule."""

    rule: str
    message: str
    weight: int = 0
    severity: Literal["hard", "soft"] = "soft"


class DimensionScore(BaseModel):
    score: int
    max: int = 25
    notes: List[str] = Field(default_factory=list)


class QualityDimensions(BaseModel):
    """The fixed four scoring dimensions."""

    structure: DimensionScore
    specificity: DimensionScore
    anti_repetition: DimensionScore
    safety: DimensionScore

    def total(self) -> int:
        return (
            self.structure.score
            + self.specificity.score
            + self.anti_repetition.score
            + self.safety.score
        )


class QualityMetrics(BaseModel):
    """Raw measurements taken while evaluating a draft."""

    content_chars: int = 0
    description_chars: int = 0
    tags_count: int = 0
    heading_count: int = 0
    checklist_items: int = 0
    faq_questions: int = 0
    repeated_line_count: int = 0
    repeated_bigram_count: int = 0
    source_links_count: int = 0
    valid_source_links_count: int = 0
    reachable_source_links_count: int = 0
    duplicated_structure_count: int = 0


class QualityReport(BaseModel):
    """Evaluator output. Always recomputed from the current draft, never edited."""

    passed: bool
    checked_at: datetime = Field(default_factory=_utcnow)
    score_total: int
    score_max: int = 100
    min_score: int
    hard_failure_count: int
    soft_failure_count: int
    failure_codes: List[str] = Field(default_factory=list)
    failures: List[RuleFailure] = Field(default_factory=list)
    dimensions: QualityDimensions
    metrics: QualityMetrics

    def summary(self) -> Dict[str, int]:
        return {
            "score_total": self.score_total,
            "min_score": self.min_score,
            "hard": self.hard_failure_count,
            "soft": self.soft_failure_count,
        }


class QualityPolicy(BaseModel):
    """Policy knobs applied by the evaluator. One instance per run."""

    min_score: int = 70
    min_source_links: int = 2
    allow_unreachable_source_links: bool = True
    max_duplicated_structure_count: int = 3
    duplicated_structure_severity: Literal["hard", "soft"] = "soft"
    max_repeated_bigram_excess: int = 6
    forbidden_terms: List[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_TERMS))

    @classmethod
    def from_settings(cls, settings: Any) -> "QualityPolicy":
        return cls(
            min_score=settings.min_score,
            min_source_links=settings.min_source_links,
            allow_unreachable_source_links=settings.allow_unreachable_source_links,
            max_duplicated_structure_count=settings.max_duplicated_structure_count,
            duplicated_structure_severity=settings.duplicated_structure_severity,
            max_repeated_bigram_excess=settings.max_repeated_bigram_excess,
            forbidden_terms=list(settings.forbidden_terms),
        )


class QualityContext(BaseModel):
    """Facts measured outside the evaluator plus the policy to apply."""

    reachable_source_links_count: int = 0
    duplicated_structure_count: int = 0
    policy: QualityPolicy = Field(default_factory=QualityPolicy)


class StoredArticle(BaseModel):
    """Persisted article row, keyed by source_key."""

    id: str
    source_key: str
    topic: str
    city: str
    keyword: str
    language: str = "en"
    title: str
    description: str
    slug: str
    tags: List[str] = Field(default_factory=list)
    content: str
    source_links: List[str] = Field(default_factory=list)
    lastmod: datetime
    structure_signature: str = ""
    content_hash: str
    quality_score: int = 0
    quality_report: Optional[QualityReport] = None
    status: ContentStatus = ContentStatus.GENERATED
    origin: ArticleOrigin = ArticleOrigin.GENERATED
    prompt_version: str = ""
    model_version: str = ""
    raw_json: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    published_at: Optional[datetime] = None


class PipelineRunRecord(BaseModel):
    """Bookkeeping for one orchestrator run."""

    run_id: str
    mode: RunMode = RunMode.ONDEMAND
    status: RunState = RunState.RUNNING
    source_key: str = ""
    attempts_used: int = 0
    revisions_used: int = 0
    fallback_used: bool = False
    published_count: int = 0
    failed_count: int = 0
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None


class AttemptFailure(BaseModel):
    """Why one generative attempt was discarded."""

    attempt: int
    reason: str
    failure_codes: List[str] = Field(default_factory=list)
    score_total: Optional[int] = None


class StateTransition(BaseModel):
    from_state: ProducerState
    to_state: ProducerState
    attempt: int
    at: datetime = Field(default_factory=_utcnow)


class ProduceResult(BaseModel):
    """Terminal success of one run."""

    run_id: str
    article: StoredArticle
    report: QualityReport
    origin: ArticleOrigin
    attempts_used: int
    revisions_used: int
    attempt_failures: List[AttemptFailure] = Field(default_factory=list)
    trace: List[StateTransition] = Field(default_factory=list)

    def states(self) -> List[ProducerState]:
        if not self.trace:
            return []
        return [self.trace[0].from_state] + [item.to_state for item in self.trace]
