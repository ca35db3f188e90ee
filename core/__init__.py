"""Core contracts and shared types for the article producer."""

from .contracts import (
    GENERATIVE_STATES,
    TERMINAL_STATES,
    ArticleDraft,
    ArticleOrigin,
    ArticleOutline,
    AttemptFailure,
    ContentStatus,
    DimensionScore,
    PipelineRunRecord,
    ProduceResult,
    ProducerRequest,
    ProducerState,
    QualityContext,
    QualityDimensions,
    QualityMetrics,
    QualityPolicy,
    QualityReport,
    RuleFailure,
    RunMode,
    RunState,
    StateTransition,
    StoredArticle,
)

__all__ = [
    "GENERATIVE_STATES",
    "TERMINAL_STATES",
    "ArticleDraft",
    "ArticleOrigin",
    "ArticleOutline",
    "AttemptFailure",
    "ContentStatus",
    "DimensionScore",
    "PipelineRunRecord",
    "ProduceResult",
    "ProducerRequest",
    "ProducerState",
    "QualityContext",
    "QualityDimensions",
    "QualityMetrics",
    "QualityPolicy",
    "QualityReport",
    "RuleFailure",
    "RunMode",
    "RunState",
    "StateTransition",
    "StoredArticle",
]
