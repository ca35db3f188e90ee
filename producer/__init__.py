"""Producer orchestration core: quality gate, revision loop, fallback and run state machine."""

from .fallback import FALLBACK_SOURCE_LINKS, build_fallback, mutate_fallback_variant
from .link_probe import SourceLinkProber
from .normalize import compact_phrase, content_hash, normalize_draft, slugify, source_key
from .quality import evaluate
from .revision import Assessment, RevisionLoop, RevisionOutcome, needs_revision
from .runtime import ArticleProducer, new_run_id
from .structure import build_signature, count_duplicated_structure

__all__ = [
    "FALLBACK_SOURCE_LINKS",
    "ArticleProducer",
    "Assessment",
    "RevisionLoop",
    "RevisionOutcome",
    "SourceLinkProber",
    "build_fallback",
    "build_signature",
    "compact_phrase",
    "content_hash",
    "count_duplicated_structure",
    "evaluate",
    "mutate_fallback_variant",
    "needs_revision",
    "new_run_id",
    "normalize_draft",
    "slugify",
    "source_key",
]
