"""Deterministic quality scoring for article drafts.

Four dimensions of 25 points each (structure, specificity, anti-repetition,
safety). Every failed rule deducts its weight from its dimension, clamped at
zero. A draft passes when it has no hard failures and its total reaches the
policy minimum.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
import re
from typing import Dict, Iterable, List, Optional

from core import (
    ArticleDraft,
    DimensionScore,
    QualityContext,
    QualityDimensions,
    QualityMetrics,
    QualityReport,
    RuleFailure,
)
from producer.sanitize import normalize_source_links
from producer.structure import heading_lines


DIMENSION_MAX = 25
MIN_CONTENT_CHARS = 800
DESCRIPTION_RANGE = (80, 180)
TAGS_RANGE = (3, 8)
MIN_HEADINGS = 4
MIN_SPECIFIC_TEXT = 10
MIN_KEY_TAKEAWAYS = 3
MIN_CHECKLIST_ITEMS = 4
MIN_COMMON_MISTAKES = 3
MIN_EVIDENCE_NOTES = 2
MIN_FAQ_QUESTIONS = 2
REPEATED_LINE_MIN_CHARS = 24
MAX_REPEATED_LINES = 1
BIGRAM_FREE_OCCURRENCES = 3

_FAQ_HEADING_RE = re.compile(r"^#{2,4}\s+.*[?？]\s*$")
_WS_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[\W_]+")

# rule -> (dimension, weight, severity)
RULES: Dict[str, tuple] = {
    "title-required": ("structure", 4, "hard"),
    "description-required": ("structure", 3, "hard"),
    "content-required": ("structure", 3, "hard"),
    "content-min-length": ("structure", 5, "hard"),
    "description-range": ("structure", 3, "soft"),
    "tags-range": ("structure", 3, "soft"),
    "heading-count": ("structure", 4, "soft"),
    "source-links-minimum": ("structure", 3, "soft"),
    "audience-specificity": ("specificity", 5, "soft"),
    "intent-specificity": ("specificity", 5, "soft"),
    "key-takeaways-quality": ("specificity", 5, "soft"),
    "decision-checklist-quality": ("specificity", 5, "soft"),
    "common-mistakes-quality": ("specificity", 5, "soft"),
    "repeated-lines": ("anti_repetition", 10, "soft"),
    "repeated-bigrams": ("anti_repetition", 8, "soft"),
    "faq-presence": ("anti_repetition", 4, "soft"),
    "evidence-notes": ("anti_repetition", 3, "soft"),
    "duplicated-structure": ("anti_repetition", 5, "soft"),
    "forbidden-term": ("safety", 25, "hard"),
}


def _normalize_line(value: str) -> str:
    return _WS_RE.sub(" ", str(value or "")).strip().lower()


def _unique_count(items: Iterable[str]) -> int:
    return len({_normalize_line(item) for item in items if _normalize_line(item)})


def count_repeated_lines(content: str) -> int:
    """Extra occurrences of long lines, compared case/whitespace-insensitively."""
    counts = Counter(
        line
        for line in (_normalize_line(raw) for raw in str(content or "").splitlines())
        if len(line) >= REPEATED_LINE_MIN_CHARS
    )
    return sum(count - 1 for count in counts.values() if count > 1)


def tokenize(content: str) -> List[str]:
    words = _TOKEN_SPLIT_RE.sub(" ", str(content or "").lower()).split()
    return [word for word in words if len(word) > 2]


def count_bigram_excess(content: str) -> int:
    """Occurrences beyond the free allowance, summed over all bigrams."""
    tokens = tokenize(content)
    counts = Counter(zip(tokens, tokens[1:]))
    return sum(count - BIGRAM_FREE_OCCURRENCES for count in counts.values() if count > BIGRAM_FREE_OCCURRENCES)


def count_faq_headings(content: str) -> int:
    return sum(1 for line in str(content or "").splitlines() if _FAQ_HEADING_RE.match(line.strip()))


def find_forbidden_terms(text: str, terms: Iterable[str]) -> List[str]:
    haystack = str(text or "").lower()
    hits: List[str] = []
    seen = set()
    for term in terms:
        needle = str(term or "").strip().lower()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        if needle in haystack:
            hits.append(str(term).strip())
    return hits


class _Scorecard:
    def __init__(self) -> None:
        self.failures: List[RuleFailure] = []
        self.deductions: Dict[str, int] = {
            "structure": 0,
            "specificity": 0,
            "anti_repetition": 0,
            "safety": 0,
        }
        self.notes: Dict[str, List[str]] = {key: [] for key in self.deductions}

    def fail(self, rule: str, message: str, *, severity: Optional[str] = None) -> None:
        dimension, weight, default_severity = RULES[rule]
        self.failures.append(
            RuleFailure(rule=rule, message=message, weight=weight, severity=severity or default_severity)
        )
        self.deductions[dimension] += weight
        self.notes[dimension].append(rule)

    def dimension(self, name: str) -> DimensionScore:
        score = max(0, DIMENSION_MAX - self.deductions[name])
        return DimensionScore(score=score, max=DIMENSION_MAX, notes=list(self.notes[name]))


def evaluate(
    draft: ArticleDraft,
    context: Optional[QualityContext] = None,
    *,
    checked_at: Optional[datetime] = None,
) -> QualityReport:
    """Score ``draft`` under ``context``. Pure apart from ``checked_at``."""
    context = context or QualityContext()
    policy = context.policy
    card = _Scorecard()

    title = draft.title.strip()
    description = draft.description.strip()
    content = draft.content.strip()
    headings = heading_lines(content)
    valid_links = normalize_source_links(draft.source_links)

    # structure
    if not title:
        card.fail("title-required", "title is required")
    if not description:
        card.fail("description-required", "description is required")
    if not content:
        card.fail("content-required", "content is required")
    if len(content) < MIN_CONTENT_CHARS:
        card.fail("content-min-length", f"content must be at least {MIN_CONTENT_CHARS} chars (got {len(content)})")
    low, high = DESCRIPTION_RANGE
    if not low <= len(description) <= high:
        card.fail("description-range", f"description must be {low}-{high} chars (got {len(description)})")
    low, high = TAGS_RANGE
    if not low <= len(draft.tags) <= high:
        card.fail("tags-range", f"tags must contain {low}-{high} items (got {len(draft.tags)})")
    if len(headings) < MIN_HEADINGS:
        card.fail("heading-count", f"content needs at least {MIN_HEADINGS} level-2/3 headings (got {len(headings)})")
    if policy.min_source_links > 0:
        if len(valid_links) < policy.min_source_links:
            card.fail(
                "source-links-minimum",
                f"at least {policy.min_source_links} valid source links required (got {len(valid_links)})",
            )
        elif (
            not policy.allow_unreachable_source_links
            and context.reachable_source_links_count < policy.min_source_links
        ):
            card.fail(
                "source-links-minimum",
                f"at least {policy.min_source_links} reachable source links required "
                f"(got {context.reachable_source_links_count})",
            )

    # specificity
    if len(draft.audience.strip()) < MIN_SPECIFIC_TEXT:
        card.fail("audience-specificity", f"audience must be at least {MIN_SPECIFIC_TEXT} chars")
    if len(draft.intent.strip()) < MIN_SPECIFIC_TEXT:
        card.fail("intent-specificity", f"intent must be at least {MIN_SPECIFIC_TEXT} chars")
    takeaways = len(draft.key_takeaways)
    if takeaways < MIN_KEY_TAKEAWAYS or _unique_count(draft.key_takeaways) != takeaways:
        card.fail("key-takeaways-quality", f"need at least {MIN_KEY_TAKEAWAYS} key takeaways, all unique")
    checklist_unique = _unique_count(draft.decision_checklist)
    if checklist_unique < MIN_CHECKLIST_ITEMS:
        card.fail(
            "decision-checklist-quality",
            f"need at least {MIN_CHECKLIST_ITEMS} unique checklist items (got {checklist_unique})",
        )
    mistakes_unique = _unique_count(draft.common_mistakes)
    if mistakes_unique < MIN_COMMON_MISTAKES:
        card.fail(
            "common-mistakes-quality",
            f"need at least {MIN_COMMON_MISTAKES} unique common mistakes (got {mistakes_unique})",
        )

    # anti-repetition
    repeated_lines = count_repeated_lines(content)
    if repeated_lines > MAX_REPEATED_LINES:
        card.fail("repeated-lines", f"too many repeated long lines ({repeated_lines})")
    bigram_excess = count_bigram_excess(content)
    if bigram_excess > policy.max_repeated_bigram_excess:
        card.fail(
            "repeated-bigrams",
            f"repeated phrase excess {bigram_excess} exceeds {policy.max_repeated_bigram_excess}",
        )
    faq_questions = count_faq_headings(content)
    if faq_questions < MIN_FAQ_QUESTIONS:
        card.fail("faq-presence", f"need at least {MIN_FAQ_QUESTIONS} FAQ question headings (got {faq_questions})")
    evidence_unique = _unique_count(draft.evidence_notes)
    if evidence_unique < MIN_EVIDENCE_NOTES:
        card.fail("evidence-notes", f"need at least {MIN_EVIDENCE_NOTES} unique evidence notes (got {evidence_unique})")
    if context.duplicated_structure_count > policy.max_duplicated_structure_count:
        card.fail(
            "duplicated-structure",
            f"heading structure already published {context.duplicated_structure_count} times "
            f"(max {policy.max_duplicated_structure_count})",
            severity=policy.duplicated_structure_severity,
        )

    # safety
    for term in find_forbidden_terms(f"{description}\n{content}", policy.forbidden_terms):
        card.fail("forbidden-term", f"forbidden term found: {term}")

    dimensions = QualityDimensions(
        structure=card.dimension("structure"),
        specificity=card.dimension("specificity"),
        anti_repetition=card.dimension("anti_repetition"),
        safety=card.dimension("safety"),
    )
    score_total = dimensions.total()
    hard = sum(1 for item in card.failures if item.severity == "hard")
    soft = len(card.failures) - hard
    codes: List[str] = []
    for item in card.failures:
        if item.rule not in codes:
            codes.append(item.rule)

    metrics = QualityMetrics(
        content_chars=len(content),
        description_chars=len(description),
        tags_count=len(draft.tags),
        heading_count=len(headings),
        checklist_items=checklist_unique,
        faq_questions=faq_questions,
        repeated_line_count=repeated_lines,
        repeated_bigram_count=bigram_excess,
        source_links_count=len(draft.source_links),
        valid_source_links_count=len(valid_links),
        reachable_source_links_count=context.reachable_source_links_count,
        duplicated_structure_count=context.duplicated_structure_count,
    )
    return QualityReport(
        passed=hard == 0 and score_total >= policy.min_score,
        checked_at=checked_at or datetime.now(timezone.utc),
        score_total=score_total,
        min_score=policy.min_score,
        hard_failure_count=hard,
        soft_failure_count=soft,
        failure_codes=codes,
        failures=card.failures,
        dimensions=dimensions,
        metrics=metrics,
    )
