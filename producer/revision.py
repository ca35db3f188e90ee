"""Bounded revise-and-reassess loop for a single attempt."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Awaitable, Callable

from core import ArticleDraft, QualityReport
from producer.ports import ArticleGenerator

logger = logging.getLogger(__name__)


@dataclass
class Assessment:
    """A normalized draft together with the report computed from it."""

    draft: ArticleDraft
    report: QualityReport
    signature: str = ""


AssessFn = Callable[[ArticleDraft], Awaitable[Assessment]]


@dataclass
class RevisionOutcome:
    assessment: Assessment
    revisions_used: int


def needs_revision(report: QualityReport) -> bool:
    """Only soft shortfalls are worth a revision; hard failures are not repairable."""
    return not report.passed and report.hard_failure_count == 0


class RevisionLoop:
    """Ask the generator to repair a draft until it passes or the budget runs out.

    Every revised draft is handed to ``assess`` which normalizes it and
    recomputes signature, link reachability and the quality report from
    scratch. ``revisions_used`` counts requests made by the latest ``run``,
    including one whose revision raised.
    """

    def __init__(self, generator: ArticleGenerator, assess: AssessFn, *, max_revisions: int) -> None:
        self._generator = generator
        self._assess = assess
        self.max_revisions = max(0, int(max_revisions))
        self.revisions_used = 0

    async def run(self, assessment: Assessment, *, language: str, run_id: str = "", attempt: int = 0) -> RevisionOutcome:
        current = assessment
        used = self.revisions_used = 0
        while used < self.max_revisions and needs_revision(current.report):
            used = self.revisions_used = used + 1
            report = current.report
            logger.info(
                "revision_started run_id=%s attempt=%d revision=%d score=%d codes=%s",
                run_id,
                attempt,
                used,
                report.score_total,
                ",".join(report.failure_codes),
            )
            revised = await self._generator.revise_draft(
                current.draft,
                list(report.failure_codes),
                [item.message for item in report.failures],
                report.summary(),
                language,
            )
            current = await self._assess(revised)
            logger.info(
                "revision_completed run_id=%s attempt=%d revision=%d score=%d passed=%s hard=%d",
                run_id,
                attempt,
                used,
                current.report.score_total,
                current.report.passed,
                current.report.hard_failure_count,
            )
        return RevisionOutcome(assessment=current, revisions_used=used)
