"""Collaborator interfaces consumed by the producer."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Set

from core import (
    ArticleDraft,
    ArticleOutline,
    ContentStatus,
    PipelineRunRecord,
    StoredArticle,
)


class ArticleGenerator(Protocol):
    """Generative model boundary. Every call may fail or return junk."""

    async def generate_outline(self, topic: str, city: str, keyword: str, language: str) -> ArticleOutline:
        ...

    async def generate_draft(
        self,
        outline: ArticleOutline,
        topic: str,
        city: str,
        keyword: str,
        language: str,
    ) -> ArticleDraft:
        ...

    async def revise_draft(
        self,
        draft: ArticleDraft,
        failure_codes: List[str],
        failure_messages: List[str],
        score_summary: Dict[str, int],
        language: str,
    ) -> ArticleDraft:
        ...


class ArticleRepository(Protocol):
    def find_by_content_hash(self, content_hash: str) -> Optional[StoredArticle]:
        ...

    def upsert(self, article: StoredArticle, status: ContentStatus) -> StoredArticle:
        ...

    def mark_published(self, ids: Iterable[str]) -> List[StoredArticle]:
        ...

    def count_published_with_signature(self, signature: str) -> int:
        ...


class LinkProber(Protocol):
    async def probe(self, urls: Iterable[str]) -> Set[str]:
        ...


class RunRecorder(Protocol):
    def start_run(self, record: PipelineRunRecord) -> PipelineRunRecord:
        ...

    def finish_run(self, record: PipelineRunRecord) -> PipelineRunRecord:
        ...
