"""Article persistence keyed by source_key, in memory or as a JSON document."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

from core import ContentStatus, StoredArticle
from utils.exceptions import StorageError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryArticleStore:
    """Thread-safe article repository.

    ``upsert`` keeps one row per ``source_key``: a second write for the same
    key updates that row in place and keeps its id and creation time.
    """

    def __init__(self) -> None:
        self._by_key: Dict[str, StoredArticle] = {}
        self._lock = Lock()

    def upsert(self, article: StoredArticle, status: ContentStatus) -> StoredArticle:
        with self._lock:
            existing = self._by_key.get(article.source_key)
            update: Dict[str, Any] = {"status": status, "updated_at": _utcnow()}
            if existing is not None:
                update["id"] = existing.id
                update["created_at"] = existing.created_at
                update["published_at"] = existing.published_at
            row = article.model_copy(update=update, deep=True)
            self._by_key[row.source_key] = row
            self._after_write()
            return row.model_copy(deep=True)

    def find_by_content_hash(self, content_hash: str) -> Optional[StoredArticle]:
        with self._lock:
            for row in self._by_key.values():
                if row.content_hash == content_hash:
                    return row.model_copy(deep=True)
            return None

    def mark_published(self, ids: Iterable[str]) -> List[StoredArticle]:
        wanted = {str(item) for item in ids}
        published: List[StoredArticle] = []
        with self._lock:
            now = _utcnow()
            for row in self._by_key.values():
                if row.id not in wanted or row.status != ContentStatus.GENERATED:
                    continue
                row.status = ContentStatus.PUBLISHED
                row.published_at = now
                row.updated_at = now
                published.append(row.model_copy(deep=True))
            if published:
                self._after_write()
        return published

    def count_published_with_signature(self, signature: str) -> int:
        if not signature:
            return 0
        with self._lock:
            return sum(
                1
                for row in self._by_key.values()
                if row.status == ContentStatus.PUBLISHED and row.structure_signature == signature
            )

    def get_by_source_key(self, source_key: str) -> Optional[StoredArticle]:
        with self._lock:
            row = self._by_key.get(str(source_key).lower())
            return row.model_copy(deep=True) if row else None

    def list_articles(self) -> List[StoredArticle]:
        with self._lock:
            return [row.model_copy(deep=True) for row in self._by_key.values()]

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            rows = list(self._by_key.values())
        by_status: Dict[str, int] = {}
        by_origin: Dict[str, int] = {}
        for row in rows:
            by_status[row.status.value] = by_status.get(row.status.value, 0) + 1
            by_origin[row.origin.value] = by_origin.get(row.origin.value, 0) + 1
        avg = round(sum(row.quality_score for row in rows) / len(rows), 2) if rows else 0.0
        return {"total": len(rows), "by_status": by_status, "by_origin": by_origin, "avg_quality_score": avg}

    def _after_write(self) -> None:
        """Hook called with the lock held after every mutation."""


class JsonFileArticleStore(InMemoryArticleStore):
    """Same semantics as the in-memory store, persisted to one JSON file."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            rows = [StoredArticle.model_validate(item) for item in payload.get("articles", [])]
        except (OSError, ValueError) as exc:
            raise StorageError(f"cannot load article store: {exc}", {"path": str(self.path)}) from exc
        self._by_key = {row.source_key: row for row in rows}
        logger.info("article_store_loaded path=%s rows=%d", self.path, len(rows))

    def _after_write(self) -> None:
        payload = {"articles": [row.model_dump(mode="json") for row in self._by_key.values()]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageError(f"cannot write article store: {exc}", {"path": str(self.path)}) from exc
