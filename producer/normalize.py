"""Keys, hashes and draft normalization applied before every evaluation."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Optional

from core import ArticleDraft, ProducerRequest
from producer.sanitize import normalize_source_links


_SOURCES_HEADING_RE = re.compile(r"^##\s+sources\s*:?\s*$", re.IGNORECASE | re.MULTILINE)
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
_WS_RE = re.compile(r"\s+")


def source_key(request: ProducerRequest) -> str:
    return request.source_key


def content_hash(draft: ArticleDraft) -> str:
    """sha256 over title, description and content joined by newlines."""
    payload = f"{draft.title}\n{draft.description}\n{draft.content}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def slugify(value: str, *, max_len: int = 80) -> str:
    """ASCII-fold ``value`` into a lowercase hyphen slug, cut at a word boundary."""
    folded = unicodedata.normalize("NFKD", str(value or "")).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_STRIP_RE.sub("-", folded.lower()).strip("-")
    if len(slug) > max_len:
        cut = slug[:max_len]
        if "-" in cut and slug[max_len] != "-":
            cut = cut.rsplit("-", 1)[0]
        slug = cut.strip("-")
    return slug


def compact_phrase(value: str, *, max_words: Optional[int] = None) -> str:
    """Collapse whitespace and consecutive repeated words, optionally capping length."""
    words = _WS_RE.sub(" ", str(value or "")).strip().split(" ")
    out = []
    for word in words:
        if not word:
            continue
        if out and out[-1].lower() == word.lower():
            continue
        out.append(word)
    if max_words is not None:
        out = out[: max(1, int(max_words))]
    return " ".join(out)


def has_sources_section(content: str) -> bool:
    return bool(_SOURCES_HEADING_RE.search(str(content or "")))


def normalize_draft(draft: ArticleDraft) -> ArticleDraft:
    """Canonicalize source links and append a Sources section when missing.

    Idempotent: normalizing an already normalized draft returns an equal draft.
    """
    links = normalize_source_links(draft.source_links)
    content = draft.content
    if links and not has_sources_section(content):
        listing = "\n".join(f"- {url}" for url in links)
        content = f"{content.rstrip()}\n\n## Sources\n\n{listing}".strip()
    return draft.model_copy(update={"source_links": links, "content": content})
