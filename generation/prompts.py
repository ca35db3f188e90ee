"""Prompt builders for outline, article and revision calls."""

from __future__ import annotations

import json
from typing import Dict, List

from core import ArticleDraft, ArticleOutline
from generation.llm.base import Message


OUTLINE_PROMPT = "seo-outline"
ARTICLE_PROMPT = "seo-article"
REVISE_PROMPT = "seo-revise"

_SYSTEM = (
    "You write practical, location-specific guides. Be concrete, avoid filler, never repeat sentences, "
    "and answer with a single JSON object only, no markdown fences."
)

_OUTLINE_SCHEMA = {
    "title": "string",
    "audience": "who the article is for, one sentence",
    "intent": "what the reader wants to get done, one sentence",
    "sections": ["level-2 heading text", "..."],
    "decision_checklist": ["4-8 distinct checks"],
    "key_takeaways": ["3-5 distinct takeaways"],
    "common_mistakes": ["3-5 distinct mistakes"],
    "faq_questions": ["2-4 questions ending with ?"],
    "source_links": ["authoritative https URLs"],
}

_ARTICLE_SCHEMA = {
    "title": "string",
    "description": "80-180 characters",
    "slug": "lowercase-ascii-hyphen-slug",
    "tags": ["3-8 tags"],
    "audience": "string",
    "intent": "string",
    "key_takeaways": ["..."],
    "decision_checklist": ["..."],
    "common_mistakes": ["..."],
    "evidence_notes": ["2+ notes on what the facts are based on"],
    "content": "markdown, 800+ characters, 4+ '##' headings, a '## FAQ' with '###' questions ending in ?, "
    "and a '## Sources' section",
    "source_links": ["https URLs"],
}


def _header(name: str, version: str) -> str:
    return f"[prompt={name} version={version}]"


def build_outline_messages(topic: str, city: str, keyword: str, language: str, *, version: str = "v1") -> List[Message]:
    user = (
        f"{_header(OUTLINE_PROMPT, version)}\n"
        f"Plan an article about \"{topic}\" for readers in {city}. Target search keyword: \"{keyword}\". "
        f"Language: {language}.\n"
        f"Return JSON shaped like: {json.dumps(_OUTLINE_SCHEMA, ensure_ascii=False)}"
    )
    return [Message.system(_SYSTEM), Message.user(user)]


def build_article_messages(
    outline: ArticleOutline,
    topic: str,
    city: str,
    keyword: str,
    language: str,
    *,
    version: str = "v1",
) -> List[Message]:
    user = (
        f"{_header(ARTICLE_PROMPT, version)}\n"
        f"Write the full article about \"{topic}\" in {city} for the keyword \"{keyword}\". Language: {language}.\n"
        f"Include a section titled \"How to Verify in {city} Today\".\n"
        f"Follow this outline: {outline.model_dump_json()}\n"
        f"Return JSON shaped like: {json.dumps(_ARTICLE_SCHEMA, ensure_ascii=False)}"
    )
    return [Message.system(_SYSTEM), Message.user(user)]


def build_revise_messages(
    draft: ArticleDraft,
    failure_codes: List[str],
    failure_messages: List[str],
    score_summary: Dict[str, int],
    language: str,
    *,
    version: str = "v1",
) -> List[Message]:
    payload = {
        "originalArticleJson": draft.model_dump(mode="json", exclude={"lastmod"}),
        "failureCodes": list(failure_codes),
        "failureMessages": list(failure_messages),
        "qualitySummary": dict(score_summary),
        "language": language,
    }
    user = (
        f"{_header(REVISE_PROMPT, version)}\n"
        "Revise the article so every listed failure is fixed. Keep what already works, keep the same JSON "
        "fields, and do not introduce repeated lines.\n"
        f"{json.dumps(payload, ensure_ascii=False)}"
    )
    return [Message.system(_SYSTEM), Message.user(user)]
