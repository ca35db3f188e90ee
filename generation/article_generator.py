"""LLM-backed implementation of the article generator port."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core import ArticleDraft, ArticleOutline
from generation.llm.base import BaseLLM, LLMResponse, Message
from generation.prompts import build_article_messages, build_outline_messages, build_revise_messages
from producer.normalize import slugify
from utils.exceptions import GenerationError, LLMError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first JSON object in a model reply, tolerating code fences and chatter."""
    body = _FENCE_RE.sub("", str(text or "").strip())
    if not body:
        raise ValueError("empty model output")
    try:
        value = json.loads(body)
    except json.JSONDecodeError:
        start = body.find("{")
        end = body.rfind("}")
        if start < 0 or end <= start:
            raise ValueError("no JSON object in model output")
        value = json.loads(body[start : end + 1])
    if not isinstance(value, dict):
        raise ValueError("model output is not a JSON object")
    return value


def _coerce_draft_payload(payload: Dict[str, Any], *, fallback_title: str = "") -> Dict[str, Any]:
    data = dict(payload)
    slug = str(data.get("slug") or "").strip().lower()
    if not _SLUG_RE.match(slug):
        slug = slugify(slug or str(data.get("title") or fallback_title))
    data["slug"] = slug or "article"
    tags = data.get("tags")
    if isinstance(tags, str):
        data["tags"] = [item.strip() for item in tags.split(",") if item.strip()]
    data["lastmod"] = datetime.now(timezone.utc)
    return data


class LLMArticleGenerator:
    """Outline, draft and revise articles through a chat model.

    Provider/transport errors are retried with exponential backoff; empty or
    schema-invalid output raises ``GenerationError`` straight away so the
    orchestrator can spend an attempt on it.
    """

    def __init__(self, llm: BaseLLM, *, prompt_version: str = "v1", temperature: Optional[float] = None) -> None:
        self._llm = llm
        self.prompt_version = prompt_version
        self._temperature = temperature

    @property
    def model_version(self) -> str:
        return f"{self._llm.provider}:{self._llm.model}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(LLMError),
        reraise=True,
    )
    async def _complete(self, messages: List[Message]) -> LLMResponse:
        kwargs: Dict[str, Any] = {"json_mode": True}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        try:
            return await self._llm.acomplete(messages, **kwargs)
        except Exception as exc:
            logger.warning("llm_call_failed provider=%s error=%s", self._llm.provider, exc)
            raise LLMError(str(exc), provider=self._llm.provider) from exc

    async def _complete_json(self, messages: List[Message], *, stage: str) -> Dict[str, Any]:
        response = await self._complete(messages)
        try:
            payload = extract_json_object(response.content)
        except ValueError as exc:
            raise GenerationError(f"{stage}: {exc}", stage=stage, model=response.model) from exc
        logger.debug("llm_json_ok stage=%s keys=%s", stage, sorted(payload))
        return payload

    async def generate_outline(self, topic: str, city: str, keyword: str, language: str) -> ArticleOutline:
        messages = build_outline_messages(topic, city, keyword, language, version=self.prompt_version)
        payload = await self._complete_json(messages, stage="outline")
        try:
            return ArticleOutline.model_validate(payload)
        except ValidationError as exc:
            raise GenerationError(f"outline: invalid schema: {exc}", stage="outline") from exc

    async def generate_draft(
        self,
        outline: ArticleOutline,
        topic: str,
        city: str,
        keyword: str,
        language: str,
    ) -> ArticleDraft:
        messages = build_article_messages(outline, topic, city, keyword, language, version=self.prompt_version)
        payload = await self._complete_json(messages, stage="draft")
        return self._to_draft(payload, stage="draft", fallback_title=outline.title or f"{topic} {city}")

    async def revise_draft(
        self,
        draft: ArticleDraft,
        failure_codes: List[str],
        failure_messages: List[str],
        score_summary: Dict[str, int],
        language: str,
    ) -> ArticleDraft:
        messages = build_revise_messages(
            draft,
            failure_codes,
            failure_messages,
            score_summary,
            language,
            version=self.prompt_version,
        )
        payload = await self._complete_json(messages, stage="revise")
        return self._to_draft(payload, stage="revise", fallback_title=draft.title)

    @staticmethod
    def _to_draft(payload: Dict[str, Any], *, stage: str, fallback_title: str) -> ArticleDraft:
        try:
            return ArticleDraft.model_validate(_coerce_draft_payload(payload, fallback_title=fallback_title))
        except ValidationError as exc:
            raise GenerationError(f"{stage}: invalid schema: {exc}", stage=stage) from exc

    async def aclose(self) -> None:
        await self._llm.aclose()
