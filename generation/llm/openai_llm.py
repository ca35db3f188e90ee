"""
OpenAI LLM
OpenAI 及兼容接口 (DeepSeek 等)
"""
from typing import List, Optional
import inspect
import logging

from .base import BaseLLM, LLMResponse, Message


logger = logging.getLogger(__name__)


class OpenAILLM(BaseLLM):
    """
    OpenAI Chat Completions 实现

    base_url 指向兼容接口时可用于 DeepSeek 等供应商, provider_name 用于区分.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        provider_name: str = "openai",
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._provider_name = provider_name
        self._async_client = None

    @property
    def provider(self) -> str:
        return self._provider_name

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from openai import AsyncOpenAI
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._async_client

    async def acomplete(self, messages: List[Message], **kwargs) -> LLMResponse:
        client = self._get_async_client()

        request_params = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if kwargs.get("json_mode"):
            request_params["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**request_params)

        choice = response.choices[0]
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        client = self._async_client
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            maybe_awaitable = close_fn()
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
        self._async_client = None
