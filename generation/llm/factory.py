"""
LLM Factory
工厂函数 - 根据配置自动创建 LLM 实例
"""
from typing import Optional
import logging

from utils.exceptions import ConfigurationError

from .anthropic_llm import AnthropicLLM
from .base import BaseLLM
from .openai_llm import OpenAILLM


logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "deepseek": "deepseek-chat",
}

DEEPSEEK_BASE_URL = "https://api.deepseek.com"


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> BaseLLM:
    """
    获取 LLM 实例

    自动从 .env 读取配置, 也可手动指定

    Example:
        llm = get_llm()
        llm = get_llm(provider="deepseek")
        llm = get_llm(provider="anthropic", temperature=0.5)
    """
    from config import get_llm_settings

    settings = get_llm_settings()
    provider = (provider or settings.provider or "openai").strip().lower()
    model = model or settings.model_name or DEFAULT_MODELS.get(provider)

    api_keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
        "deepseek": settings.deepseek_api_key,
    }
    api_key = kwargs.pop("api_key", None) or api_keys.get(provider)

    kwargs.setdefault("temperature", settings.temperature)
    kwargs.setdefault("max_tokens", settings.max_tokens)
    base_url = kwargs.pop("base_url", None) or settings.base_url

    logger.info("llm_selected provider=%s model=%s", provider, model)
    if provider == "openai":
        return OpenAILLM(model=model, api_key=api_key, base_url=base_url, **kwargs)
    if provider == "deepseek":
        kwargs.setdefault("timeout", 120.0)
        return OpenAILLM(
            model=model,
            api_key=api_key,
            base_url=base_url or DEEPSEEK_BASE_URL,
            provider_name="deepseek",
            **kwargs,
        )
    if provider == "anthropic":
        return AnthropicLLM(model=model, api_key=api_key, **kwargs)
    raise ConfigurationError(f"Unsupported LLM provider: {provider}", {"provider": provider})
