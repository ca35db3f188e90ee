"""
LLM Module
多供应商 LLM 抽象层
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM
from .factory import DEFAULT_MODELS, get_llm

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLM",
    "AnthropicLLM",
    "DEFAULT_MODELS",
    "get_llm",
]
