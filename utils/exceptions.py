"""
Custom Exceptions
自定义异常类
"""
from typing import Any, Dict, List, Optional


class ProducerError(Exception):
    """文章生产流水线基础异常类"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ProducerError):
    """配置错误"""
    pass


class GenerationError(ProducerError):
    """模型输出为空或不符合 schema"""

    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.stage = stage


class LLMError(ProducerError):
    """LLM 调用错误 (网络/供应商), 可重试"""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class QualityGateError(ProducerError):
    """草稿未通过质量门槛"""

    def __init__(self, message: str, failure_codes: Optional[List[str]] = None, **kwargs):
        super().__init__(message, kwargs)
        self.failure_codes = list(failure_codes or [])


class DuplicateContentError(ProducerError):
    """内容哈希已被其他 source_key 占用"""

    def __init__(self, message: str, content_hash: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.content_hash = content_hash


class FallbackQualityError(QualityGateError):
    """兜底文章未通过质量门槛, 属于致命错误"""
    pass


class StorageError(ProducerError):
    """存储错误"""
    pass


class LockUnavailableError(ProducerError):
    """流水线锁被其他运行持有"""
    pass


def describe_error(exc: BaseException) -> str:
    """
    把异常渲染成一行日志文本

    聚合异常 (ExceptionGroup) 展开子异常, 并附带 __cause__ 链.
    """
    parts: List[str] = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = f"{type(current).__name__}: {current}"
        nested = getattr(current, "exceptions", None)
        if isinstance(nested, (list, tuple)) and nested:
            inner = "; ".join(describe_error(item) for item in nested)
            text = f"{text} [{inner}]"
        parts.append(text)
        current = current.__cause__
    return " <- ".join(parts)
