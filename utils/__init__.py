"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, get_logger, configure_pipeline_logging
from .exceptions import (
    ProducerError,
    ConfigurationError,
    GenerationError,
    LLMError,
    QualityGateError,
    DuplicateContentError,
    FallbackQualityError,
    StorageError,
    LockUnavailableError,
    describe_error,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_pipeline_logging",
    "ProducerError",
    "ConfigurationError",
    "GenerationError",
    "LLMError",
    "QualityGateError",
    "DuplicateContentError",
    "FallbackQualityError",
    "StorageError",
    "LockUnavailableError",
    "describe_error",
]
