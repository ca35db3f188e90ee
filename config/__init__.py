"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    DEFAULT_FORBIDDEN_TERMS,
    AlertSettings,
    LLMSettings,
    LockSettings,
    ProbeSettings,
    ProducerSettings,
    QualitySettings,
    Settings,
    StorageSettings,
    get_llm_settings,
    get_settings,
)

__all__ = [
    "DEFAULT_FORBIDDEN_TERMS",
    "AlertSettings",
    "LLMSettings",
    "LockSettings",
    "ProbeSettings",
    "ProducerSettings",
    "QualitySettings",
    "Settings",
    "StorageSettings",
    "get_llm_settings",
    "get_settings",
]
