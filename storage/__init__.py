"""
Storage Module
存储模块 - 文章库和缓存
"""
from .article_store import InMemoryArticleStore, JsonFileArticleStore
from .cache import BaseCache, MemoryCache

__all__ = [
    "BaseCache",
    "MemoryCache",
    "InMemoryArticleStore",
    "JsonFileArticleStore",
]
