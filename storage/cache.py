"""
Cache
缓存模块 - 运行期结果记忆 (链接探测等)
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Dict, Optional
import logging


logger = logging.getLogger(__name__)

_MISSING = object()


class BaseCache(ABC):
    """
    缓存抽象基类

    与普通 dict 不同, 缓存值允许为 False/0 等假值, 通过 exists() 判断是否命中.
    """

    def __init__(self, ttl: Optional[int] = None):
        """
        Args:
            ttl: 缓存过期时间 (秒), None = 永不过期
        """
        self.ttl = ttl

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """获取缓存值"""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """设置缓存值"""

    @abstractmethod
    def delete(self, key: str) -> None:
        """删除缓存"""

    @abstractmethod
    def clear(self) -> None:
        """清空缓存"""

    def exists(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING


class MemoryCache(BaseCache):
    """
    内存缓存
    线程安全的字典缓存, 一次运行一个实例
    """

    def __init__(self, ttl: Optional[int] = None, max_size: int = 1000):
        super().__init__(ttl)
        self.max_size = max_size
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    @staticmethod
    def _is_expired(entry: Dict[str, Any]) -> bool:
        expires_at = entry.get("expires_at")
        return expires_at is not None and datetime.now() > expires_at

    def _cleanup(self) -> None:
        for key in [k for k, v in self._cache.items() if self._is_expired(v)]:
            del self._cache[key]

        # 仍然超过限制时删除最旧的
        overflow = len(self._cache) - self.max_size
        if overflow > 0:
            oldest = sorted(self._cache, key=lambda k: self._cache[k]["created_at"])
            for key in oldest[:overflow]:
                del self._cache[key]

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return default
            if self._is_expired(entry):
                del self._cache[key]
                return default
            return entry["value"]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            ttl = ttl or self.ttl
            now = datetime.now()
            self._cache[key] = {
                "value": value,
                "created_at": now,
                "expires_at": now + timedelta(seconds=ttl) if ttl else None,
            }
            self._cleanup()

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)
