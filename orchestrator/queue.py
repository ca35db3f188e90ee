"""In-memory FIFO queue of producer requests, de-duplicated by source key."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, Optional, Set

from core import ProducerRequest


class InMemoryRequestQueue:
    """Best-effort in-memory queue feeding the pipeline service."""

    def __init__(self) -> None:
        self._queue: Deque[ProducerRequest] = deque()
        self._enqueued: Set[str] = set()
        self._lock = Lock()

    def enqueue(self, request: ProducerRequest) -> bool:
        """Queue request once per source key. Returns True when newly enqueued."""
        with self._lock:
            key = request.source_key
            if key in self._enqueued:
                return False
            self._queue.append(request)
            self._enqueued.add(key)
            return True

    def dequeue(self) -> Optional[ProducerRequest]:
        with self._lock:
            if not self._queue:
                return None
            request = self._queue.popleft()
            self._enqueued.discard(request.source_key)
            return request

    def remove(self, source_key: str) -> bool:
        with self._lock:
            key = str(source_key).lower()
            if key not in self._enqueued:
                return False
            self._queue = deque(item for item in self._queue if item.source_key != key)
            self._enqueued.discard(key)
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._queue)
