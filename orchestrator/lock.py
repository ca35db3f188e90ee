"""Lease-based mutual exclusion for pipeline runs.

A lease expires on its own, so a holder that dies without releasing blocks
other runs for at most ``lease_seconds``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from threading import Lock
import time
from typing import Callable, Dict, Iterator, Optional
from uuid import uuid4

from utils.exceptions import LockUnavailableError, StorageError

logger = logging.getLogger(__name__)


@dataclass
class Lease:
    key: str
    owner: str
    expires_at: float


class InMemoryLeaseLock:
    """Process-local lease lock."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._leases: Dict[str, Lease] = {}
        self._lock = Lock()
        self._clock = clock

    def try_acquire(self, key: str, owner: str, lease_seconds: float) -> bool:
        with self._lock:
            now = self._clock()
            current = self._leases.get(key)
            if current is not None and current.owner != owner and current.expires_at > now:
                return False
            self._leases[key] = Lease(key=key, owner=owner, expires_at=now + float(lease_seconds))
            return True

    def release(self, key: str, owner: str) -> bool:
        with self._lock:
            current = self._leases.get(key)
            if current is None or current.owner != owner:
                return False
            del self._leases[key]
            return True

    def holder(self, key: str) -> Optional[Lease]:
        with self._lock:
            current = self._leases.get(key)
            if current is None or current.expires_at <= self._clock():
                return None
            return Lease(key=current.key, owner=current.owner, expires_at=current.expires_at)


class FileLeaseLock:
    """Cross-process lease lock backed by ``<dir>/<key>.lock`` files.

    Creation uses ``O_EXCL`` so exactly one process wins. An expired lease file
    is renamed aside before the acquisition is retried once, so two contenders
    cannot both evict it.
    """

    def __init__(self, directory: str | Path, *, clock: Callable[[], float] = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock

    def _path(self, key: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in str(key)) or "pipeline"
        return self.directory / f"{safe}.lock"

    def _read(self, path: Path) -> Optional[Lease]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return Lease(key=str(payload["key"]), owner=str(payload["owner"]), expires_at=float(payload["expires_at"]))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError):
            # unreadable lease file is treated as expired
            return Lease(key="", owner="", expires_at=0.0)

    def try_acquire(self, key: str, owner: str, lease_seconds: float) -> bool:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create lock directory: {exc}", {"path": str(self.directory)}) from exc

        for _ in range(2):
            now = self._clock()
            payload = json.dumps({"key": key, "owner": owner, "expires_at": now + float(lease_seconds)})
            try:
                fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                current = self._read(path)
                if current is not None and current.owner == owner:
                    path.write_text(payload, encoding="utf-8")
                    return True
                if current is not None and current.expires_at > now:
                    return False
                logger.warning("lease_expired key=%s previous_owner=%s", key, current.owner if current else "")
                if not self._evict_stale(path, now):
                    return False
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            return True
        return False

    def _evict_stale(self, path: Path, now: float) -> bool:
        """Move an expired lease aside; a live lease grabbed by mistake is put back."""
        aside = path.with_name(f"{path.name}.{uuid4().hex}.stale")
        try:
            os.rename(path, aside)
        except FileNotFoundError:
            return True
        taken = self._read(aside)
        if taken is not None and taken.expires_at > now:
            # another contender replaced the stale lease in between
            try:
                os.link(aside, path)
            except FileExistsError:
                pass
            aside.unlink()
            return False
        aside.unlink()
        return True

    def release(self, key: str, owner: str) -> bool:
        path = self._path(key)
        current = self._read(path)
        if current is None or current.owner != owner:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def holder(self, key: str) -> Optional[Lease]:
        current = self._read(self._path(key))
        if current is None or current.expires_at <= self._clock():
            return None
        return current


@contextmanager
def lease(lock, key: str, owner: str, lease_seconds: float) -> Iterator[str]:
    """Hold ``key`` for the duration of the block; released in ``finally``."""
    if not lock.try_acquire(key, owner, lease_seconds):
        raise LockUnavailableError("pipeline lock is held by another run", {"key": key})
    logger.info("lock_acquired key=%s owner=%s lease_seconds=%s", key, owner, lease_seconds)
    try:
        yield owner
    finally:
        released = lock.release(key, owner)
        logger.info("lock_released key=%s owner=%s released=%s", key, owner, released)
