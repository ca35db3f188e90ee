from __future__ import annotations

import json

import pytest

from orchestrator.lock import FileLeaseLock, InMemoryLeaseLock, Lease, lease
from utils.exceptions import LockUnavailableError


class Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "file"])
def lock_and_clock(request, tmp_path):
    clock = Clock()
    if request.param == "memory":
        return InMemoryLeaseLock(clock=clock), clock
    return FileLeaseLock(tmp_path / "locks", clock=clock), clock


def test_only_one_owner_holds_the_lease(lock_and_clock) -> None:
    lock, _ = lock_and_clock

    assert lock.try_acquire("424242", "run_a", 60) is True
    assert lock.try_acquire("424242", "run_b", 60) is False
    assert lock.holder("424242").owner == "run_a"


def test_same_owner_renews(lock_and_clock) -> None:
    lock, clock = lock_and_clock
    lock.try_acquire("424242", "run_a", 60)
    clock.now += 30

    assert lock.try_acquire("424242", "run_a", 60) is True
    assert lock.holder("424242").expires_at == clock.now + 60


def test_expired_lease_can_be_taken_over(lock_and_clock) -> None:
    lock, clock = lock_and_clock
    lock.try_acquire("424242", "run_a", 60)
    clock.now += 61

    assert lock.holder("424242") is None
    assert lock.try_acquire("424242", "run_b", 60) is True
    assert lock.release("424242", "run_a") is False
    assert lock.release("424242", "run_b") is True
    assert lock.holder("424242") is None


def test_lease_context_releases_even_on_error(lock_and_clock) -> None:
    lock, _ = lock_and_clock

    with pytest.raises(RuntimeError):
        with lease(lock, "424242", "run_a", 60):
            assert lock.holder("424242").owner == "run_a"
            raise RuntimeError("boom")

    assert lock.holder("424242") is None


def test_lease_context_raises_when_held(lock_and_clock) -> None:
    lock, _ = lock_and_clock
    lock.try_acquire("424242", "run_a", 60)

    with pytest.raises(LockUnavailableError):
        with lease(lock, "424242", "run_b", 60):
            pass

    assert lock.holder("424242").owner == "run_a"


def test_file_lock_writes_lease_file(tmp_path) -> None:
    lock = FileLeaseLock(tmp_path, clock=Clock(50.0))
    lock.try_acquire("pipeline:main", "run_a", 10)

    payload = json.loads((tmp_path / "pipeline_main.lock").read_text(encoding="utf-8"))

    assert payload == {"key": "pipeline:main", "owner": "run_a", "expires_at": 60.0}


def test_file_lock_treats_corrupt_file_as_expired(tmp_path) -> None:
    (tmp_path / "424242.lock").write_text("garbage", encoding="utf-8")
    lock = FileLeaseLock(tmp_path, clock=Clock())

    assert lock.try_acquire("424242", "run_a", 60) is True
    assert lock.holder("424242").owner == "run_a"


def test_stale_eviction_restores_a_lease_taken_in_between(tmp_path, monkeypatch) -> None:
    clock = Clock()
    lock = FileLeaseLock(tmp_path, clock=clock)
    lock.try_acquire("424242", "run_a", 60)
    reads = iter([Lease(key="424242", owner="run_old", expires_at=0.0)])
    real_read = lock._read
    # run_b saw the expired lease that run_a has since replaced
    monkeypatch.setattr(lock, "_read", lambda path: next(reads, None) or real_read(path))

    assert lock.try_acquire("424242", "run_b", 60) is False
    assert lock.holder("424242").owner == "run_a"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["424242.lock"]


def test_expired_lease_file_is_evicted_without_leftovers(tmp_path) -> None:
    clock = Clock()
    lock = FileLeaseLock(tmp_path, clock=clock)
    lock.try_acquire("424242", "run_a", 60)
    clock.now += 61

    assert lock.try_acquire("424242", "run_b", 60) is True
    assert sorted(p.name for p in tmp_path.iterdir()) == ["424242.lock"]
