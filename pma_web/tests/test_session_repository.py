from __future__ import annotations

import threading

import pytest

from pma_web.domain.models import AuditStatus
from pma_web.repositories.session_repository import SessionRepository
from pma_web.services.audit_orchestrator import AuditOrchestrator


class FakeAuditClient:
    async def submit(self, video, log_text, blueprint, goal):
        raise AssertionError("not called in these tests")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_repo(**kwargs) -> SessionRepository:
    client = FakeAuditClient()
    return SessionRepository(orchestrator_factory=lambda: AuditOrchestrator(client), **kwargs)


def test_get_returns_none_for_unknown_session():
    repo = make_repo()
    assert repo.get("nope") is None
    assert len(repo) == 0


def test_get_or_create_is_stable_per_session():
    repo = make_repo()

    a = repo.get_or_create("a")
    assert repo.get_or_create("a") is a
    assert repo.get("a") is a
    assert len(repo) == 1


def test_sessions_are_isolated():
    repo = make_repo()

    a = repo.get_or_create("a")
    b = repo.get_or_create("b")
    a.update_text(log_text="only in a")

    assert a is not b
    assert b.log_text == ""
    assert len(repo) == 2


def test_concurrent_get_or_create_builds_one_orchestrator():
    repo = make_repo()
    seen = []

    def worker():
        seen.append(repo.get_or_create("shared"))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(o) for o in seen}) == 1
    assert len(repo) == 1


def test_least_recently_used_session_is_evicted_when_full():
    repo = make_repo(max_sessions=2)
    a = repo.get_or_create("a")
    repo.get_or_create("b")
    assert repo.get("a") is a  # "b" is now the oldest

    repo.get_or_create("c")

    assert len(repo) == 2
    assert repo.get("b") is None
    assert repo.get("a") is a


def test_many_sessions_stay_within_bound():
    repo = make_repo(max_sessions=3)
    for i in range(50):
        repo.get_or_create(f"s{i}")

    assert len(repo) == 3
    assert [repo.get(f"s{i}") is not None for i in (46, 47, 48, 49)] == [False, True, True, True]


def test_idle_sessions_are_dropped():
    clock = FakeClock()
    repo = make_repo(idle_seconds=60, clock=clock)
    repo.get_or_create("old")

    clock.now = 30
    repo.get_or_create("recent")

    clock.now = 61
    repo.get_or_create("new")

    assert repo.get("old") is None
    assert repo.get("recent") is not None
    assert len(repo) == 2


def test_session_with_audit_in_flight_is_kept():
    repo = make_repo(max_sessions=1)
    busy = repo.get_or_create("busy")
    busy._status = AuditStatus.ANALYZING

    repo.get_or_create("other")

    assert repo.get("busy") is busy
    assert len(repo) == 2


@pytest.mark.parametrize("kwargs", [{"max_sessions": 0}, {"idle_seconds": 0}])
def test_non_positive_bounds_rejected(kwargs):
    with pytest.raises(ValueError):
        make_repo(**kwargs)
