from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from pma_web.services.audit_orchestrator import AuditOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class SessionRepository:
    """
    Repository pattern: one AuditOrchestrator per browser session, in memory only.
    Nothing survives a process restart.

    The store is bounded. Sessions idle for idle_seconds are dropped, and once
    max_sessions is reached the least recently used one makes room for a new one.
    A session with an audit in flight is never dropped.
    """
    orchestrator_factory: Callable[[], AuditOrchestrator]
    max_sessions: int = 200
    idle_seconds: float = 3600.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _sessions: OrderedDict[str, AuditOrchestrator] = field(default_factory=OrderedDict, repr=False)
    _last_seen: Dict[str, float] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.max_sessions <= 0:
            raise ValueError(f"max_sessions must be positive, got {self.max_sessions}")
        if self.idle_seconds <= 0:
            raise ValueError(f"idle_seconds must be positive, got {self.idle_seconds}")

    def get(self, session_id: str) -> Optional[AuditOrchestrator]:
        with self._lock:
            orch = self._sessions.get(session_id)
            if orch is not None:
                self._touch(session_id)
            return orch

    def get_or_create(self, session_id: str) -> AuditOrchestrator:
        with self._lock:
            orch = self._sessions.get(session_id)
            if orch is None:
                self._evict(self.clock())
                orch = self.orchestrator_factory()
                self._sessions[session_id] = orch
            self._touch(session_id)
            return orch

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # _sessions is kept in last-access order; callers hold the lock
    def _touch(self, session_id: str) -> None:
        self._sessions.move_to_end(session_id)
        self._last_seen[session_id] = self.clock()

    def _evict(self, now: float) -> None:
        for sid in list(self._sessions):
            orch = self._sessions[sid]
            expired = now - self._last_seen[sid] >= self.idle_seconds
            full = len(self._sessions) >= self.max_sessions
            if not (expired or full):
                break
            if not orch.can_submit:
                continue
            del self._sessions[sid]
            del self._last_seen[sid]
            logger.debug("Dropped session %s (%s)", sid[:8], "idle" if expired else "lru")
