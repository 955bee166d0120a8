"""
In-memory session registry.

A session is created lazily by the first successful connect and remembers
which data sources the client connected, in first-connect order. The store
is the only state shared between requests, so every read and write goes
through one re-entrant lock. Callers always receive copies.
"""
from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

import core_metrics
from core_logging import get_logger, log_stage

from .catalog import Catalog
from .errors import InvalidSourceError, SessionNotFoundError

logger = get_logger("campaign_api.sessions")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    id: str
    connected_source_ids: List[str] = Field(default_factory=list)
    created_at: datetime
    last_seen_at: datetime


class SessionStore:
    def __init__(
        self,
        catalog: Catalog,
        *,
        ttl_seconds: int = 0,
        clock: Clock = _utcnow,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._catalog = catalog
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def _create_locked(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            now = self._clock()
            session = Session(id=session_id, created_at=now, last_seen_at=now)
            self._sessions[session_id] = session
            core_metrics.gauge("campaign_api_sessions", len(self._sessions))
            log_stage(logger, "session", "session.created", session_id=session_id)
        return session

    def create(self, session_id: str) -> Session:
        """Return the session for *session_id*, creating an empty one if absent."""
        with self._lock:
            return self._create_locked(session_id).model_copy(deep=True)

    def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id=session_id)
            return session.model_copy(deep=True)

    def connect(self, session_id: str, source_id: str) -> List[str]:
        """
        Add *source_id* to the session (creating it on first use) and return
        the display names of every connected source in first-connect order.

        Unknown sources are rejected before the map is touched, so a failed
        connect never creates a session.
        """
        if not self._catalog.is_source(source_id):
            raise InvalidSourceError(session_id=session_id, source=source_id)

        with self._lock:
            session = self._create_locked(session_id)
            if source_id not in session.connected_source_ids:
                session.connected_source_ids.append(source_id)
            session.last_seen_at = self._clock()
            names = self._catalog.source_names(session.connected_source_ids)

        log_stage(
            logger, "session", "session.source_connected",
            session_id=session_id, source=source_id, connected=len(names),
        )
        return names

    def get_connected_sources(self, session_id: str) -> Tuple[str, ...]:
        """
        Snapshot of connected source ids, in first-connect order.

        Raises SessionNotFoundError when the session was never created.
        An empty tuple means the session exists but has nothing connected.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id=session_id)
            session.last_seen_at = self._clock()
            return tuple(session.connected_source_ids)

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Drop sessions idle for longer than the TTL; returns how many went."""
        if self._ttl_seconds <= 0:
            return 0
        cutoff = (now or self._clock()) - timedelta(seconds=self._ttl_seconds)
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.last_seen_at < cutoff]
            for sid in stale:
                del self._sessions[sid]
            remaining = len(self._sessions)
        if stale:
            core_metrics.counter("campaign_api_sessions_evicted_total", len(stale))
            core_metrics.gauge("campaign_api_sessions", remaining)
            log_stage(logger, "session", "session.evicted", count=len(stale), remaining=remaining)
        return len(stale)


async def sweep_expired_sessions(store: SessionStore, interval_s: float) -> None:
    """Background loop for the app lifespan; runs until cancelled."""
    while True:
        await asyncio.sleep(max(0.1, float(interval_s)))
        store.evict_expired()


__all__ = ["Session", "SessionStore", "sweep_expired_sessions"]
