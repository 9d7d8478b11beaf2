"""In-memory UI sessions, each owning its own client state manager."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from .manager import ClientStateManager


@dataclass
class _SessionRecord:
    manager: ClientStateManager
    expires_at: datetime


class SessionManager:
    """Create, resolve, and expire the state managers backing browser sessions."""

    def __init__(
        self,
        factory: Callable[[], ClientStateManager],
        *,
        ttl: timedelta = timedelta(hours=8),
    ) -> None:
        self._factory = factory
        self._ttl = ttl
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self) -> Tuple[str, ClientStateManager]:
        token = secrets.token_urlsafe(32)
        manager = self._factory()
        record = _SessionRecord(manager=manager, expires_at=self._now() + self._ttl)
        with self._lock:
            self._purge_expired()
            self._sessions[token] = record
        return token, manager

    def resolve(self, token: Optional[str]) -> Optional[ClientStateManager]:
        if not token:
            return None
        now = self._now()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                record.manager.close()
                return None
            record.expires_at = now + self._ttl
            return record.manager

    def resolve_or_create(self, token: Optional[str]) -> Tuple[str, ClientStateManager, bool]:
        """Return ``(token, manager, created)`` for the given cookie value."""

        manager = self.resolve(token)
        if manager is not None and token:
            return token, manager, False
        new_token, new_manager = self.create()
        return new_token, new_manager, True

    def destroy(self, token: str) -> None:
        with self._lock:
            record = self._sessions.pop(token, None)
        if record is not None:
            record.manager.close()

    def _purge_expired(self) -> None:
        now = self._now()
        expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
        for token in expired:
            self._sessions.pop(token).manager.close()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["SessionManager"]
