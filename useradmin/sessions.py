"""In-memory form sessions for the user creation web interface."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from .form import UserCreationForm


@dataclass
class _SessionRecord:
    form: UserCreationForm
    expires_at: datetime


class FormSessionManager:
    """Create, resolve, and discard the form owned by each browser session."""

    def __init__(
        self,
        factory: Callable[[], UserCreationForm],
        *,
        ttl: timedelta = timedelta(hours=8),
    ) -> None:
        self._factory = factory
        self._ttl = ttl
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self) -> tuple[str, UserCreationForm]:
        token = secrets.token_urlsafe(32)
        form = self._factory()
        record = _SessionRecord(form=form, expires_at=self._now() + self._ttl)
        with self._lock:
            self._prune_locked()
            self._sessions[token] = record
        return token, form

    def resolve(self, token: str) -> Optional[UserCreationForm]:
        now = self._now()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            record.expires_at = now + self._ttl
            return record.form

    def _prune_locked(self) -> None:
        now = self._now()
        expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
        for token in expired:
            self._sessions.pop(token, None)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["FormSessionManager"]
