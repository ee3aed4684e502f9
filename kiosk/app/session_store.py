"""In-memory session lifecycle state machine."""
from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .catalog import OutfitCatalog
from .state import Gender, Session, SessionStatus, SessionTerminated, TerminationReason, UploadSource

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 90_000
DEFAULT_RETENTION_MS = 3_600_000

Clock = Callable[[], datetime]
TimeoutCallback = Callable[[str], None]
TerminationListener = Callable[[SessionTerminated], None]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Owns every session and the only code path that ends one.

    A session id is ACTIVE, TERMINATED or UNKNOWN. ACTIVE -> TERMINATED is the
    only transition and it is absorbing. All four triggers (expiry timer, lazy
    expiry on read, explicit completion, periodic sweep) funnel through
    ``_terminate``, which checks and sets in one synchronous step on the event
    loop, so whichever trigger runs first wins and the rest are no-ops.
    """

    def __init__(
        self,
        catalog: OutfitCatalog,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        retention_ms: int = DEFAULT_RETENTION_MS,
        clock: Optional[Clock] = None,
    ) -> None:
        self._catalog = catalog
        self._ttl_ms = ttl_ms
        self._retention = timedelta(milliseconds=retention_ms)
        self._clock = clock or utc_now
        self._sessions: Dict[str, Session] = {}
        # id -> termination time, oldest first
        self._terminated: Dict[str, datetime] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._timeout_callbacks: Dict[str, TimeoutCallback] = {}
        self._listeners: List[TerminationListener] = []

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def add_listener(self, listener: TerminationListener) -> None:
        self._listeners.append(listener)

    def create(
        self,
        gender: Gender,
        photo: bytes,
        on_timeout: Optional[TimeoutCallback] = None,
        *,
        source: Optional[UploadSource] = None,
    ) -> Session:
        """Store a new ACTIVE session and arm its one-shot expiry timer.

        Must be called from the event loop thread. ``on_timeout`` runs at most
        once, and only when the session ends by expiry rather than completion.
        """

        loop = asyncio.get_running_loop()
        session_id = self._new_id()
        created_at = self._clock()
        session = Session(
            id=session_id,
            gender=gender,
            user_photo=photo,
            selected_outfits=self._catalog.select(gender),
            created_at=created_at,
            expires_at=created_at + timedelta(milliseconds=self._ttl_ms),
            source=source,
        )
        self._sessions[session_id] = session
        if on_timeout is not None:
            self._timeout_callbacks[session_id] = on_timeout
        self._timers[session_id] = loop.call_later(
            self._ttl_ms / 1000, self._terminate, session_id, TerminationReason.TIMEOUT
        )
        logger.info("Session %s created gender=%s expires_at=%s", session_id, gender.value, session.expires_at.isoformat())
        return session

    def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            self._terminate(session_id, TerminationReason.EXPIRED_ON_READ)
            return None
        return session

    def status(self, session_id: str) -> SessionStatus:
        if self.get(session_id) is not None:
            return SessionStatus.ACTIVE
        if session_id in self._terminated:
            return SessionStatus.TERMINATED
        return SessionStatus.UNKNOWN

    def is_terminated(self, session_id: str) -> bool:
        """True for terminated and never-seen ids alike; use ``status`` to tell them apart."""

        return self.status(session_id) is not SessionStatus.ACTIVE

    def complete(self, session_id: str) -> bool:
        if self.get(session_id) is None:
            return False
        return self._terminate(session_id, TerminationReason.COMPLETED)

    def active_count(self) -> int:
        now = self._clock()
        return sum(1 for session in self._sessions.values() if not session.is_expired(now))

    def sweep(self) -> int:
        """Expire overdue sessions and forget terminated ids older than the retention window."""

        now = self._clock()
        expired = [session_id for session_id, session in self._sessions.items() if session.is_expired(now)]
        for session_id in expired:
            self._terminate(session_id, TerminationReason.SWEPT)
        if expired:
            logger.info("Swept %d expired sessions", len(expired))
        self._forget_terminated(now - self._retention)
        return len(expired)

    def close(self) -> None:
        """Cancel pending timers and drop live sessions without notifying anyone."""

        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._timeout_callbacks.clear()
        now = self._clock()
        for session_id, session in self._sessions.items():
            session.purge()
            self._terminated[session_id] = now
        self._sessions.clear()

    def _terminate(self, session_id: str, reason: TerminationReason) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._terminated[session_id] = self._clock()
        handle = self._timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()
        on_timeout = self._timeout_callbacks.pop(session_id, None)
        session.purge()
        logger.info("Session %s terminated reason=%s", session_id, reason.value)

        if reason.is_expiry and on_timeout is not None:
            try:
                on_timeout(session_id)
            except Exception:  # pragma: no cover
                logger.exception("Timeout hook failed for session %s", session_id)
        self._notify(SessionTerminated(session_id=session_id, reason=reason))
        return True

    def _forget_terminated(self, cutoff: datetime) -> None:
        stale = []
        for session_id, ended_at in self._terminated.items():
            if ended_at > cutoff:
                break
            stale.append(session_id)
        for session_id in stale:
            del self._terminated[session_id]
        if stale:
            logger.debug("Forgot %d terminated session ids", len(stale))

    def _notify(self, event: SessionTerminated) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed for %s", event.session_id)

    def _new_id(self) -> str:
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            session_id = f"session_{int(time.time() * 1000)}_{suffix}"
            if session_id not in self._sessions and session_id not in self._terminated:
                return session_id


__all__ = ["DEFAULT_RETENTION_MS", "DEFAULT_TTL_MS", "SessionStore", "utc_now"]
