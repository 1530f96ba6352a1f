import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from ..clock import Clock, elapsed_ms, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT_MS = 60000


class InvalidSessionState(Exception):
    """Base error for session precondition violations."""


class AlreadyActive(InvalidSessionState):
    def __init__(self, owner_id: str):
        super().__init__(f"Session already active, current owner: {owner_id}")
        self.owner_id = owner_id


class NoActiveSession(InvalidSessionState):
    def __init__(self):
        super().__init__("No active session")


class SessionMismatch(InvalidSessionState):
    def __init__(self, expected: str, actual: str):
        super().__init__(f"Session id mismatch, expected: {expected}, actual: {actual}")
        self.expected = expected
        self.actual = actual


@dataclass
class Session:
    id: str
    owner_id: str
    created_at: datetime
    last_activity_at: datetime
    state: str = "active"


@dataclass
class SessionRequest:
    id: str
    session_id: str
    description: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    is_complete: bool = False


@dataclass
class _BrokerState:
    session: Optional[Session] = None
    requests: dict[str, SessionRequest] = field(default_factory=dict)
    capture_enabled: bool = True


class SessionBroker:
    """Process-wide exclusive display session.

    Advisory lock shared by every producer that drives the display: at most
    one session is active at a time, and a session that has been idle for
    longer than the timeout is reclaimed lazily by the next call that reads
    session state. There is no background timer.
    """

    def __init__(self, timeout_ms: int = DEFAULT_SESSION_TIMEOUT_MS,
                 clock: Clock = utcnow,
                 id_factory: Callable[[], str] = lambda: str(uuid.uuid4())):
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._new_id = id_factory
        self._lock = threading.Lock()
        self._state = _BrokerState()

    # ---- internal helpers (caller holds the lock) ----

    def _timed_out(self, timeout_ms: int | None = None) -> bool:
        session = self._state.session
        if session is None:
            return False
        limit = self.timeout_ms if timeout_ms is None else timeout_ms
        return elapsed_ms(session.last_activity_at, self._clock()) > limit

    def _clear(self):
        if self._state.session is not None:
            self._state.session.state = "ended"
        self._state.session = None
        self._state.requests.clear()

    def _reclaim_if_expired(self) -> bool:
        if not self._timed_out():
            return False
        logger.info("Session %s timed out (owner: %s), reclaiming",
                    self._state.session.id, self._state.session.owner_id)
        self._clear()
        self._state.capture_enabled = True
        return True

    # ---- session lifecycle ----

    def start_session(self, owner_id: str) -> str:
        """Start an exclusive session for ``owner_id`` and return its id.

        Raises AlreadyActive if another session is live.
        """
        with self._lock:
            self._reclaim_if_expired()
            current = self._state.session
            if current is not None:
                raise AlreadyActive(current.owner_id)

            now = self._clock()
            session = Session(
                id=self._new_id(),
                owner_id=owner_id,
                created_at=now,
                last_activity_at=now,
            )
            self._state.session = session
            self._state.requests.clear()
            logger.info("Started session %s, owner: %s", session.id, owner_id)
            return session.id

    def end_session(self, owner_id: str, session_id: str) -> bool:
        with self._lock:
            self._reclaim_if_expired()
            current = self._state.session
            if current is None:
                logger.info("No active session to end")
                return False
            if current.owner_id != owner_id:
                logger.warning("Caller %s is not the session owner %s", owner_id, current.owner_id)
                return False
            if current.id != session_id:
                logger.warning("Session id mismatch, expected: %s, actual: %s", current.id, session_id)
                return False

            logger.info("Ending session %s, clearing %d requests", current.id, len(self._state.requests))
            self._clear()
            return True

    def is_active(self) -> bool:
        with self._lock:
            self._reclaim_if_expired()
            return self._state.session is not None

    def current_owner(self) -> Optional[str]:
        with self._lock:
            self._reclaim_if_expired()
            session = self._state.session
            return session.owner_id if session else None

    def current_session_id(self) -> Optional[str]:
        with self._lock:
            self._reclaim_if_expired()
            session = self._state.session
            return session.id if session else None

    def snapshot(self) -> Optional[Session]:
        """Copy of the active session, or None."""
        with self._lock:
            self._reclaim_if_expired()
            session = self._state.session
            return replace(session) if session else None

    # ---- request ledger ----

    def register_request(self, session_id: str, description: str) -> str:
        with self._lock:
            self._reclaim_if_expired()
            current = self._state.session
            if current is None:
                raise NoActiveSession()
            if current.id != session_id:
                raise SessionMismatch(current.id, session_id)

            now = self._clock()
            request = SessionRequest(
                id=self._new_id(),
                session_id=session_id,
                description=description,
                created_at=now,
            )
            self._state.requests[request.id] = request
            current.last_activity_at = now
            logger.info("Registered request %s in session %s: %s", request.id, session_id, description)
            return request.id

    def mark_complete(self, request_id: str):
        with self._lock:
            self._reclaim_if_expired()
            request = self._state.requests.get(request_id)
            if request is None:
                return
            now = self._clock()
            request.is_complete = True
            request.completed_at = now
            if self._state.session is not None:
                self._state.session.last_activity_at = now
            logger.debug("Request %s complete", request_id)

    def requests(self) -> list[SessionRequest]:
        with self._lock:
            self._reclaim_if_expired()
            return [replace(r) for r in self._state.requests.values()]

    # ---- timeout ----

    def is_timed_out(self, timeout_ms: int | None = None) -> bool:
        with self._lock:
            return self._timed_out(timeout_ms)

    def update_activity(self):
        with self._lock:
            if self._state.session is not None:
                self._state.session.last_activity_at = self._clock()

    def cleanup_timed_out(self) -> bool:
        """Reclaim the active session if it has timed out. Returns True if reclaimed."""
        with self._lock:
            return self._reclaim_if_expired()

    # ---- capture flag ----

    def disable_capture(self):
        with self._lock:
            self._state.capture_enabled = False
            logger.info("Capture disabled")

    def enable_capture(self):
        with self._lock:
            self._state.capture_enabled = True
            logger.info("Capture enabled")

    def is_capture_enabled(self) -> bool:
        with self._lock:
            self._reclaim_if_expired()
            return self._state.capture_enabled
