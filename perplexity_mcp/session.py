"""Session state for protocol connections, and the table that tracks the open ones."""
import asyncio
import contextvars
import logging
import uuid
from enum import Enum
from typing import Dict, Iterator, Optional, Set

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionClosedError(Exception):
    """Raised when a message is routed to a session whose transport is gone."""


# Session serving the current protocol request; set by the manager for each server task
current_session: contextvars.ContextVar[Optional["Session"]] = contextvars.ContextVar(
    "current_session", default=None,
)


class Session:
    """One client connection bound to exactly one transport."""

    def __init__(self, transport, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.transport = transport
        self.state = SessionState.CONNECTING
        self.server_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def pending_invocations(self) -> int:
        return len(self._pending)

    def activate(self):
        if self.state is SessionState.CONNECTING:
            self.state = SessionState.ACTIVE

    async def deliver(self, message):
        """Hand an inbound client message to the protocol server of this session."""
        if not self.is_active:
            raise SessionClosedError(self.session_id)
        await self.transport.deliver(message)

    def track(self, task: asyncio.Task):
        """Register an in-flight invocation so a close can outlive it safely."""
        self._pending.add(task)
        task.add_done_callback(self._invocation_done)

    def _invocation_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if self.is_active or task.cancelled():
            return
        # The caller went away with the transport; retrieve the outcome so it is not reported as lost
        exc = task.exception()
        if exc is not None:
            logger.info(f"[{self.session_id}] Discarded failed invocation after close: {type(exc).__name__}: {exc}")
        else:
            logger.info(f"[{self.session_id}] Discarded invocation result after close")

    def close(self) -> bool:
        """Tear down the transport and stop the server task. Returns False if already closed."""
        if self.state in (SessionState.CLOSING, SessionState.CLOSED):
            return False
        self.state = SessionState.CLOSING
        try:
            self.transport.close()
        finally:
            task = self.server_task
            if task is not None and not task.done() and task is not _current_task():
                task.cancel()
            self.state = SessionState.CLOSED
        if self._pending:
            logger.info(f"[{self.session_id}] Closed with {len(self._pending)} invocation(s) still in flight")
        return True


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SessionTable:
    """Session identifier → Session. Only the session manager holds one."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def register(self, session: Session):
        if session.session_id in self._sessions:
            raise KeyError(f"Duplicate session id: {session.session_id}")
        self._sessions[session.session_id] = session

    def lookup(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def unregister(self, session_id: str) -> Optional[Session]:
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))
