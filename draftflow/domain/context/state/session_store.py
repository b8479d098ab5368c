from typing import Callable, Dict, Optional
import asyncio
import uuid
from datetime import datetime
import structlog

from draftflow.domain.errors import Busy, StaleAction
from draftflow.domain.models.session import Session, WorkflowState

logger = structlog.get_logger(__name__)

SessionMutator = Callable[[Session], None]


class TransitionHandle:
    """Exclusive right to mutate one conversation's session"""

    def __init__(self, session: Session, action: str):
        self.token = uuid.uuid4().hex
        self.conversation_id = session.conversation_id
        self.action = action
        self.original = session.model_copy(deep=True)
        self.started_at = datetime.utcnow()

    @property
    def session(self) -> Session:
        """Snapshot of the session as it was when the transition began"""
        return self.original.model_copy(deep=True)

    def held_seconds(self) -> float:
        """How long the lock has been held"""
        return (datetime.utcnow() - self.started_at).total_seconds()

    def __repr__(self) -> str:
        return f"TransitionHandle({self.conversation_id!r}, {self.action!r}, v{self.original.version})"


class SessionStore:
    """Maps conversation ids to sessions with one in-flight transition per conversation"""

    def __init__(self):
        self.sessions: Dict[str, Session] = {}
        self.in_flight: Dict[str, TransitionHandle] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, conversation_id: str) -> Session:
        """Get the session for a conversation, creating a fresh one if absent"""

        async with self._lock:
            return self._get_or_create(conversation_id).model_copy(deep=True)

    async def get(self, conversation_id: str) -> Optional[Session]:
        """Get a snapshot of the session, or None"""

        async with self._lock:
            session = self.sessions.get(conversation_id)
            return session.model_copy(deep=True) if session else None

    async def try_begin_transition(
        self,
        conversation_id: str,
        action: str,
        expected_version: Optional[int] = None
    ) -> TransitionHandle:
        """Acquire the conversation's transition lock.

        Raises Busy if a transition is already in flight and StaleAction if
        expected_version does not match the session's version.
        """

        async with self._lock:
            if conversation_id in self.in_flight:
                raise Busy(conversation_id)

            session = self._get_or_create(conversation_id)
            if expected_version is not None and expected_version != session.version:
                raise StaleAction(session.state.value, action, expected_version, session.version)

            handle = TransitionHandle(session, action)
            self.in_flight[conversation_id] = handle
            return handle

    async def mark_progress(self, handle: TransitionHandle, state: WorkflowState) -> bool:
        """Expose a transient state while the transition runs; version is unchanged"""

        async with self._lock:
            if not self._is_current(handle):
                return False
            self.sessions[handle.conversation_id].state = state
            return True

    async def commit(self, handle: TransitionHandle, mutator: SessionMutator) -> Optional[Session]:
        """Apply mutator, bump the version and release the lock.

        Returns the committed snapshot, or None if the handle was already
        released. InvariantViolation from the mutated session leaves the
        stored session and the lock untouched.
        """

        async with self._lock:
            if not self._is_current(handle):
                logger.warning("Commit on released transition", conversation_id=handle.conversation_id, action=handle.action)
                return None

            updated = self.sessions[handle.conversation_id].model_copy(deep=True)
            mutator(updated)
            updated.version = handle.original.version + 1
            updated.touch()
            updated.check_invariants()

            self.sessions[handle.conversation_id] = updated
            del self.in_flight[handle.conversation_id]
            return updated.model_copy(deep=True)

    async def abort(self, handle: TransitionHandle) -> bool:
        """Release the lock and restore the pre-transition session"""

        async with self._lock:
            if not self._is_current(handle):
                return False

            self.sessions[handle.conversation_id] = handle.original.model_copy(deep=True)
            del self.in_flight[handle.conversation_id]
            return True

    def is_in_flight(self, conversation_id: str) -> bool:
        """Whether a transition currently holds the conversation's lock"""
        return conversation_id in self.in_flight

    async def evict_idle(self, max_idle_seconds: float) -> int:
        """Drop finished or untouched sessions idle longer than max_idle_seconds"""

        async with self._lock:
            now = datetime.utcnow()
            stale = [
                conversation_id
                for conversation_id, session in self.sessions.items()
                if conversation_id not in self.in_flight
                and (session.state == WorkflowState.DONE or session.is_pristine())
                and (now - session.last_activity).total_seconds() > max_idle_seconds
            ]

            for conversation_id in stale:
                del self.sessions[conversation_id]

        if stale:
            logger.info("Evicted idle sessions", count=len(stale))
        return len(stale)

    async def sweep_idle(self, max_idle_seconds: float, interval_seconds: float = 60):
        """Periodically evict idle sessions"""
        while True:
            try:
                await self.evict_idle(max_idle_seconds)
            except Exception as e:
                logger.error("Idle sweep error", error=str(e))

            await asyncio.sleep(interval_seconds)

    async def active_sessions(self) -> int:
        """Number of sessions currently held"""

        async with self._lock:
            return len(self.sessions)

    def _get_or_create(self, conversation_id: str) -> Session:
        session = self.sessions.get(conversation_id)
        if session is None:
            session = Session(conversation_id=conversation_id)
            self.sessions[conversation_id] = session
            logger.info("Session created", conversation_id=conversation_id)
        return session

    def _is_current(self, handle: TransitionHandle) -> bool:
        current = self.in_flight.get(handle.conversation_id)
        return current is not None and current.token == handle.token
