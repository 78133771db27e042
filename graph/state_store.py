import logging
import time
from typing import Callable, Dict

from graph.session import SimulationSession
from models.errors import OwnershipViolation, UnknownOption
from models.state import SelectionPhase

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    In-process registry of live simulation sessions, keyed by session id.

    A session is only handed back to the user that created it. Saved
    sessions and sessions idle for longer than ``max_idle_seconds`` are
    pruned whenever a new session is created.
    """

    def __init__(
        self,
        factory: Callable[[str], SimulationSession],
        max_idle_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._max_idle = max_idle_seconds
        self._clock = clock
        self._sessions: Dict[str, SimulationSession] = {}
        self._last_seen: Dict[str, float] = {}

    def create(self, owner_id: str) -> SimulationSession:
        self.prune()
        session = self._factory(owner_id)
        self._sessions[session.id] = session
        self._last_seen[session.id] = self._clock()
        return session

    def get(self, session_id: str, owner_id: str) -> SimulationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise UnknownOption(f"Session {session_id} was not found.")
        if session.owner_id != owner_id:
            raise OwnershipViolation("This session belongs to another user.")
        self._last_seen[session_id] = self._clock()
        return session

    def drop(self, session_id: str, owner_id: str) -> None:
        session = self.get(session_id, owner_id)
        self._remove(session)

    def prune(self) -> int:
        """Drop saved and idle sessions. Returns how many were removed."""
        now = self._clock()
        stale = [
            session
            for session_id, session in self._sessions.items()
            if session.phase is SelectionPhase.PERSISTED
            or now - self._last_seen[session_id] > self._max_idle
        ]
        for session in stale:
            self._remove(session)
        if stale:
            logger.info("Pruned %d session(s), %d live", len(stale), len(self._sessions))
        return len(stale)

    def _remove(self, session: SimulationSession) -> None:
        session.discard()
        del self._sessions[session.id]
        del self._last_seen[session.id]

    def __len__(self) -> int:
        return len(self._sessions)
