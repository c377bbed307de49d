"""
Session Store

Persistence collaborator for coaching sessions and their analysis rows.
The coaching core only depends on the SessionRepository protocol; the
in-memory store backs the API server.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Protocol

from ..domain.analysis import AnalysisResult, PlankVariant
from ..domain.errors import SessionNotFoundError
from ..domain.session import Session

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """What the coaching core needs from persistence."""

    def create_session(self, plank_variant: PlankVariant) -> Session:
        ...

    def update_session(self, session_id: str, updates: Dict[str, Any]) -> Session:
        ...

    def get_session_analysis(self, session_id: str) -> List[AnalysisResult]:
        ...


class InMemorySessionStore:
    """
    Dict-backed session storage.

    Sessions are keyed by a uuid4 string; analysis rows are appended per
    session in arrival order.
    """

    def __init__(self):
        self.sessions: Dict[str, Session] = {}
        self.analysis: Dict[str, List[AnalysisResult]] = {}

    def create_session(self, plank_variant: PlankVariant) -> Session:
        session = Session(
            id=str(uuid.uuid4()),
            plank_variant=plank_variant,
            start_time=datetime.now(),
        )
        self.sessions[session.id] = session
        self.analysis[session.id] = []
        logger.info(f"Created session {session.id} ({plank_variant.value})")
        return session

    def get_session(self, session_id: str) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> List[Session]:
        return sorted(self.sessions.values(), key=lambda s: s.start_time, reverse=True)

    def update_session(self, session_id: str, updates: Dict[str, Any]) -> Session:
        session = self.get_session(session_id)
        session.apply(updates)
        logger.info(f"Updated session {session_id}: {sorted(updates)}")
        return session

    def add_session_analysis(self, session_id: str, result: AnalysisResult) -> None:
        self.get_session(session_id)
        self.analysis[session_id].append(result)

    def get_session_analysis(self, session_id: str) -> List[AnalysisResult]:
        self.get_session(session_id)
        return list(self.analysis[session_id])
