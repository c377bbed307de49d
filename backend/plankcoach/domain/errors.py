"""
Domain Errors

Exceptions raised by the coaching core. Occlusion is never an error;
these cover illegal actions and collaborator failures.
"""
from typing import Optional


class PlankCoachError(Exception):
    """Base class for all coaching errors."""


class SessionStateError(PlankCoachError, ValueError):
    """An action is not allowed in the current session state."""


class SessionNotFoundError(PlankCoachError, KeyError):
    """The persistence collaborator has no session with this id."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class PersistenceError(PlankCoachError):
    """
    Storing the final report failed.

    The report is attached so the caller can still display it.
    """

    def __init__(self, message: str, report: Optional[object] = None):
        super().__init__(message)
        self.report = report


class PoseEngineUnavailableError(PlankCoachError):
    """The pose-estimation engine is missing or failed to initialize."""


class TelemetryConnectionError(PlankCoachError, ConnectionError):
    """The telemetry channel gave up reconnecting."""
