"""
API Dependencies

Shared collaborators injected into routes and WebSocket handlers.
Tests swap them through `app.dependency_overrides`.
"""

from typing import Callable

from ..services import InMemorySessionStore, PoseDetector

# Global session store
session_store = InMemorySessionStore()


def get_store() -> InMemorySessionStore:
    """The session store backing this process."""
    return session_store


def get_detector_factory() -> Callable[[], PoseDetector]:
    """Factory for pose detectors. Construction raises PoseEngineUnavailableError."""
    return PoseDetector
