"""
Domain Models

Pure data structures representing plank coaching concepts.
No external dependencies - just Python dataclasses and enums.
"""

from .pose import PoseLandmark, PoseFrame, BodyPart, BodySide, SideLandmarks, LANDMARK_COUNT
from .analysis import PlankVariant, AnalysisResult, FeedbackMessage, round_score
from .session import (
    SessionState,
    SpeechPriority,
    TranscriptEvent,
    EventType,
    SessionEvent,
    SessionReport,
    Session,
)
from .thresholds import CoachingThresholds, DEFAULT_THRESHOLDS
from .errors import (
    PlankCoachError,
    SessionStateError,
    SessionNotFoundError,
    PersistenceError,
    PoseEngineUnavailableError,
    TelemetryConnectionError,
)

__all__ = [
    "PoseLandmark",
    "PoseFrame",
    "BodyPart",
    "BodySide",
    "SideLandmarks",
    "LANDMARK_COUNT",
    "PlankVariant",
    "AnalysisResult",
    "FeedbackMessage",
    "round_score",
    "SessionState",
    "SpeechPriority",
    "TranscriptEvent",
    "EventType",
    "SessionEvent",
    "SessionReport",
    "Session",
    "CoachingThresholds",
    "DEFAULT_THRESHOLDS",
    "PlankCoachError",
    "SessionStateError",
    "SessionNotFoundError",
    "PersistenceError",
    "PoseEngineUnavailableError",
    "TelemetryConnectionError",
]
