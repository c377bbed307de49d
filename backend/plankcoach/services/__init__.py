"""
Services Layer

Business logic for real-time plank coaching.
These services orchestrate domain models and external collaborators.
"""

from .angle_calculator import AngleCalculator
from .landmark_classifier import LandmarkClassifier
from .plank_analyzer import PlankAnalyzer
from .trackers import StabilityTracker, FailureTracker, SessionTimer
from .feedback_dispatcher import (
    FeedbackDispatcher,
    SpeechOutput,
    LoggingSpeechOutput,
    QueuedSpeechOutput,
)
from .voice_commands import VoiceCommandListener
from .report_aggregator import ReportAggregator
from .session_store import SessionRepository, InMemorySessionStore
from .telemetry import TelemetryBroadcaster, TelemetrySink, make_envelope, backoff_delay
from .coaching_session import CoachingSession
from .coaching_loop import CoachingLoop, FrameMessage, TranscriptMessage, CommandMessage
from .pose_detector import PoseDetector

__all__ = [
    "AngleCalculator",
    "LandmarkClassifier",
    "PlankAnalyzer",
    "StabilityTracker",
    "FailureTracker",
    "SessionTimer",
    "FeedbackDispatcher",
    "SpeechOutput",
    "LoggingSpeechOutput",
    "QueuedSpeechOutput",
    "VoiceCommandListener",
    "ReportAggregator",
    "SessionRepository",
    "InMemorySessionStore",
    "TelemetryBroadcaster",
    "TelemetrySink",
    "make_envelope",
    "backoff_delay",
    "CoachingSession",
    "CoachingLoop",
    "FrameMessage",
    "TranscriptMessage",
    "CommandMessage",
    "PoseDetector",
]
