"""
Feedback Dispatcher Service

Throttles and prioritises spoken coaching messages so the user is not
spammed. Three independent throttles apply:

1. Positioning hint - once, the first time landmarks are seen
2. Elapsed-time callouts - every N whole seconds, suppressed when any
   announcement went out recently
3. Critical form feedback - at most once per interval, only for poor
   overall scores

High-priority announcements (lifecycle messages) bypass all of them.
"""

import logging
from typing import List, Optional, Protocol, Tuple

from ..domain.analysis import AnalysisResult
from ..domain.session import SpeechPriority
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


POSITIONING_MESSAGE = (
    "Place your phone on the ground in landscape mode, leaning securely "
    "against an object. Position yourself sideways to the camera, not facing "
    "it, so your whole body is visible. When you're ready, I'll start "
    "detecting your plank and begin the timer."
)


class SpeechOutput(Protocol):
    """Speech-output collaborator. Owns queuing and cancellation."""

    def say(self, text: str, priority: SpeechPriority) -> None:
        ...


class LoggingSpeechOutput:
    """Speech output that only logs. Useful when no synthesizer is attached."""

    def say(self, text: str, priority: SpeechPriority) -> None:
        logger.info(f"[speech:{priority.value}] {text}")


class QueuedSpeechOutput:
    """
    Collects utterances so a host can forward them later.

    The live coaching WebSocket drains this after every step and sends
    the messages to the client's synthesizer.
    """

    def __init__(self):
        self.pending: List[Tuple[str, SpeechPriority]] = []

    def say(self, text: str, priority: SpeechPriority) -> None:
        self.pending.append((text, priority))

    def drain(self) -> List[Tuple[str, SpeechPriority]]:
        messages, self.pending = self.pending, []
        return messages


def format_elapsed(seconds: int) -> str:
    """Spoken form of an elapsed time, e.g. '1 minute 10 seconds'."""
    minutes, secs = divmod(seconds, 60)
    if minutes > 0:
        text = f"{minutes} minute{'s' if minutes != 1 else ''}"
        if secs > 0:
            text += f" {secs} second{'s' if secs != 1 else ''}"
        return text
    return f"{secs} second{'s' if secs != 1 else ''}"


class FeedbackDispatcher:
    """
    Decides what gets spoken and when.

    Usage:
        dispatcher = FeedbackDispatcher(LoggingSpeechOutput())
        dispatcher.positioning_hint(now_ms)
        dispatcher.critical_feedback(result, now_ms)
    """

    def __init__(
        self,
        speech: SpeechOutput,
        thresholds: CoachingThresholds = DEFAULT_THRESHOLDS,
        enabled: bool = True,
    ):
        self.speech = speech
        self.thresholds = thresholds
        self.enabled = enabled

        self.positioning_given = False
        self.last_announcement_ms: Optional[int] = None
        self.last_critical_ms: Optional[int] = None
        self.last_callout_second: Optional[int] = None

    # -------------------------------------------------------------------------
    # Speaking
    # -------------------------------------------------------------------------

    def speak(self, text: str, priority: SpeechPriority, now_ms: int) -> bool:
        """Submit a message to the speech collaborator."""
        if not self.enabled or not text.strip():
            return False
        self.speech.say(text, priority)
        self.last_announcement_ms = now_ms
        return True

    def announce(self, text: str, now_ms: int) -> bool:
        """High-priority lifecycle announcement, never throttled."""
        return self.speak(text, SpeechPriority.HIGH, now_ms)

    def toggle(self) -> bool:
        """Switch voice feedback on or off. Returns the new state."""
        self.enabled = not self.enabled
        logger.info(f"Voice feedback {'enabled' if self.enabled else 'disabled'}")
        return self.enabled

    # -------------------------------------------------------------------------
    # Throttled messages
    # -------------------------------------------------------------------------

    def positioning_hint(self, now_ms: int) -> bool:
        """Explain camera placement the first time the user is seen."""
        if self.positioning_given:
            return False
        self.positioning_given = True
        return self.speak(POSITIONING_MESSAGE, SpeechPriority.HIGH, now_ms)

    def elapsed_callout(self, elapsed_seconds: int, now_ms: int) -> bool:
        """
        Announce elapsed time on every multiple of the callout interval.

        Each multiple is announced at most once and is skipped entirely
        while the previous announcement is younger than the suppression
        window.
        """
        interval = self.thresholds.callout_interval_s
        if elapsed_seconds <= 0 or elapsed_seconds % interval != 0:
            return False
        if elapsed_seconds == self.last_callout_second:
            return False
        if (
            self.last_announcement_ms is not None
            and now_ms - self.last_announcement_ms < self.thresholds.callout_suppression_ms
        ):
            logger.debug(f"Callout at {elapsed_seconds}s suppressed")
            return False

        self.last_callout_second = elapsed_seconds
        message = f"{format_elapsed(elapsed_seconds)} completed. Keep holding!"
        return self.speak(message, SpeechPriority.MEDIUM, now_ms)

    def critical_feedback(self, result: AnalysisResult, now_ms: int) -> bool:
        """Speak the most urgent hint when form is poor, at most once per interval."""
        if not self.enabled:
            return False
        if (
            self.last_critical_ms is not None
            and now_ms - self.last_critical_ms < self.thresholds.critical_feedback_interval_ms
        ):
            return False
        if not result.feedback or result.overall_score >= self.thresholds.good_score:
            return False

        self.last_critical_ms = now_ms
        return self.speak(result.top_feedback, SpeechPriority.MEDIUM, now_ms)
