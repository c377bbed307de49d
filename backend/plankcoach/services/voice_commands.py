"""
Voice Command Listener

Recognises spoken stop commands in noisy speech-to-text transcripts.
Confidence scores from recognisers are unreliable, so matching is a
substring test that favours recall over precision.
"""

import logging

from ..domain.session import TranscriptEvent
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


# Recogniser error codes that are part of normal operation
BENIGN_ERRORS = {"no-speech", "aborted", "network"}
PERMISSION_DENIED = "not-allowed"


class VoiceCommandListener:
    """
    Stop-command matcher with graceful downgrade.

    Permission denial, or repeated failures to start the recogniser, make
    voice commands permanently unavailable for the session. Everything
    else keeps working.
    """

    def __init__(self, thresholds: CoachingThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds
        self.available = True
        self.start_failures = 0

    def is_stop_command(self, transcript: str) -> bool:
        """Fuzzy match a transcript against the stop words."""
        text = transcript.lower().strip()
        if not text:
            return False
        if text in self.thresholds.stop_exact_transcripts:
            return True
        words = self.thresholds.stop_words + self.thresholds.stop_word_aliases
        return any(word in text for word in words)

    def handle(self, event: TranscriptEvent) -> bool:
        """
        Process one transcript event.

        Interim results are matched as well as final ones.

        Returns:
            True if the event is a stop command
        """
        if not self.available:
            return False
        if self.is_stop_command(event.text):
            logger.info(
                f"Stop command detected: '{event.text}' "
                f"(confidence={event.confidence:.2f}, final={event.is_final})"
            )
            return True
        return False

    def on_started(self) -> None:
        self.start_failures = 0

    def on_start_failed(self) -> None:
        self.start_failures += 1
        if self.start_failures >= self.thresholds.voice_start_failure_limit:
            self._disable(f"recogniser failed to start {self.start_failures} times")

    def on_error(self, error: str) -> None:
        """Handle a recogniser error code."""
        if error == PERMISSION_DENIED:
            self._disable("microphone permission denied")
        elif error not in BENIGN_ERRORS:
            logger.debug(f"Speech recognition error: {error}")

    def _disable(self, reason: str) -> None:
        if self.available:
            logger.warning(f"Voice commands unavailable: {reason}")
        self.available = False
