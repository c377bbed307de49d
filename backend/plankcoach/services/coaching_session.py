"""
Coaching Session Service

The session state machine. One CoachingSession owns every timer and
tracker of a single coaching run; hosts feed it landmark frames,
transcripts and user actions together with a `now_ms` timestamp, and
read back the events each step produced.

Lifecycle:
    IDLE -> DETECTING -> IDENTIFYING -> ACTIVE <-> PAUSED -> STOPPED

- DETECTING starts with the first non-empty landmark frame
- IDENTIFYING starts once a variant is classified with acceptable form
- ACTIVE starts once that variant has been stable for the stability
  window; the timer starts after a short grace delay
- STOPPED is reached by user stop, voice command or sustained form failure
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..domain.analysis import AnalysisResult, PlankVariant
from ..domain.errors import PersistenceError, SessionStateError
from ..domain.pose import PoseFrame
from ..domain.session import (
    EventType,
    Session,
    SessionEvent,
    SessionReport,
    SessionState,
    TranscriptEvent,
)
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS
from .feedback_dispatcher import FeedbackDispatcher, LoggingSpeechOutput, SpeechOutput
from .plank_analyzer import PlankAnalyzer
from .report_aggregator import ReportAggregator
from .session_store import SessionRepository
from .telemetry import TelemetrySink
from .trackers import FailureTracker, SessionTimer, StabilityTracker
from .voice_commands import VoiceCommandListener

logger = logging.getLogger(__name__)


# Scheduled actions
START_TIMER = "start_timer"
STOP_HINT = "stop_hint"
AUTO_STOP = "auto_stop"


class CoachingSession:
    """
    Real-time plank coaching state machine.

    Usage:
        coaching = CoachingSession(speech=my_synth, repository=store)
        for frame in frames:
            events = coaching.process_frame(frame, now_ms())
        coaching.stop(now_ms())
        print(coaching.report)
    """

    def __init__(
        self,
        speech: Optional[SpeechOutput] = None,
        repository: Optional[SessionRepository] = None,
        telemetry: Optional[TelemetrySink] = None,
        thresholds: CoachingThresholds = DEFAULT_THRESHOLDS,
        analyzer: Optional[PlankAnalyzer] = None,
    ):
        self.thresholds = thresholds
        self.repository = repository
        self.telemetry = telemetry

        self.analyzer = analyzer or PlankAnalyzer(thresholds)
        self.dispatcher = FeedbackDispatcher(speech or LoggingSpeechOutput(), thresholds)
        self.voice = VoiceCommandListener(thresholds)
        self.stability = StabilityTracker(thresholds)
        self.failure = FailureTracker(thresholds)
        self.timer = SessionTimer()
        self.aggregator = ReportAggregator(thresholds)

        self.state = SessionState.IDLE
        self.identified_variant = PlankVariant.UNKNOWN
        self.session: Optional[Session] = None
        self.samples: List[AnalysisResult] = []
        self.last_result: Optional[AnalysisResult] = None
        self.report: Optional[SessionReport] = None
        self.stop_reason: Optional[str] = None
        self.unavailable_reason: Optional[str] = None

        self._last_analysis_ms: Optional[int] = None
        self._last_elapsed_second: Optional[int] = None
        self._auto_stopping = False
        self._scheduled: List[Tuple[int, str]] = []
        self._events: List[SessionEvent] = []

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session is not None else None

    def elapsed_seconds(self, now_ms: int) -> int:
        return self.timer.elapsed_seconds(now_ms)

    def snapshot(self, now_ms: int) -> Dict[str, Any]:
        """Current state in the JSON shape used by the API."""
        return {
            "state": self.state.value,
            "sessionId": self.session_id,
            "plankType": self.identified_variant.value,
            "elapsedSeconds": self.elapsed_seconds(now_ms),
            "timerRunning": self.timer.is_running,
            "voiceCommandsAvailable": self.voice.available,
            "voiceFeedbackEnabled": self.dispatcher.enabled,
        }

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def process_frame(self, frame: PoseFrame, now_ms: int) -> List[SessionEvent]:
        """
        Feed one landmark frame.

        Frames arriving faster than the analysis interval are dropped, so
        analysis cost does not follow the camera frame rate.
        """
        if self.state.is_terminal:
            return self._flush()

        self._advance_clock(now_ms)
        if self.state.is_terminal or frame.is_empty:
            return self._flush()

        if (
            self._last_analysis_ms is not None
            and now_ms - self._last_analysis_ms < self.thresholds.analysis_interval_ms
        ):
            return self._flush()
        self._last_analysis_ms = now_ms

        result = self.analyzer.analyze(frame)
        self.last_result = result

        if self.state is SessionState.IDLE:
            self._transition(SessionState.DETECTING, now_ms)
            self.dispatcher.positioning_hint(now_ms)

        self._emit(EventType.ANALYSIS, now_ms, analysis=result.to_dict())

        if self.state in (SessionState.DETECTING, SessionState.IDENTIFYING):
            self._advance_identification(result, now_ms)
        elif self.state is SessionState.ACTIVE and self.timer.is_running:
            self.samples.append(result)
            self._check_failure(result, now_ms)

        if self.state is not SessionState.PAUSED:
            self.dispatcher.critical_feedback(result, now_ms)

        if self.session is not None and self.telemetry is not None:
            self.telemetry.publish(self.session.id, result)

        return self._flush()

    def tick(self, now_ms: int) -> List[SessionEvent]:
        """Advance timers without a frame (elapsed callouts, scheduled actions)."""
        if not self.state.is_terminal:
            self._advance_clock(now_ms)
        return self._flush()

    def handle_transcript(self, event: TranscriptEvent, now_ms: int) -> List[SessionEvent]:
        """Feed one speech-to-text result. Stop commands count once the timer has started."""
        if self.state.is_terminal or not self.timer.has_started:
            return self._flush()
        if self.voice.handle(event):
            self._finalize(now_ms, "voice_command")
        return self._flush()

    def on_voice_error(self, error: str) -> None:
        self.voice.on_error(error)

    def on_voice_start_failed(self) -> None:
        self.voice.on_start_failed()

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    def pause(self, now_ms: int) -> List[SessionEvent]:
        """Pause the running timer; elapsed time is kept."""
        self._advance_clock(now_ms)
        if self.state is not SessionState.ACTIVE or not self.timer.is_running:
            raise SessionStateError(f"Cannot pause while {self.state.value}")

        self.timer.pause(now_ms)
        self.failure.reset()
        self._transition(SessionState.PAUSED, now_ms)
        self.dispatcher.announce("Session paused", now_ms)
        return self._flush()

    def resume(self, now_ms: int) -> List[SessionEvent]:
        """Resume a paused session, continuing from the elapsed time."""
        self._advance_clock(now_ms)
        if self.state is not SessionState.PAUSED:
            raise SessionStateError(f"Cannot resume while {self.state.value}")

        self.timer.resume(now_ms)
        self._transition(SessionState.ACTIVE, now_ms)
        self.dispatcher.announce("Session resumed", now_ms)
        return self._flush()

    def toggle_pause(self, now_ms: int) -> List[SessionEvent]:
        if self.state is SessionState.PAUSED:
            return self.resume(now_ms)
        return self.pause(now_ms)

    def stop(self, now_ms: int, reason: str = "manual") -> List[SessionEvent]:
        """
        Stop the session and produce the final report.

        Stopping an already stopped session does nothing.

        Raises:
            PersistenceError: if storing the report failed; `self.report`
                is still set
        """
        if self.state.is_terminal:
            return self._flush()
        self._finalize(now_ms, reason)
        return self._flush()

    def mark_unavailable(self, reason: str, now_ms: int) -> List[SessionEvent]:
        """The pose engine cannot run; analysis is over for this session."""
        if self.state.is_terminal:
            return self._flush()
        logger.error(f"Pose analysis unavailable: {reason}")
        self.unavailable_reason = reason
        self._scheduled.clear()
        self.timer.pause(now_ms)
        self._transition(SessionState.UNAVAILABLE, now_ms, reason=reason)
        return self._flush()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _advance_identification(self, result: AnalysisResult, now_ms: int) -> None:
        qualified = self.stability.update(result, now_ms)

        if self.state is SessionState.DETECTING:
            if not qualified:
                return
            self._transition(SessionState.IDENTIFYING, now_ms, plankType=result.plank_variant.value)
        elif not qualified:
            self._transition(SessionState.DETECTING, now_ms)
            return

        if self.stability.is_stable(now_ms):
            self._identify(self.stability.variant, now_ms)

    def _identify(self, variant: PlankVariant, now_ms: int) -> None:
        self.identified_variant = variant
        self._transition(SessionState.ACTIVE, now_ms, plankType=variant.value)
        self.dispatcher.announce(f"{variant.display_name} identified", now_ms)

        if self.repository is not None:
            self.session = self.repository.create_session(variant)
        else:
            self.session = Session(
                id=str(uuid.uuid4()),
                plank_variant=variant,
                start_time=datetime.now(),
            )

        self._emit(
            EventType.VARIANT_IDENTIFIED,
            now_ms,
            plankType=variant.value,
            sessionId=self.session.id,
        )
        self._schedule(now_ms + self.thresholds.identification_grace_ms, START_TIMER)

    def _check_failure(self, result: AnalysisResult, now_ms: int) -> None:
        if self._auto_stopping:
            return
        if not self.failure.update(result, now_ms):
            return

        logger.info("Form failure sustained - auto stopping session")
        self._auto_stopping = True
        self.dispatcher.announce("Form broken - session ending", now_ms)
        self._emit(EventType.FORM_BROKEN, now_ms)
        self._schedule(now_ms + self.thresholds.auto_stop_delay_ms, AUTO_STOP)

    def _finalize(self, now_ms: int, reason: str) -> None:
        elapsed = self.timer.elapsed_seconds(now_ms)
        self.timer.pause(now_ms)
        self._scheduled.clear()
        self.stop_reason = reason

        self._transition(SessionState.STOPPED, now_ms, reason=reason)
        self.dispatcher.announce("Session completed", now_ms)

        if self.session is None:
            self._emit(EventType.SESSION_STOPPED, now_ms, reason=reason, report=None)
            return

        self.report = self.aggregator.aggregate(self.samples)
        self.samples = []

        variant = self.report.plank_variant
        if self.report.sample_count == 0:
            variant = self.identified_variant

        updates = {
            "end_time": datetime.now(),
            "duration_seconds": elapsed,
            "average_score": self.report.average_score,
            "body_alignment_score": self.report.body_alignment_score,
            "knee_position_score": self.report.knee_position_score,
            "shoulder_stack_score": self.report.shoulder_stack_score,
            "plank_variant": variant,
            "completed": True,
        }
        self.session.apply(updates)

        self._emit(
            EventType.SESSION_STOPPED,
            now_ms,
            reason=reason,
            elapsedSeconds=elapsed,
            report=self.report.to_dict(),
        )

        if self.repository is None:
            return
        try:
            self.session = self.repository.update_session(self.session.id, updates)
        except Exception as e:
            logger.error(f"Failed to store session {self.session.id}: {e}")
            raise PersistenceError(f"Failed to store session: {e}", report=self.report) from e

    def _transition(self, new_state: SessionState, now_ms: int, **data: Any) -> None:
        old_state = self.state
        self.state = new_state
        logger.info(f"Session state {old_state.value} -> {new_state.value}")
        self._emit(
            EventType.STATE_CHANGED,
            now_ms,
            previous=old_state.value,
            state=new_state.value,
            **data,
        )

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _schedule(self, due_ms: int, action: str) -> None:
        self._scheduled.append((due_ms, action))
        self._scheduled.sort()

    def _advance_clock(self, now_ms: int) -> None:
        """Run due scheduled actions, then update the elapsed time."""
        while self._scheduled and not self.state.is_terminal:
            due_ms, action = self._scheduled[0]
            if due_ms > now_ms:
                break
            self._scheduled.pop(0)
            self._run_action(action, due_ms)

        if self.state.is_terminal or not self.timer.is_running:
            return

        elapsed = self.timer.elapsed_seconds(now_ms)
        if elapsed != self._last_elapsed_second:
            self._last_elapsed_second = elapsed
            self._emit(EventType.ELAPSED, now_ms, elapsedSeconds=elapsed)
            self.dispatcher.elapsed_callout(elapsed, now_ms)

    def _run_action(self, action: str, due_ms: int) -> None:
        if action == START_TIMER:
            # Anchored at the due time so a late tick does not shorten the session
            self.timer.start(due_ms)
            self.dispatcher.announce("Timer started", due_ms)
            self._emit(EventType.TIMER_STARTED, due_ms)
            self._schedule(due_ms + self.thresholds.stop_hint_delay_ms, STOP_HINT)
        elif action == STOP_HINT:
            if self.voice.available:
                self.dispatcher.announce("Say stop to end your session", due_ms)
        elif action == AUTO_STOP:
            self._finalize(due_ms, "form_broken")
        else:
            raise ValueError(f"Unknown scheduled action: {action}")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _emit(self, event_type: EventType, now_ms: int, **data: Any) -> None:
        self._events.append(SessionEvent(type=event_type, timestamp_ms=now_ms, data=data))

    def _flush(self) -> List[SessionEvent]:
        events, self._events = self._events, []
        return events
