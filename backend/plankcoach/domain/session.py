"""
Coaching Session Domain Models

Lifecycle states, events emitted by the session state machine, the
final report and the persisted session record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .analysis import PlankVariant


class SessionState(Enum):
    """
    Coaching lifecycle.

    IDLE -> DETECTING -> IDENTIFYING -> ACTIVE <-> PAUSED -> STOPPED
    UNAVAILABLE is entered when the pose engine cannot run at all.
    """
    IDLE = "idle"
    DETECTING = "detecting"
    IDENTIFYING = "identifying"
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"
    UNAVAILABLE = "unavailable"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.STOPPED, SessionState.UNAVAILABLE)


class SpeechPriority(Enum):
    """
    Priority contract with the speech-output collaborator.

    HIGH messages may interrupt an in-flight utterance and bypass the
    critical-feedback throttle.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TranscriptEvent:
    """One speech-to-text result from the speech-input collaborator."""
    text: str
    confidence: float = 0.0
    is_final: bool = False


class EventType(Enum):
    """Things the state machine tells its host about."""
    STATE_CHANGED = "state_changed"
    ANALYSIS = "analysis"
    VARIANT_IDENTIFIED = "variant_identified"
    TIMER_STARTED = "timer_started"
    ELAPSED = "elapsed"
    FORM_BROKEN = "form_broken"
    SESSION_STOPPED = "session_stopped"


@dataclass(frozen=True)
class SessionEvent:
    """An event emitted by one state machine step."""
    type: EventType
    timestamp_ms: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionReport:
    """
    Final per-criterion and overall scores of a session.

    Attributes:
        body_alignment_score: Average over valid samples
        knee_position_score: Average over valid samples
        shoulder_stack_score: Average over valid samples
        average_score: Average overall score
        plank_variant: Variant of the last buffered sample
        sample_count: Number of buffered samples reduced
    """
    body_alignment_score: int
    knee_position_score: int
    shoulder_stack_score: int
    average_score: int
    plank_variant: PlankVariant
    sample_count: int = 0

    @property
    def grade(self) -> str:
        """Convert the average score to a letter grade."""
        if self.average_score >= 95:
            return "A+"
        elif self.average_score >= 90:
            return "A"
        elif self.average_score >= 85:
            return "B+"
        elif self.average_score >= 70:
            return "B"
        elif self.average_score >= 60:
            return "C"
        else:
            return "D"

    @property
    def grade_description(self) -> str:
        return {
            "A+": "Perfect Form",
            "A": "Excellent",
            "B+": "Very Good",
            "B": "Good",
            "C": "Fair",
            "D": "Needs Work",
        }[self.grade]

    @property
    def improvement_tips(self) -> list[str]:
        tips = []
        if self.body_alignment_score < 80:
            tips.append("Focus on maintaining a straight line from shoulders to ankles")
        if self.knee_position_score < 80:
            tips.append("Keep your legs straight and avoid sagging knees")
        if self.shoulder_stack_score < 80:
            tips.append("Ensure shoulders are directly over wrists/elbows")
        if self.average_score < 70:
            tips.append("Practice holding the position for shorter durations with perfect form")
        return tips

    def to_dict(self) -> dict[str, Any]:
        return {
            "bodyAlignmentScore": self.body_alignment_score,
            "kneePositionScore": self.knee_position_score,
            "shoulderStackScore": self.shoulder_stack_score,
            "averageScore": self.average_score,
            "plankType": self.plank_variant.value,
            "sampleCount": self.sample_count,
            "grade": self.grade,
            "gradeDescription": self.grade_description,
            "tips": self.improvement_tips,
        }


@dataclass
class Session:
    """
    A persisted coaching session.

    Created when the plank is identified and updated once at stop with
    the aggregated report.
    """
    id: str
    plank_variant: PlankVariant
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: int = 0
    completed: bool = False
    average_score: Optional[int] = None
    body_alignment_score: Optional[int] = None
    knee_position_score: Optional[int] = None
    shoulder_stack_score: Optional[int] = None

    def apply(self, updates: dict[str, Any]) -> None:
        """Apply a partial update (only known fields)."""
        for key, value in updates.items():
            if not hasattr(self, key) or key == "id":
                raise ValueError(f"Unknown session field: {key}")
            setattr(self, key, value)

    def stored_report(self) -> Optional[SessionReport]:
        """
        The report saved when the session was finalized.

        None until the session is completed with all four scores. The
        sample count is not persisted and reads as 0.
        """
        scores = (
            self.body_alignment_score,
            self.knee_position_score,
            self.shoulder_stack_score,
            self.average_score,
        )
        if not self.completed or any(score is None for score in scores):
            return None
        return SessionReport(
            body_alignment_score=self.body_alignment_score,
            knee_position_score=self.knee_position_score,
            shoulder_stack_score=self.shoulder_stack_score,
            average_score=self.average_score,
            plank_variant=self.plank_variant,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plankType": self.plank_variant.value,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration_seconds,
            "completed": self.completed,
            "averageScore": self.average_score,
            "bodyAlignmentScore": self.body_alignment_score,
            "kneePositionScore": self.knee_position_score,
            "shoulderStackScore": self.shoulder_stack_score,
        }
