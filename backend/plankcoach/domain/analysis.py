"""
Plank Analysis Domain Models

Data structures for the per-tick form analysis: the classified plank
variant, the three criterion scores and the feedback hints.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class PlankVariant(Enum):
    """
    Plank types recognised from the arm angle.

    - HIGH: arms extended, hands under shoulders
    - ELBOW: forearms on the ground, elbows under shoulders
    - UNKNOWN: arm angle outside both bands (or arm not visible)
    """
    HIGH = "high"
    ELBOW = "elbow"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        if self is PlankVariant.HIGH:
            return "High plank"
        if self is PlankVariant.ELBOW:
            return "Elbow plank"
        return "Plank"


class FeedbackMessage:
    """Feedback strings, grouped by criterion."""
    RAISE_HIPS = "Raise your hips"
    LOWER_HIPS = "Lower your hips"
    BODY_LOW_VISIBILITY = "Can't see your body clearly. Try better lighting."

    STRAIGHTEN_LEGS = "Straighten your legs"
    LEGS_LOW_VISIBILITY = "Can't see your legs clearly. Adjust position."

    HANDS_UNDER_SHOULDERS = "Keep hands under shoulders"
    ELBOWS_UNDER_SHOULDERS = "Keep elbows under shoulders"

    LOW_VISIBILITY = (BODY_LOW_VISIBILITY, LEGS_LOW_VISIBILITY)


def round_score(value: float) -> int:
    """Round half up, so 84.5 scores 85 rather than banker's 84."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class AnalysisResult:
    """
    Form analysis for a single tick.

    Angles default to 0 and sub-scores to the fallback score when the
    landmarks they need are not visible enough.

    Attributes:
        body_alignment_angle: Directed shoulder-hip-ankle angle (180 = straight)
        knee_angle: Hip-knee-ankle angle
        shoulder_stack_angle: Angle of the shoulder over the supporting joint
        body_alignment_score: 0-100
        knee_position_score: 0-100
        shoulder_stack_score: 0-100
        overall_score: Rounded mean of the three sub-scores
        feedback: Hints, most urgent first
        plank_variant: Classified plank type
    """
    body_alignment_angle: float = 0.0
    knee_angle: float = 0.0
    shoulder_stack_angle: float = 0.0
    body_alignment_score: int = 0
    knee_position_score: int = 0
    shoulder_stack_score: int = 0
    overall_score: int = 0
    feedback: tuple[str, ...] = field(default_factory=tuple)
    plank_variant: PlankVariant = PlankVariant.UNKNOWN

    @property
    def sub_scores(self) -> tuple[int, int, int]:
        return (
            self.body_alignment_score,
            self.knee_position_score,
            self.shoulder_stack_score,
        )

    @property
    def top_feedback(self) -> str:
        """The most urgent hint, or an empty string."""
        return self.feedback[0] if self.feedback else ""

    def count_below(self, threshold: float) -> int:
        """How many sub-scores are below the threshold."""
        return sum(1 for score in self.sub_scores if score < threshold)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape used on the wire."""
        return {
            "bodyAlignmentAngle": self.body_alignment_angle,
            "kneeAngle": self.knee_angle,
            "shoulderStackAngle": self.shoulder_stack_angle,
            "bodyAlignmentScore": self.body_alignment_score,
            "kneePositionScore": self.knee_position_score,
            "shoulderStackScore": self.shoulder_stack_score,
            "overallScore": self.overall_score,
            "feedback": list(self.feedback),
            "plankType": self.plank_variant.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisResult":
        feedback = data.get("feedback") or ()
        if isinstance(feedback, str):
            feedback = tuple(part.strip() for part in feedback.split(",") if part.strip())
        return cls(
            body_alignment_angle=float(data.get("bodyAlignmentAngle", 0.0)),
            knee_angle=float(data.get("kneeAngle", 0.0)),
            shoulder_stack_angle=float(data.get("shoulderStackAngle", 0.0)),
            body_alignment_score=int(data.get("bodyAlignmentScore", 0)),
            knee_position_score=int(data.get("kneePositionScore", 0)),
            shoulder_stack_score=int(data.get("shoulderStackScore", 0)),
            overall_score=int(data.get("overallScore", 0)),
            feedback=tuple(feedback),
            plank_variant=PlankVariant(data.get("plankType", PlankVariant.UNKNOWN.value)),
        )
