"""
Plank Analyzer Service

Turns one landmark frame into an AnalysisResult: three criterion scores,
an overall score, feedback hints and the classified plank variant.

This is the scoring engine used on every analysis tick. It is a pure
function of its input frame.
"""

import logging
from typing import List, Optional, Tuple

from ..domain.analysis import AnalysisResult, FeedbackMessage, PlankVariant, round_score
from ..domain.pose import PoseFrame, PoseLandmark, SideLandmarks
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS
from .angle_calculator import AngleCalculator
from .landmark_classifier import LandmarkClassifier

logger = logging.getLogger(__name__)


class PlankAnalyzer:
    """
    Scores plank form from pose landmarks.

    This service:
    1. Picks the better-observed body side
    2. Classifies the plank variant
    3. Scores body alignment, knee position and shoulder stack
    4. Collects feedback hints, most urgent first

    Usage:
        analyzer = PlankAnalyzer()
        result = analyzer.analyze(frame)
        print(f"Overall score: {result.overall_score}")
    """

    def __init__(
        self,
        thresholds: CoachingThresholds = DEFAULT_THRESHOLDS,
        classifier: Optional[LandmarkClassifier] = None,
    ):
        self.thresholds = thresholds
        self.classifier = classifier or LandmarkClassifier(thresholds)

    # -------------------------------------------------------------------------
    # Main Analysis Method
    # -------------------------------------------------------------------------

    def analyze(self, frame: PoseFrame) -> AnalysisResult:
        """
        Analyze plank form in a single frame.

        Args:
            frame: PoseFrame with the 33 landmarks

        Returns:
            AnalysisResult with scores in [0, 100]
        """
        side = self.classifier.better_side(frame)
        chain = frame.side(side)
        variant = self.classifier.classify_variant(frame, side)

        feedback: List[str] = []

        alignment_angle, alignment_score = self._score_body_alignment(chain, feedback)
        knee_angle, knee_score = self._score_knee_position(chain, feedback)
        stack_angle, stack_score = self._score_shoulder_stack(chain, variant, feedback)

        sub_scores = (
            round_score(alignment_score),
            round_score(knee_score),
            round_score(stack_score),
        )
        overall = round_score(sum(sub_scores) / len(sub_scores))

        return AnalysisResult(
            body_alignment_angle=alignment_angle,
            knee_angle=knee_angle,
            shoulder_stack_angle=stack_angle,
            body_alignment_score=sub_scores[0],
            knee_position_score=sub_scores[1],
            shoulder_stack_score=sub_scores[2],
            overall_score=overall,
            feedback=tuple(feedback),
            plank_variant=variant,
        )

    # -------------------------------------------------------------------------
    # Criteria
    # -------------------------------------------------------------------------

    def _visible(self, *landmarks: Optional[PoseLandmark]) -> bool:
        threshold = self.thresholds.visibility_threshold
        return all(lm is not None and lm.is_visible(threshold) for lm in landmarks)

    def _score_body_alignment(
        self,
        chain: SideLandmarks,
        feedback: List[str]
    ) -> Tuple[float, float]:
        """
        Score the shoulder-hip-ankle line.

        Full marks within the tolerance of a straight line, then a fixed
        penalty per degree beyond it.
        """
        t = self.thresholds
        if not self._visible(chain.shoulder, chain.hip, chain.ankle):
            logger.debug("Body alignment landmarks below visibility threshold")
            feedback.append(FeedbackMessage.BODY_LOW_VISIBILITY)
            return 0.0, float(t.fallback_score)

        angle = AngleCalculator.calculate_body_alignment_angle(
            chain.shoulder, chain.hip, chain.ankle
        )
        deviation = abs(angle - t.alignment_target)

        if deviation <= t.alignment_tolerance:
            score = 100.0
        else:
            score = max(
                0.0,
                100.0 - (deviation - t.alignment_tolerance) * t.alignment_penalty_per_degree,
            )

        if angle < t.hips_low_angle:
            feedback.append(FeedbackMessage.RAISE_HIPS)
        elif angle > t.hips_high_angle:
            feedback.append(FeedbackMessage.LOWER_HIPS)

        return angle, score

    def _score_knee_position(
        self,
        chain: SideLandmarks,
        feedback: List[str]
    ) -> Tuple[float, float]:
        """Score how straight the legs are (hip-knee-ankle)."""
        t = self.thresholds
        if not self._visible(chain.hip, chain.knee, chain.ankle):
            logger.debug("Knee landmarks below visibility threshold")
            feedback.append(FeedbackMessage.LEGS_LOW_VISIBILITY)
            return 0.0, float(t.fallback_score)

        angle = AngleCalculator.calculate_angle(chain.hip, chain.knee, chain.ankle)

        if angle >= t.knee_target:
            return angle, 100.0

        deficit = t.knee_target - angle
        feedback.append(FeedbackMessage.STRAIGHTEN_LEGS)
        return angle, max(0.0, 100.0 - deficit * t.knee_penalty_per_degree)

    def _score_shoulder_stack(
        self,
        chain: SideLandmarks,
        variant: PlankVariant,
        feedback: List[str]
    ) -> Tuple[float, float]:
        """
        Score whether the shoulder sits over the supporting joint.

        The wrist supports a high plank, the elbow everything else. The
        score is a step function of the horizontal offset; the stack angle
        only decides whether to emit a corrective hint.
        """
        t = self.thresholds
        joint = chain.wrist if variant is PlankVariant.HIGH else chain.elbow

        if not self._visible(chain.shoulder, joint):
            return 0.0, float(t.fallback_score)

        offset = AngleCalculator.calculate_horizontal_offset(chain.shoulder, joint)
        angle = AngleCalculator.calculate_stack_angle(chain.shoulder, joint)

        if offset < t.stack_excellent_offset:
            score = t.stack_excellent_score
        elif offset < t.stack_good_offset:
            score = t.stack_good_score
        else:
            score = t.stack_poor_score

        if abs(angle - t.stack_angle_target) > t.stack_angle_tolerance:
            if variant is PlankVariant.HIGH:
                feedback.append(FeedbackMessage.HANDS_UNDER_SHOULDERS)
            else:
                feedback.append(FeedbackMessage.ELBOWS_UNDER_SHOULDERS)

        return angle, float(score)
