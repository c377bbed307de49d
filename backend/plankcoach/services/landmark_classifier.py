"""
Landmark Classifier Service

Chooses which body side the camera sees best and recognises the plank
variant from the arm angle on that side.
"""

import logging
from typing import Optional

from ..domain.analysis import PlankVariant
from ..domain.pose import BodyPart, BodySide, PoseFrame
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS
from .angle_calculator import AngleCalculator

logger = logging.getLogger(__name__)


# Landmarks whose visibility decides the side
SIDE_VISIBILITY_PARTS = {
    BodySide.LEFT: (
        BodyPart.LEFT_SHOULDER,
        BodyPart.LEFT_HIP,
        BodyPart.LEFT_KNEE,
        BodyPart.LEFT_ANKLE,
    ),
    BodySide.RIGHT: (
        BodyPart.RIGHT_SHOULDER,
        BodyPart.RIGHT_HIP,
        BodyPart.RIGHT_KNEE,
        BodyPart.RIGHT_ANKLE,
    ),
}


class LandmarkClassifier:
    """
    Side selection and plank variant classification.

    Usage:
        classifier = LandmarkClassifier()
        side = classifier.better_side(frame)
        variant = classifier.classify_variant(frame)
    """

    def __init__(self, thresholds: CoachingThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def side_visibility(self, frame: PoseFrame, side: BodySide) -> float:
        """Summed visibility of shoulder, hip, knee and ankle on one side."""
        return sum(frame.visibility_of(part) for part in SIDE_VISIBILITY_PARTS[side])

    def better_side(self, frame: PoseFrame) -> BodySide:
        """
        Pick the side with the higher total visibility.

        Ties go to the right side so results are reproducible.
        """
        left = self.side_visibility(frame, BodySide.LEFT)
        right = self.side_visibility(frame, BodySide.RIGHT)
        return BodySide.LEFT if left > right else BodySide.RIGHT

    def arm_angle(self, frame: PoseFrame, side: Optional[BodySide] = None) -> Optional[float]:
        """
        Shoulder-elbow-wrist angle on the given (or better) side.

        Returns None when any of the three landmarks is missing or below
        the visibility threshold.
        """
        chain = frame.side(side or self.better_side(frame))
        threshold = self.thresholds.visibility_threshold
        points = (chain.shoulder, chain.elbow, chain.wrist)
        if any(p is None or not p.is_visible(threshold) for p in points):
            return None
        return AngleCalculator.calculate_angle(chain.shoulder, chain.elbow, chain.wrist)

    def variant_for_angle(self, angle: float) -> PlankVariant:
        """Map a shoulder-elbow-wrist angle onto the variant bands."""
        high_low, high_high = self.thresholds.high_plank_band
        elbow_low, elbow_high = self.thresholds.elbow_plank_band

        if high_low <= angle <= high_high:
            return PlankVariant.HIGH
        if elbow_low <= angle <= elbow_high:
            return PlankVariant.ELBOW
        return PlankVariant.UNKNOWN

    def classify_variant(self, frame: PoseFrame, side: Optional[BodySide] = None) -> PlankVariant:
        """Classify the plank variant held in this frame."""
        angle = self.arm_angle(frame, side)
        if angle is None:
            logger.debug("Arm not visible, plank variant unknown")
            return PlankVariant.UNKNOWN
        return self.variant_for_angle(angle)
