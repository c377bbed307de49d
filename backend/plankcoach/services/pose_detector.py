"""
Pose Detector Service

Adapter around MediaPipe Pose, the pose-estimation engine. Converts its
results into PoseFrame domain objects for the coaching core.

MediaPipe and OpenCV come from the optional `pose` extra. They are
resolved when a detector is constructed; if either is missing or the
engine fails to initialize, PoseEngineUnavailableError is raised and the
host reports analysis as unavailable. There is no retry.

Note: MediaPipe's type stubs are incomplete, so solutions are stored as Any.
"""

import base64
import binascii
import logging
from typing import Any, List, Optional

import numpy as np

from ..domain.errors import PoseEngineUnavailableError
from ..domain.pose import PoseFrame, PoseLandmark

logger = logging.getLogger(__name__)


class PoseDetector:
    """
    Detects body landmarks using MediaPipe Pose.

    Usage:
        with PoseDetector() as detector:
            frame = detector.detect_from_base64(image_b64)
    """

    _mp_pose: Any
    _cv2: Any

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        """
        Initialize the pose engine.

        Args:
            model_complexity: 0, 1, or 2. Higher = more accurate but slower.
            min_detection_confidence: Minimum confidence for person detection.
            min_tracking_confidence: Minimum confidence for landmark tracking.

        Raises:
            PoseEngineUnavailableError: engine missing or failed to start
        """
        try:
            import mediapipe as mp
            import cv2

            self._cv2 = cv2
            self._mp_pose = mp.solutions.pose  # type: ignore[attr-defined]
            self.pose = self._mp_pose.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                smooth_landmarks=True,
                enable_segmentation=False,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            raise PoseEngineUnavailableError(f"Pose engine failed to initialize: {e}") from e

    def __enter__(self) -> "PoseDetector":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release MediaPipe resources."""
        self.pose.close()

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def detect_pose(
        self,
        image: np.ndarray,
        timestamp_ms: int = 0,
        frame_number: int = 0
    ) -> Optional[PoseFrame]:
        """
        Detect pose in a single BGR image.

        Returns:
            PoseFrame with 33 landmarks, or None if no person detected
        """
        if len(image.shape) == 3 and image.shape[2] == 3:
            image_rgb = self._cv2.cvtColor(image, self._cv2.COLOR_BGR2RGB)
        else:
            image_rgb = image

        results = self.pose.process(image_rgb)
        if not results.pose_landmarks:
            return None

        landmarks = convert_landmarks(results.pose_landmarks.landmark)
        return PoseFrame.from_landmarks(landmarks, timestamp_ms, frame_number)

    def detect_from_base64(
        self,
        base64_image: str,
        timestamp_ms: int = 0,
        frame_number: int = 0
    ) -> Optional[PoseFrame]:
        """
        Detect pose from a base64-encoded JPEG/PNG image.

        Raises:
            ValueError: the payload is not valid base64 or not an image
        """
        try:
            image_bytes = base64.b64decode(base64_image, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 image: {e}") from e

        nparr = np.frombuffer(image_bytes, np.uint8)
        image = self._cv2.imdecode(nparr, self._cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError("Could not decode image")

        return self.detect_pose(image, timestamp_ms, frame_number)


def convert_landmarks(mp_landmarks: Any) -> List[PoseLandmark]:
    """Convert MediaPipe landmarks to our domain model."""
    return [
        PoseLandmark(
            x=float(mp_lm.x),
            y=float(mp_lm.y),
            z=float(mp_lm.z),
            visibility=float(mp_lm.visibility),
        )
        for mp_lm in mp_landmarks
    ]
