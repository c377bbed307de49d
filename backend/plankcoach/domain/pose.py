"""
Pose Domain Models

Data structures for representing the body landmarks delivered by the
external pose-estimation engine.

The engine follows MediaPipe's 33-point pose topology:
https://developers.google.com/mediapipe/solutions/vision/pose_landmarker
"""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional, Sequence


LANDMARK_COUNT = 33


class BodyPart(IntEnum):
    """
    Pose landmark indices.

    These map directly to the 33-point pose model. Plank analysis only
    reads the arm and leg chains, but the full enumeration is kept so
    incoming frames can be indexed without translation.
    """
    # Face
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10

    # Upper body
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16

    # Hands
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22

    # Lower body
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28

    # Feet
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class BodySide(Enum):
    """Which half of the body is used for side-view measurements."""
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class PoseLandmark:
    """
    A single body landmark with normalized coordinates and visibility.

    Attributes:
        x: Horizontal position (0.0 = left edge, 1.0 = right edge)
        y: Vertical position (0.0 = top edge, 1.0 = bottom edge)
        z: Depth (smaller = closer to camera), 0 when the engine omits it
        visibility: Confidence score (0.0 to 1.0), 0 when omitted
    """
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    def is_visible(self, threshold: float = 0.5) -> bool:
        """Check if landmark is visible above confidence threshold."""
        return self.visibility >= threshold

    def to_pixel(self, width: int, height: int) -> tuple[int, int]:
        """Convert normalized coordinates to pixel coordinates."""
        return (int(self.x * width), int(self.y * height))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PoseLandmark":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            z=float(data.get("z") or 0.0),
            visibility=float(data.get("visibility") or 0.0),
        )


@dataclass(frozen=True)
class SideLandmarks:
    """The landmarks of one body side that plank scoring reads."""
    side: BodySide
    shoulder: Optional[PoseLandmark]
    elbow: Optional[PoseLandmark]
    wrist: Optional[PoseLandmark]
    hip: Optional[PoseLandmark]
    knee: Optional[PoseLandmark]
    ankle: Optional[PoseLandmark]


_SIDE_PARTS = {
    BodySide.LEFT: (
        BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST,
        BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE, BodyPart.LEFT_ANKLE,
    ),
    BodySide.RIGHT: (
        BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST,
        BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE, BodyPart.RIGHT_ANKLE,
    ),
}


@dataclass(frozen=True)
class PoseFrame:
    """
    One landmark frame from the pose engine.

    Attributes:
        landmarks: Landmarks indexed by BodyPart (normally 33 of them)
        timestamp_ms: Capture timestamp in milliseconds
        frame_number: Sequential frame number
    """
    landmarks: tuple[PoseLandmark, ...] = field(default_factory=tuple)
    timestamp_ms: int = 0
    frame_number: int = 0

    @classmethod
    def from_landmarks(
        cls,
        landmarks: Sequence[PoseLandmark],
        timestamp_ms: int = 0,
        frame_number: int = 0,
    ) -> "PoseFrame":
        return cls(tuple(landmarks), timestamp_ms, frame_number)

    @property
    def is_empty(self) -> bool:
        return len(self.landmarks) == 0

    @property
    def confidence(self) -> float:
        """Average visibility across all landmarks."""
        if not self.landmarks:
            return 0.0
        return sum(lm.visibility for lm in self.landmarks) / len(self.landmarks)

    def get_landmark(self, body_part: BodyPart) -> Optional[PoseLandmark]:
        """Get a specific landmark by body part."""
        index = body_part.value
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def visibility_of(self, body_part: BodyPart) -> float:
        """Visibility of a landmark, 0 when the frame does not carry it."""
        landmark = self.get_landmark(body_part)
        return landmark.visibility if landmark is not None else 0.0

    def side(self, side: BodySide) -> SideLandmarks:
        """Get the shoulder/elbow/wrist/hip/knee/ankle chain of one side."""
        shoulder, elbow, wrist, hip, knee, ankle = (
            self.get_landmark(part) for part in _SIDE_PARTS[side]
        )
        return SideLandmarks(side, shoulder, elbow, wrist, hip, knee, ankle)
