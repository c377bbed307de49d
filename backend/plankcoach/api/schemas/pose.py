"""
Pose API Schemas

Pydantic models for pose-related API requests and responses.
These define the JSON structure for communication with frontend.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from enum import Enum

from ...domain.pose import BodyPart, PoseFrame, PoseLandmark


class LandmarkSchema(BaseModel):
    """
    Single body landmark.

    Coordinates are normalized (0.0 to 1.0) but may fall slightly
    outside that range when a joint leaves the frame.
    """
    x: float = Field(..., description="Horizontal position (0=left, 1=right)")
    y: float = Field(..., description="Vertical position (0=top, 1=bottom)")
    z: float = Field(0.0, description="Depth (negative=closer to camera)")
    visibility: float = Field(0.0, ge=0.0, le=1.0, description="Detection confidence")
    body_part: Optional[str] = Field(None, description="Body part name (e.g., 'LEFT_SHOULDER')")

    class Config:
        json_schema_extra = {
            "example": {
                "x": 0.45,
                "y": 0.32,
                "z": -0.15,
                "visibility": 0.95,
                "body_part": "LEFT_SHOULDER"
            }
        }

    def to_domain(self) -> PoseLandmark:
        return PoseLandmark(x=self.x, y=self.y, z=self.z, visibility=self.visibility)


class PoseFrameSchema(BaseModel):
    """
    One landmark frame.

    Landmarks are indexed by MediaPipe body part (33 of them).
    """
    landmarks: List[LandmarkSchema] = Field(..., min_length=1, description="Body landmarks in MediaPipe order")
    timestamp_ms: int = Field(0, ge=0, description="Capture timestamp in milliseconds")
    frame_number: int = Field(0, ge=0, description="Sequential frame number")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Overall detection confidence")

    class Config:
        json_schema_extra = {
            "example": {
                "landmarks": [
                    {"x": 0.5, "y": 0.2, "z": 0.0, "visibility": 0.99, "body_part": "NOSE"}
                ],
                "timestamp_ms": 1500,
                "frame_number": 45,
                "confidence": 0.92
            }
        }

    def to_domain(self) -> PoseFrame:
        return PoseFrame.from_landmarks(
            [lm.to_domain() for lm in self.landmarks],
            timestamp_ms=self.timestamp_ms,
            frame_number=self.frame_number,
        )

    @classmethod
    def from_domain(cls, frame: PoseFrame) -> "PoseFrameSchema":
        landmarks = []
        for index, lm in enumerate(frame.landmarks):
            body_part = BodyPart(index).name if index < len(BodyPart) else None
            landmarks.append(LandmarkSchema(
                x=lm.x,
                y=lm.y,
                z=lm.z,
                visibility=lm.visibility,
                body_part=body_part
            ))
        return cls(
            landmarks=landmarks,
            timestamp_ms=frame.timestamp_ms,
            frame_number=frame.frame_number,
            confidence=frame.confidence
        )


class LandmarkFramePayload(PoseFrameSchema):
    """
    Landmark frame streamed over /ws/coach.

    An empty landmark list means no person is in view.
    """
    landmarks: List[LandmarkSchema] = Field(default_factory=list, description="Body landmarks in MediaPipe order")


class PoseDetectionRequest(BaseModel):
    """
    Request to detect pose in a base64-encoded image.

    Used for single-frame detection via REST API.
    """
    image_base64: str = Field(..., description="Base64 encoded JPEG/PNG image")
    timestamp_ms: int = Field(0, ge=0, description="Optional timestamp")
    frame_number: int = Field(0, ge=0, description="Optional frame number")

    class Config:
        json_schema_extra = {
            "example": {
                "image_base64": "/9j/4AAQSkZJRg...",
                "timestamp_ms": 0,
                "frame_number": 0
            }
        }


class PoseDetectionResponse(BaseModel):
    """
    Response from pose detection.
    """
    success: bool = Field(..., description="Whether detection succeeded")
    pose: Optional[PoseFrameSchema] = Field(None, description="Detected pose (null if no person found)")
    error: Optional[str] = Field(None, description="Error message if failed")
    processing_time_ms: float = Field(..., description="Time taken to process in milliseconds")


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server (/ws/coach)
    FRAME = "frame"                            # Base64 camera frame
    LANDMARKS = "landmarks"                    # Pre-detected landmark frame
    PAUSE = "pause"
    RESUME = "resume"
    TOGGLE_PAUSE = "toggle_pause"
    STOP = "stop"
    TRANSCRIPT = "transcript"                  # Speech-to-text result
    VOICE_TOGGLE = "voice_toggle"
    VOICE_ERROR = "voice_error"
    VOICE_START_FAILED = "voice_start_failed"
    ENGINE_ERROR = "engine_error"              # Client-side pose engine failed

    # Server -> Client (/ws/coach)
    SESSION_STARTED = "session_started"
    ANALYSIS = "analysis"
    SPEECH = "speech"
    STATE = "state"
    REPORT = "report"
    ERROR = "error"

    # Relay (/ws)
    POSE_ANALYSIS = "pose_analysis"


class WebSocketMessage(BaseModel):
    """
    Base WebSocket message structure.

    All /ws/coach communication uses this format.
    """
    type: WebSocketMessageType = Field(..., description="Message type")
    data: dict = Field(default_factory=dict, description="Message payload")
    timestamp: Optional[int] = Field(None, description="Unix timestamp in milliseconds")

    @field_validator("data", mode="before")
    @classmethod
    def null_data_is_empty(cls, value):
        return {} if value is None else value

    class Config:
        json_schema_extra = {
            "example": {
                "type": "landmarks",
                "data": {"landmarks": [{"x": 0.5, "y": 0.2, "visibility": 0.99}]},
                "timestamp": 1704067200000
            }
        }


class TranscriptPayload(BaseModel):
    """Speech-to-text result sent by the client's recognizer."""
    text: str = Field(..., description="Recognized transcript")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Recognizer confidence")
    is_final: bool = Field(False, description="Whether the result is final")
