"""
API Schemas

Pydantic models for request/response validation.
"""

from .pose import (
    LandmarkSchema,
    PoseFrameSchema,
    LandmarkFramePayload,
    PoseDetectionRequest,
    PoseDetectionResponse,
    WebSocketMessageType,
    WebSocketMessage,
    TranscriptPayload,
)

from .analysis import (
    PlankTypeEnum,
    AnalysisResultSchema,
    SessionCreateRequest,
    SessionUpdateRequest,
    SessionSchema,
    SessionReportSchema,
    HealthResponse,
)

__all__ = [
    # Pose schemas
    "LandmarkSchema",
    "PoseFrameSchema",
    "LandmarkFramePayload",
    "PoseDetectionRequest",
    "PoseDetectionResponse",
    "WebSocketMessageType",
    "WebSocketMessage",
    "TranscriptPayload",
    # Analysis schemas
    "PlankTypeEnum",
    "AnalysisResultSchema",
    "SessionCreateRequest",
    "SessionUpdateRequest",
    "SessionSchema",
    "SessionReportSchema",
    "HealthResponse",
]
