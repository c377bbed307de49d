"""
Analysis API Schemas

Pydantic models for plank analysis and session API requests and responses.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from enum import Enum
from datetime import datetime

from ...domain.analysis import AnalysisResult, PlankVariant
from ...domain.session import Session, SessionReport


class PlankTypeEnum(str, Enum):
    """Plank variants for API."""
    HIGH = "high"
    ELBOW = "elbow"
    UNKNOWN = "unknown"


class AnalysisResultSchema(BaseModel):
    """
    Form analysis of a single landmark frame.

    Angles are in degrees; scores are integers 0-100.
    """
    body_alignment_angle: float = Field(..., description="Shoulder-hip-ankle angle (180 = straight)")
    knee_angle: float = Field(..., description="Hip-knee-ankle angle")
    shoulder_stack_angle: float = Field(..., description="Shoulder over wrist/elbow angle (90 = stacked)")
    body_alignment_score: int = Field(..., ge=0, le=100)
    knee_position_score: int = Field(..., ge=0, le=100)
    shoulder_stack_score: int = Field(..., ge=0, le=100)
    overall_score: int = Field(..., ge=0, le=100, description="Rounded mean of the three sub-scores")
    feedback: List[str] = Field(default_factory=list, description="Hints, most urgent first")
    plank_type: PlankTypeEnum = Field(..., description="Classified plank variant")

    class Config:
        json_schema_extra = {
            "example": {
                "body_alignment_angle": 176.4,
                "knee_angle": 174.0,
                "shoulder_stack_angle": 84.2,
                "body_alignment_score": 100,
                "knee_position_score": 100,
                "shoulder_stack_score": 100,
                "overall_score": 100,
                "feedback": [],
                "plank_type": "high"
            }
        }

    @classmethod
    def from_domain(cls, result: AnalysisResult) -> "AnalysisResultSchema":
        return cls(
            body_alignment_angle=result.body_alignment_angle,
            knee_angle=result.knee_angle,
            shoulder_stack_angle=result.shoulder_stack_angle,
            body_alignment_score=result.body_alignment_score,
            knee_position_score=result.knee_position_score,
            shoulder_stack_score=result.shoulder_stack_score,
            overall_score=result.overall_score,
            feedback=list(result.feedback),
            plank_type=PlankTypeEnum(result.plank_variant.value)
        )

    def to_domain(self) -> AnalysisResult:
        return AnalysisResult(
            body_alignment_angle=self.body_alignment_angle,
            knee_angle=self.knee_angle,
            shoulder_stack_angle=self.shoulder_stack_angle,
            body_alignment_score=self.body_alignment_score,
            knee_position_score=self.knee_position_score,
            shoulder_stack_score=self.shoulder_stack_score,
            overall_score=self.overall_score,
            feedback=tuple(self.feedback),
            plank_variant=PlankVariant(self.plank_type.value)
        )


# =============================================================================
# Sessions
# =============================================================================

class SessionCreateRequest(BaseModel):
    """Start a session record for an identified plank."""
    plank_type: PlankTypeEnum = Field(..., description="Identified plank variant")

    class Config:
        json_schema_extra = {
            "example": {"plank_type": "elbow"}
        }


class SessionUpdateRequest(BaseModel):
    """
    Partial update of a session record.

    Only fields present in the request body are changed.
    """
    plank_type: Optional[PlankTypeEnum] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    completed: Optional[bool] = None
    average_score: Optional[int] = Field(default=None, ge=0, le=100)
    body_alignment_score: Optional[int] = Field(default=None, ge=0, le=100)
    knee_position_score: Optional[int] = Field(default=None, ge=0, le=100)
    shoulder_stack_score: Optional[int] = Field(default=None, ge=0, le=100)

    class Config:
        json_schema_extra = {
            "example": {
                "end_time": "2024-01-01T12:01:05",
                "duration_seconds": 65,
                "completed": True,
                "average_score": 84
            }
        }

    @field_validator("plank_type", "duration_seconds", "completed")
    @classmethod
    def not_null(cls, value):
        # These may be omitted but never cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    def to_updates(self) -> dict:
        """Convert the set fields to a domain update dict."""
        updates = self.model_dump(exclude_unset=True)
        if "plank_type" in updates:
            updates["plank_variant"] = PlankVariant(updates.pop("plank_type").value)
        return updates


class SessionSchema(BaseModel):
    """A stored coaching session."""
    id: str = Field(..., description="Session id")
    plank_type: PlankTypeEnum
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: int = Field(0, ge=0, description="Timed hold in seconds")
    completed: bool = False
    average_score: Optional[int] = None
    body_alignment_score: Optional[int] = None
    knee_position_score: Optional[int] = None
    shoulder_stack_score: Optional[int] = None

    @classmethod
    def from_domain(cls, session: Session) -> "SessionSchema":
        return cls(
            id=session.id,
            plank_type=PlankTypeEnum(session.plank_variant.value),
            start_time=session.start_time,
            end_time=session.end_time,
            duration_seconds=session.duration_seconds,
            completed=session.completed,
            average_score=session.average_score,
            body_alignment_score=session.body_alignment_score,
            knee_position_score=session.knee_position_score,
            shoulder_stack_score=session.shoulder_stack_score
        )


class SessionReportSchema(BaseModel):
    """
    Results screen for a completed session.
    """
    session_id: str
    plank_type: PlankTypeEnum
    duration_seconds: int
    average_score: int
    body_alignment_score: int
    knee_position_score: int
    shoulder_stack_score: int
    grade: str = Field(..., description="A+, A, B+, B, C or D")
    grade_description: str
    tips: List[str] = Field(default_factory=list, description="Improvement tips")

    @classmethod
    def from_domain(cls, session: Session, report: SessionReport) -> "SessionReportSchema":
        variant = report.plank_variant if report.sample_count else session.plank_variant
        return cls(
            session_id=session.id,
            plank_type=PlankTypeEnum(variant.value),
            duration_seconds=session.duration_seconds,
            average_score=report.average_score,
            body_alignment_score=report.body_alignment_score,
            knee_position_score=report.knee_position_score,
            shoulder_stack_score=report.shoulder_stack_score,
            grade=report.grade,
            grade_description=report.grade_description,
            tips=report.improvement_tips
        )


class HealthResponse(BaseModel):
    """
    Health check response.
    """
    status: str = Field("healthy", description="Service status")
    version: str = Field(..., description="API version")
    pose_engine_available: bool = Field(..., description="Whether the pose engine can start")
