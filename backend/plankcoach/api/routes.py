"""
REST API Routes

FastAPI routes for plank form analysis and session records.
"""

import time
import logging
from typing import Callable, List
from fastapi import APIRouter, Depends, HTTPException

from .dependencies import get_detector_factory, get_store
from .schemas import (
    AnalysisResultSchema,
    HealthResponse,
    PoseDetectionRequest,
    PoseDetectionResponse,
    PoseFrameSchema,
    SessionCreateRequest,
    SessionReportSchema,
    SessionSchema,
    SessionUpdateRequest,
)
from .. import __version__
from ..domain.analysis import PlankVariant
from ..domain.errors import PoseEngineUnavailableError, SessionNotFoundError
from ..services import InMemorySessionStore, PlankAnalyzer, PoseDetector, ReportAggregator

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

analyzer = PlankAnalyzer()


def _not_found(e: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check endpoint"
)
async def health_check(
    detector_factory: Callable[[], PoseDetector] = Depends(get_detector_factory),
) -> HealthResponse:
    """
    Check if the API is running and the pose engine can start.
    """
    engine_ok = False
    try:
        with detector_factory():
            engine_ok = True
    except PoseEngineUnavailableError as e:
        logger.warning(f"Pose engine not available: {e}")

    return HealthResponse(
        status="healthy",
        version=__version__,
        pose_engine_available=engine_ok
    )


# =============================================================================
# Pose Detection
# =============================================================================

@router.post(
    "/pose/detect",
    response_model=PoseDetectionResponse,
    tags=["Pose Detection"],
    summary="Detect pose in a single image"
)
async def detect_pose(
    request: PoseDetectionRequest,
    detector_factory: Callable[[], PoseDetector] = Depends(get_detector_factory),
) -> PoseDetectionResponse:
    """
    Detect body landmarks in a base64-encoded image.

    Returns 503 when the pose engine is not installed or fails to start.
    For live coaching, use the /ws/coach WebSocket instead.
    """
    start_time = time.time()

    try:
        with detector_factory() as detector:
            pose_frame = detector.detect_from_base64(
                request.image_base64,
                timestamp_ms=request.timestamp_ms,
                frame_number=request.frame_number
            )
    except PoseEngineUnavailableError as e:
        logger.error(f"Pose detection unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        processing_time = (time.time() - start_time) * 1000
        return PoseDetectionResponse(
            success=False,
            pose=None,
            error=str(e),
            processing_time_ms=processing_time
        )

    processing_time = (time.time() - start_time) * 1000

    if pose_frame is None:
        return PoseDetectionResponse(
            success=False,
            pose=None,
            error="No person detected in image",
            processing_time_ms=processing_time
        )

    return PoseDetectionResponse(
        success=True,
        pose=PoseFrameSchema.from_domain(pose_frame),
        error=None,
        processing_time_ms=processing_time
    )


# =============================================================================
# Plank Analysis
# =============================================================================

@router.post(
    "/analysis",
    response_model=AnalysisResultSchema,
    tags=["Plank Analysis"],
    summary="Score a single landmark frame"
)
async def analyze_frame(frame: PoseFrameSchema) -> AnalysisResultSchema:
    """
    Score one landmark frame without any session state.

    Useful for checking a pose before starting a live session.
    """
    result = analyzer.analyze(frame.to_domain())
    return AnalysisResultSchema.from_domain(result)


# =============================================================================
# Sessions
# =============================================================================

@router.post(
    "/sessions",
    response_model=SessionSchema,
    status_code=201,
    tags=["Sessions"],
    summary="Create a session record"
)
async def create_session(
    request: SessionCreateRequest,
    store: InMemorySessionStore = Depends(get_store),
) -> SessionSchema:
    session = store.create_session(PlankVariant(request.plank_type.value))
    return SessionSchema.from_domain(session)


@router.get(
    "/sessions",
    response_model=List[SessionSchema],
    tags=["Sessions"],
    summary="List sessions, newest first"
)
async def list_sessions(
    store: InMemorySessionStore = Depends(get_store),
) -> List[SessionSchema]:
    return [SessionSchema.from_domain(s) for s in store.list_sessions()]


@router.get(
    "/sessions/{session_id}",
    response_model=SessionSchema,
    tags=["Sessions"],
    summary="Get one session"
)
async def get_session(
    session_id: str,
    store: InMemorySessionStore = Depends(get_store),
) -> SessionSchema:
    try:
        return SessionSchema.from_domain(store.get_session(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.patch(
    "/sessions/{session_id}",
    response_model=SessionSchema,
    tags=["Sessions"],
    summary="Partially update a session"
)
async def update_session(
    session_id: str,
    request: SessionUpdateRequest,
    store: InMemorySessionStore = Depends(get_store),
) -> SessionSchema:
    try:
        session = store.update_session(session_id, request.to_updates())
    except SessionNotFoundError as e:
        raise _not_found(e)
    return SessionSchema.from_domain(session)


@router.get(
    "/sessions/{session_id}/analysis",
    response_model=List[AnalysisResultSchema],
    tags=["Sessions"],
    summary="Analysis samples recorded for a session"
)
async def get_session_analysis(
    session_id: str,
    store: InMemorySessionStore = Depends(get_store),
) -> List[AnalysisResultSchema]:
    try:
        results = store.get_session_analysis(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return [AnalysisResultSchema.from_domain(r) for r in results]


@router.post(
    "/sessions/{session_id}/analysis",
    response_model=AnalysisResultSchema,
    status_code=201,
    tags=["Sessions"],
    summary="Record one analysis sample for a session"
)
async def add_session_analysis(
    session_id: str,
    result: AnalysisResultSchema,
    store: InMemorySessionStore = Depends(get_store),
) -> AnalysisResultSchema:
    try:
        store.add_session_analysis(session_id, result.to_domain())
    except SessionNotFoundError as e:
        raise _not_found(e)
    return result


@router.get(
    "/sessions/{session_id}/report",
    response_model=SessionReportSchema,
    tags=["Sessions"],
    summary="Graded report built from a session's recorded samples"
)
async def get_session_report(
    session_id: str,
    store: InMemorySessionStore = Depends(get_store),
) -> SessionReportSchema:
    """
    Grade and improvement tips for a session.

    A completed session reports the scores saved when it was finalized.
    Otherwise the session's recorded analysis samples are reduced.
    """
    try:
        session = store.get_session(session_id)
        report = session.stored_report()
        if report is None:
            report = ReportAggregator().aggregate(store.get_session_analysis(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)

    return SessionReportSchema.from_domain(session, report)
