"""
PlankCoach Backend API

FastAPI application for real-time plank form coaching.

Run with:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

API docs available at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plankcoach.api import coach_endpoint, relay_endpoint, router as api_router
from plankcoach.config import settings
from plankcoach.domain.errors import PoseEngineUnavailableError

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan (startup/shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup code before app starts accepting requests,
    and cleanup code when app shuts down.
    """
    # Startup
    logger.info(f" {settings.APP_NAME} API starting up...")
    logger.info(f" API docs: http://localhost:{settings.PORT}/docs")
    logger.info(f" Coaching WebSocket: ws://localhost:{settings.PORT}/ws/coach")

    # Test pose engine availability
    try:
        from plankcoach.services import PoseDetector
        with PoseDetector():
            logger.info(" Pose engine initialized successfully")
    except PoseEngineUnavailableError as e:
        logger.warning(f" Pose engine unavailable, landmark frames only: {e}")

    yield  # App runs here

    # Shutdown
    logger.info(f" {settings.APP_NAME} API shutting down...")


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="""
    **Real-Time Plank Form Coach**

    Scores plank form from body landmarks and coaches the user by voice.

    ## Features

    - **Form Scoring** (body alignment, knee position, shoulder stack)
    - **Plank Identification** (high plank vs. elbow plank)
    - **Live Coaching** with spoken feedback and voice stop commands
    - **Session Reports** with grades and improvement tips

    ## Endpoints

    - `GET /api/health` - Health check
    - `POST /api/analysis` - Score a single landmark frame
    - `POST /api/pose/detect` - Single image pose detection
    - `GET/POST/PATCH /api/sessions...` - Session records
    - `WS /ws/coach` - Live coaching session
    - `WS /ws` - Analysis telemetry relay

    ## WebSocket Protocol

    Connect to `/ws/coach` and send landmark frames as JSON:
```json
    {
        "type": "landmarks",
        "data": {"landmarks": [{"x": 0.5, "y": 0.2, "visibility": 0.99}]},
        "timestamp": 1704067200000
    }
```
    """,
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Routes
# =============================================================================

# Include REST API routes
app.include_router(api_router, prefix="/api")

# WebSocket endpoints
app.websocket("/ws")(relay_endpoint)
app.websocket("/ws/coach")(coach_endpoint)


# =============================================================================
# Root endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "name": f"{settings.APP_NAME} API",
        "version": settings.VERSION,
        "description": "Real-Time Plank Form Coach",
        "docs": "/docs",
        "health": "/api/health",
        "websocket": f"ws://localhost:{settings.PORT}/ws/coach"
    }


# =============================================================================
# Run directly (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
