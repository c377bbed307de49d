"""
API Layer

FastAPI routes and WebSocket handlers for live plank coaching.
"""

from .routes import router
from .websocket import coach_endpoint, relay_endpoint

__all__ = ["router", "coach_endpoint", "relay_endpoint"]
