"""
WebSocket Handlers

Two endpoints:

- /ws        Telemetry relay. Observers exchange `{type, sessionId, data}`
             envelopes; `pose_analysis` envelopes are stored against the
             session and relayed to every other observer.
- /ws/coach  Live coaching. The client streams landmark (or camera) frames
             and control messages; the server drives one CoachingSession
             and replies with analysis, speech, state and report messages.
"""

import json
import time
import logging
import asyncio
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple
from fastapi import Depends, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from .dependencies import get_detector_factory, get_store
from .schemas import (
    LandmarkFramePayload,
    PoseDetectionRequest,
    TranscriptPayload,
    WebSocketMessage,
    WebSocketMessageType,
)
from ..config import settings
from ..domain.analysis import AnalysisResult
from ..domain.errors import PersistenceError, PoseEngineUnavailableError, SessionNotFoundError
from ..domain.pose import PoseFrame
from ..domain.session import EventType, SessionEvent, SpeechPriority, TranscriptEvent
from ..domain.thresholds import CoachingThresholds, DEFAULT_THRESHOLDS
from ..services import (
    CoachingLoop,
    CoachingSession,
    CommandMessage,
    FrameMessage,
    InMemorySessionStore,
    PoseDetector,
    QueuedSpeechOutput,
    TelemetryBroadcaster,
    TelemetrySink,
    TranscriptMessage,
    make_envelope,
)
from ..services.coaching_loop import COMMANDS, now_ms
from ..services.telemetry import POSE_ANALYSIS

# Configure logging
logger = logging.getLogger(__name__)


def _envelope(msg_type: WebSocketMessageType, data: Dict[str, Any], timestamp: Optional[int] = None) -> Dict[str, Any]:
    return {
        "type": msg_type.value,
        "data": data,
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000)
    }


class ConnectionManager:
    """
    Manages relay WebSocket connections.

    Handles multiple concurrent observers and broadcasts.
    """

    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"New relay connection. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket) -> None:
        """Handle WebSocket disconnection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"Relay disconnected. Remaining: {len(self.active_connections)}")

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send JSON data to a specific connection."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Failed to send WebSocket message: {e}")

    async def broadcast(self, data: dict, exclude: Optional[WebSocket] = None) -> None:
        """Send JSON data to every observer except `exclude`."""
        for connection in list(self.active_connections):
            if connection is not exclude:
                await self.send_json(connection, data)


# Global connection manager
manager = ConnectionManager()


# =============================================================================
# Telemetry relay (/ws)
# =============================================================================

async def relay_endpoint(
    websocket: WebSocket,
    store: InMemorySessionStore = Depends(get_store),
) -> None:
    """
    WebSocket endpoint relaying analysis samples between observers.

    Message format (both directions):
    {
        "type": "pose_analysis",
        "sessionId": "7b0c...",
        "data": {"overallScore": 85, "plankType": "high", ...}
    }
    """
    await manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await manager.send_json(websocket, _envelope(
                    WebSocketMessageType.ERROR, {"error": "Invalid JSON"}
                ))
                continue
            await handle_relay_message(websocket, message, store)

    except WebSocketDisconnect:
        logger.info("Relay client disconnected")
    finally:
        manager.disconnect(websocket)


async def handle_relay_message(websocket: WebSocket, message: Any, store: InMemorySessionStore) -> None:
    """Store and relay one `pose_analysis` envelope; anything else is ignored."""
    if not isinstance(message, dict) or message.get("type") != POSE_ANALYSIS:
        logger.debug("Ignoring non-analysis relay message")
        return

    session_id = message.get("sessionId")
    data = message.get("data") or {}
    bad_id = session_id is not None and not isinstance(session_id, str)
    if bad_id or not isinstance(data, Mapping):
        await manager.send_json(websocket, _envelope(
            WebSocketMessageType.ERROR, {"error": "Invalid analysis: expected an object payload and a string sessionId"}
        ))
        return

    try:
        result = AnalysisResult.from_dict(data)
    except (TypeError, ValueError) as e:
        await manager.send_json(websocket, _envelope(
            WebSocketMessageType.ERROR, {"error": f"Invalid analysis: {e}"}
        ))
        return

    if session_id:
        try:
            store.add_session_analysis(session_id, result)
        except SessionNotFoundError as e:
            logger.warning(f"Relayed sample not stored: {e}")

    await manager.broadcast(make_envelope(session_id, result), exclude=websocket)


class RelayTelemetry:
    """
    In-process telemetry sink: stores samples and relays them to /ws observers.

    Used when no external TELEMETRY_URL is configured.
    """

    def __init__(self, store: InMemorySessionStore, connections: ConnectionManager):
        self.store = store
        self.connections = connections
        self._tasks: Set[asyncio.Task] = set()

    def publish(self, session_id: str, result: AnalysisResult) -> bool:
        try:
            self.store.add_session_analysis(session_id, result)
        except SessionNotFoundError as e:
            logger.warning(f"Telemetry sample not stored: {e}")
            return False

        if not self.connections.active_connections:
            return True
        task = asyncio.get_running_loop().create_task(
            self.connections.broadcast(make_envelope(session_id, result))
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True


# =============================================================================
# Live coaching (/ws/coach)
# =============================================================================

def coaching_thresholds() -> CoachingThresholds:
    return replace(DEFAULT_THRESHOLDS, analysis_interval_ms=settings.ANALYSIS_INTERVAL_MS)


def event_envelopes(
    session: CoachingSession,
    events: List[SessionEvent],
    utterances: List[Tuple[str, SpeechPriority]],
) -> List[Dict[str, Any]]:
    """Translate one step's events and speech into outbound messages."""
    envelopes = []
    for event in events:
        if event.type is EventType.ANALYSIS:
            envelopes.append(_envelope(
                WebSocketMessageType.ANALYSIS, event.data["analysis"], event.timestamp_ms
            ))
        elif event.type is EventType.SESSION_STOPPED:
            envelopes.append(_envelope(
                WebSocketMessageType.REPORT,
                {"sessionId": session.session_id, **event.data},
                event.timestamp_ms
            ))
        else:
            envelopes.append(_envelope(
                WebSocketMessageType.STATE,
                {
                    "event": event.type.value,
                    **event.data,
                    "session": session.snapshot(event.timestamp_ms),
                },
                event.timestamp_ms
            ))

    for text, priority in utterances:
        envelopes.append(_envelope(
            WebSocketMessageType.SPEECH, {"text": text, "priority": priority.value}
        ))
    return envelopes


class CoachConnection:
    """
    One live coaching client.

    Three tasks run side by side: the coaching loop, the receiver that
    turns client messages into loop messages, and the sender that drains
    the outbox. The connection ends when the session reaches a terminal
    state or the client goes away; a client that disconnects mid-session
    has its session stopped so the record is still completed.
    """

    def __init__(
        self,
        websocket: WebSocket,
        store: InMemorySessionStore,
        detector_factory: Callable[[], PoseDetector],
    ):
        self.websocket = websocket
        self.detector_factory = detector_factory
        self.detector: Optional[PoseDetector] = None

        self.speech = QueuedSpeechOutput()
        self.broadcaster: Optional[TelemetryBroadcaster] = None
        telemetry: TelemetrySink
        if settings.TELEMETRY_URL:
            self.broadcaster = TelemetryBroadcaster(
                settings.TELEMETRY_URL,
                max_attempts=settings.TELEMETRY_MAX_ATTEMPTS,
                base_delay=settings.TELEMETRY_BASE_DELAY,
                max_delay=settings.TELEMETRY_MAX_DELAY,
            )
            telemetry = self.broadcaster
        else:
            telemetry = RelayTelemetry(store, manager)

        self.session = CoachingSession(
            speech=self.speech,
            repository=store,
            telemetry=telemetry,
            thresholds=coaching_thresholds(),
        )
        self.loop = CoachingLoop(self.session, on_events=self.on_events, on_error=self.on_error)
        self.outbox: asyncio.Queue = asyncio.Queue()

    # -------------------------------------------------------------------------
    # Loop callbacks
    # -------------------------------------------------------------------------

    def on_events(self, events: List[SessionEvent]) -> None:
        for envelope in event_envelopes(self.session, events, self.speech.drain()):
            self.outbox.put_nowait(envelope)

    def on_error(self, error: PersistenceError) -> None:
        report = error.report.to_dict() if error.report is not None else None
        self.outbox.put_nowait(_envelope(
            WebSocketMessageType.ERROR, {"error": str(error), "report": report}
        ))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        if self.broadcaster is not None:
            self.broadcaster.start()

        self.outbox.put_nowait(_envelope(WebSocketMessageType.SESSION_STARTED, {
            "message": "Connected to PlankCoach",
            "session": self.session.snapshot(now_ms()),
        }))

        runner = asyncio.create_task(self.loop.run())
        receiver = asyncio.create_task(self._receive())
        sender = asyncio.create_task(self._send())

        try:
            done, _ = await asyncio.wait({runner, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if runner not in done:
                # Client went away mid-session
                self.loop.submit(CommandMessage(WebSocketMessageType.STOP.value))
                await runner
            runner.result()
        finally:
            receiver.cancel()
            await asyncio.gather(receiver, return_exceptions=True)
            self.outbox.put_nowait(None)
            await sender
            await self.close()

    async def close(self) -> None:
        if self.detector is not None:
            self.detector.close()
            self.detector = None
        if self.broadcaster is not None:
            await self.broadcaster.close()
        if self.websocket.client_state == WebSocketState.CONNECTED:
            await self.websocket.close()

    async def _send(self) -> None:
        while True:
            envelope = await self.outbox.get()
            if envelope is None:
                return
            if self.websocket.client_state == WebSocketState.CONNECTED:
                await manager.send_json(self.websocket, envelope)

    async def _receive(self) -> None:
        try:
            while True:
                raw = await self.websocket.receive_text()
                try:
                    self.handle_message(json.loads(raw))
                except json.JSONDecodeError:
                    self._error("Invalid JSON")
                except ValidationError as e:
                    self._error(f"Invalid message: {e}")
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning(f"Rejected coaching message: {e}")
                    self._error(str(e))
        except WebSocketDisconnect:
            logger.info("Coaching client disconnected")

    def _error(self, message: str) -> None:
        self.outbox.put_nowait(_envelope(WebSocketMessageType.ERROR, {"error": message}))

    # -------------------------------------------------------------------------
    # Client messages
    # -------------------------------------------------------------------------

    def handle_message(self, raw: Any) -> None:
        """
        Turn one client message into a coaching loop message.

        Message format (client -> server):
        {"type": "landmarks", "data": {"landmarks": [...], "timestamp_ms": 0}}
        {"type": "frame", "data": {"image_base64": "...", "frame_number": 0}}
        {"type": "transcript", "data": {"text": "stop", "is_final": true}}
        {"type": "pause"} / {"type": "resume"} / {"type": "stop"} / ...

        Raises:
            ValidationError: malformed envelope or payload
            ValueError: message type the server does not accept
        """
        message = WebSocketMessage.model_validate(raw)
        msg_type = message.type

        if msg_type is WebSocketMessageType.LANDMARKS:
            frame = LandmarkFramePayload.model_validate(message.data).to_domain()
            self.loop.submit(FrameMessage(frame))
        elif msg_type is WebSocketMessageType.FRAME:
            self._handle_image(PoseDetectionRequest.model_validate(message.data))
        elif msg_type is WebSocketMessageType.TRANSCRIPT:
            payload = TranscriptPayload.model_validate(message.data)
            self.loop.submit(TranscriptMessage(TranscriptEvent(
                text=payload.text,
                confidence=payload.confidence,
                is_final=payload.is_final,
            )))
        elif msg_type.value in COMMANDS:
            self.loop.submit(CommandMessage(msg_type.value, str(message.data.get("error", ""))))
        else:
            raise ValueError(f"Unknown message type: {msg_type.value}")

    def _handle_image(self, request: PoseDetectionRequest) -> None:
        if not request.image_base64:
            raise ValueError("No image data provided")

        if self.detector is None:
            try:
                self.detector = self.detector_factory()
            except PoseEngineUnavailableError as e:
                self.loop.submit(CommandMessage(WebSocketMessageType.ENGINE_ERROR.value, str(e)))
                return

        pose_frame = self.detector.detect_from_base64(
            request.image_base64,
            timestamp_ms=request.timestamp_ms,
            frame_number=request.frame_number,
        )
        # No person in view counts as an empty frame
        self.loop.submit(FrameMessage(pose_frame or PoseFrame()))


async def coach_endpoint(
    websocket: WebSocket,
    store: InMemorySessionStore = Depends(get_store),
    detector_factory: Callable[[], PoseDetector] = Depends(get_detector_factory),
) -> None:
    """
    WebSocket endpoint for live plank coaching.

    Message format (server -> client):
    {"type": "analysis", "data": {"overallScore": 85, ...}, "timestamp": ...}
    {"type": "speech", "data": {"text": "Timer started", "priority": "high"}, ...}
    {"type": "state", "data": {"event": "state_changed", "state": "active", ...}, ...}
    {"type": "report", "data": {"reason": "manual", "report": {...}}, ...}
    """
    await websocket.accept()
    connection = CoachConnection(websocket, store, detector_factory)
    await connection.run()
