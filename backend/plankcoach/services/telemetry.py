"""
Telemetry Broadcaster

Mirrors every analysis sample to other observers over a persistent
WebSocket. Sending is fire-and-forget: samples published while the
channel is down are dropped, since this is a live mirror and not the
system of record.

The channel reconnects with exponential backoff and gives up for good
after a fixed number of attempts.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake

from ..domain.analysis import AnalysisResult
from ..domain.errors import TelemetryConnectionError

logger = logging.getLogger(__name__)


POSE_ANALYSIS = "pose_analysis"


def make_envelope(session_id: str, result: AnalysisResult) -> Dict[str, Any]:
    """Wrap one analysis sample in the `{type, sessionId, data}` envelope."""
    return {
        "type": POSE_ANALYSIS,
        "sessionId": session_id,
        "data": result.to_dict(),
    }


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 10.0) -> float:
    """Delay before reconnect attempt `attempt` (0-based): base * 2^n, capped."""
    return min(base_delay * (2 ** attempt), max_delay)


class TelemetrySink(Protocol):
    """Anything that can take analysis samples for a session."""

    def publish(self, session_id: str, result: AnalysisResult) -> bool:
        ...


class TelemetryBroadcaster:
    """
    Outbound telemetry channel.

    Usage:
        broadcaster = TelemetryBroadcaster("ws://localhost:8000/ws")
        task = broadcaster.start()
        broadcaster.publish(session_id, result)
        ...
        await broadcaster.close()
    """

    def __init__(
        self,
        url: str,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        on_message: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[TelemetryConnectionError], None]] = None,
        queue_size: int = 100,
        connect: Optional[Callable[[str], Any]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.url = url
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.on_message = on_message
        self.on_error = on_error

        self._connect = connect or websockets.connect
        self._sleep = sleep or asyncio.sleep
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

        self.connected = False
        self.attempts = 0
        self.error: Optional[TelemetryConnectionError] = None
        self._closing = False
        self._websocket: Any = None
        self._task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(self, session_id: str, result: AnalysisResult) -> bool:
        """
        Queue one sample for sending.

        Returns:
            False if the sample was dropped (channel down or queue full)
        """
        if not self.connected:
            return False
        try:
            self.queue.put_nowait(make_envelope(session_id, result))
        except asyncio.QueueFull:
            logger.debug("Telemetry queue full, dropping sample")
            return False
        return True

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Run the channel in a background task on the current loop."""
        self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self) -> None:
        """Close the channel without reconnecting."""
        self._closing = True
        if self._websocket is not None:
            await self._websocket.close()
        if self._task is not None:
            await self._task

    async def run(self) -> None:
        """Connect, pump messages and reconnect until closed or exhausted."""
        while not self._closing:
            try:
                async with self._connect(self.url) as websocket:
                    self._websocket = websocket
                    self.connected = True
                    self.attempts = 0
                    logger.info(f"Telemetry connected to {self.url}")

                    await self._pump(websocket)

                    logger.info("Telemetry channel closed normally")
                    return
            except ConnectionClosedOK:
                logger.info("Telemetry channel closed normally")
                return
            except (OSError, ConnectionClosed, InvalidHandshake, asyncio.TimeoutError) as e:
                logger.warning(f"Telemetry connection lost: {e}")
            finally:
                self.connected = False
                self._websocket = None

            if self._closing:
                return

            if self.attempts >= self.max_attempts:
                self.error = TelemetryConnectionError(
                    f"Telemetry connection failed after {self.attempts} attempts"
                )
                logger.warning(str(self.error))
                if self.on_error is not None:
                    self.on_error(self.error)
                return

            delay = backoff_delay(self.attempts, self.base_delay, self.max_delay)
            self.attempts += 1
            logger.info(
                f"Reconnecting telemetry in {delay:.0f}s "
                f"(attempt {self.attempts}/{self.max_attempts})"
            )
            await self._sleep(delay)

    async def _pump(self, websocket: Any) -> None:
        sender = asyncio.create_task(self._send_loop(websocket))
        receiver = asyncio.create_task(self._receive_loop(websocket))

        done, pending = await asyncio.wait(
            {sender, receiver},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            task.result()

    async def _send_loop(self, websocket: Any) -> None:
        while True:
            envelope = await self.queue.get()
            await websocket.send(json.dumps(envelope))

    async def _receive_loop(self, websocket: Any) -> None:
        async for raw in websocket:
            self._handle_inbound(raw)

    def _handle_inbound(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to parse telemetry message: {e}")
            return

        if not isinstance(message, dict) or message.get("type") != POSE_ANALYSIS:
            return
        if self.on_message is not None:
            self.on_message(message)
