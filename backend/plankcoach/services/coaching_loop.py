"""
Coaching Loop

Message-passing driver for a CoachingSession. Landmark frames, speech
transcripts and user commands from asynchronous producers land in one
inbox and are applied by a single consumer, so the state machine never
sees interleaved calls. When the inbox is quiet the loop ticks the
session so timers keep running.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from ..domain.errors import PersistenceError, SessionStateError
from ..domain.pose import PoseFrame
from ..domain.session import SessionEvent, TranscriptEvent
from .coaching_session import CoachingSession

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FrameMessage:
    frame: PoseFrame


@dataclass(frozen=True)
class TranscriptMessage:
    event: TranscriptEvent


@dataclass(frozen=True)
class CommandMessage:
    """User command: pause, resume, toggle_pause, stop, voice_toggle, voice_error, engine_error."""
    command: str
    detail: str = ""


InboundMessage = Union[FrameMessage, TranscriptMessage, CommandMessage]

COMMANDS = (
    "pause",
    "resume",
    "toggle_pause",
    "stop",
    "voice_toggle",
    "voice_error",
    "voice_start_failed",
    "engine_error",
)


class CoachingLoop:
    """
    Single consumer for one coaching session.

    `on_events` is called after every step, even one that produced no
    events, so hosts can drain queued speech. A PersistenceError raised
    by a stop goes to `on_error`; the events of that step are still
    delivered.

    Usage:
        loop = CoachingLoop(session, on_events=handle_events)
        task = asyncio.create_task(loop.run())
        loop.submit(FrameMessage(frame))
    """

    def __init__(
        self,
        session: CoachingSession,
        on_events: Optional[Callable[[List[SessionEvent]], None]] = None,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
        clock: Callable[[], int] = now_ms,
        tick_interval: float = 1.0,
    ):
        self.session = session
        self.on_events = on_events
        self.on_error = on_error
        self.clock = clock
        self.tick_interval = tick_interval
        self.inbox: asyncio.Queue = asyncio.Queue()

    def submit(self, message: InboundMessage) -> None:
        self.inbox.put_nowait(message)

    async def run(self) -> None:
        """Consume messages until the session reaches a terminal state."""
        while not self.session.state.is_terminal:
            try:
                message = await asyncio.wait_for(self.inbox.get(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                message = None

            events = self.step(message)
            if self.on_events is not None:
                self.on_events(events)

    def step(self, message: Optional[InboundMessage]) -> List[SessionEvent]:
        """Apply one message (or a tick when None), routing persistence failures."""
        try:
            if message is None:
                return self.session.tick(self.clock())
            return self.apply(message)
        except PersistenceError as e:
            if self.on_error is None:
                raise
            self.on_error(e)
            return self.session.tick(self.clock())

    def apply(self, message: InboundMessage) -> List[SessionEvent]:
        """Apply one message to the session and return its events."""
        now = self.clock()

        if isinstance(message, FrameMessage):
            return self.session.process_frame(message.frame, now)
        if isinstance(message, TranscriptMessage):
            return self.session.handle_transcript(message.event, now)
        return self._apply_command(message, now)

    def _apply_command(self, message: CommandMessage, now: int) -> List[SessionEvent]:
        session = self.session
        command = message.command

        try:
            if command == "pause":
                return session.pause(now)
            if command == "resume":
                return session.resume(now)
            if command == "toggle_pause":
                return session.toggle_pause(now)
        except SessionStateError as e:
            logger.warning(f"Ignoring '{command}': {e}")
            return session.tick(now)

        if command == "stop":
            return session.stop(now)
        if command == "voice_toggle":
            session.dispatcher.toggle()
        elif command == "voice_error":
            session.on_voice_error(message.detail)
        elif command == "voice_start_failed":
            session.on_voice_start_failed()
        elif command == "engine_error":
            return session.mark_unavailable(message.detail or "pose engine failed", now)
        else:
            raise ValueError(f"Unknown command: {command}")
        return session.tick(now)
