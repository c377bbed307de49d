"""Tests for the single-consumer coaching loop.

Covers:
  - Frames, transcripts and commands routed to the session
  - Illegal commands logged instead of raised
  - Persistence failures routed to the error callback
  - run() ticking and ending on a terminal state
"""

import asyncio

import pytest

from plankcoach.domain import EventType, PersistenceError, SessionState, TranscriptEvent
from plankcoach.services import (
    CoachingLoop,
    CoachingSession,
    CommandMessage,
    FrameMessage,
    InMemorySessionStore,
    QueuedSpeechOutput,
    TranscriptMessage,
)

from pose_builders import high_plank


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class FailingStore(InMemorySessionStore):
    def update_session(self, session_id, updates):
        raise RuntimeError("disk full")


def _run_until_timer(loop: CoachingLoop, clock: FakeClock) -> None:
    for now in range(0, 2400, 100):
        clock.now = now
        loop.apply(FrameMessage(high_plank()))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return CoachingSession(speech=QueuedSpeechOutput(), repository=InMemorySessionStore())


@pytest.fixture
def loop(session, clock):
    return CoachingLoop(session, clock=clock)


# ============================================================================
# Test: Message routing
# ============================================================================

class TestApply:

    def test_frame_message(self, loop, session):
        events = loop.apply(FrameMessage(high_plank()))
        assert EventType.ANALYSIS in [e.type for e in events]
        assert session.state is SessionState.IDENTIFYING

    def test_transcript_stops_running_session(self, loop, session, clock):
        _run_until_timer(loop, clock)
        clock.now = 3000
        loop.apply(TranscriptMessage(TranscriptEvent("stop", is_final=True)))
        assert session.state is SessionState.STOPPED

    def test_pause_and_resume(self, loop, session, clock):
        _run_until_timer(loop, clock)
        loop.apply(CommandMessage("pause"))
        assert session.state is SessionState.PAUSED
        loop.apply(CommandMessage("resume"))
        assert session.state is SessionState.ACTIVE

    def test_illegal_pause_is_ignored(self, loop, session):
        assert loop.apply(CommandMessage("pause")) == []
        assert session.state is SessionState.IDLE

    def test_voice_toggle(self, loop, session):
        loop.apply(CommandMessage("voice_toggle"))
        assert session.dispatcher.enabled is False

    def test_voice_permission_error(self, loop, session):
        loop.apply(CommandMessage("voice_error", "not-allowed"))
        assert session.voice.available is False

    def test_voice_start_failures(self, loop, session):
        for _ in range(3):
            loop.apply(CommandMessage("voice_start_failed"))
        assert session.voice.available is False

    def test_engine_error(self, loop, session):
        loop.apply(CommandMessage("engine_error", "no GPU delegate"))
        assert session.state is SessionState.UNAVAILABLE
        assert session.unavailable_reason == "no GPU delegate"

    def test_unknown_command(self, loop):
        with pytest.raises(ValueError):
            loop.apply(CommandMessage("jump"))


# ============================================================================
# Test: Errors
# ============================================================================

class TestPersistenceErrors:

    def test_routed_to_on_error_with_events(self, clock):
        errors = []
        session = CoachingSession(speech=QueuedSpeechOutput(), repository=FailingStore())
        loop = CoachingLoop(session, on_error=errors.append, clock=clock)
        _run_until_timer(loop, clock)

        events = loop.step(CommandMessage("stop"))

        assert len(errors) == 1
        assert isinstance(errors[0], PersistenceError)
        assert errors[0].report is not None
        assert EventType.SESSION_STOPPED in [e.type for e in events]

    def test_raised_without_on_error(self, clock):
        session = CoachingSession(speech=QueuedSpeechOutput(), repository=FailingStore())
        loop = CoachingLoop(session, clock=clock)
        _run_until_timer(loop, clock)

        with pytest.raises(PersistenceError):
            loop.step(CommandMessage("stop"))


# ============================================================================
# Test: run()
# ============================================================================

class TestRun:

    def test_runs_until_stopped(self, session, clock):
        batches = []
        loop = CoachingLoop(session, on_events=batches.append, clock=clock, tick_interval=0.01)
        loop.submit(FrameMessage(high_plank()))
        loop.submit(CommandMessage("stop"))

        asyncio.run(asyncio.wait_for(loop.run(), timeout=5))

        assert session.state is SessionState.STOPPED
        types = [e.type for batch in batches for e in batch]
        assert types[-1] is EventType.SESSION_STOPPED

    def test_ticks_while_idle(self, session, clock):
        batches = []
        loop = CoachingLoop(session, on_events=batches.append, clock=clock, tick_interval=0.01)

        async def scenario():
            task = asyncio.create_task(loop.run())
            await asyncio.sleep(0.05)
            loop.submit(CommandMessage("stop"))
            await asyncio.wait_for(task, timeout=5)

        asyncio.run(scenario())

        assert batches.count([]) >= 1
