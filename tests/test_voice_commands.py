"""Tests for the voice stop-command listener.

Covers:
  - Stop-word matching, including recall-oriented aliases
  - Permission and start-failure downgrades
"""

import pytest

from plankcoach.domain import TranscriptEvent
from plankcoach.services import VoiceCommandListener


@pytest.fixture
def listener():
    return VoiceCommandListener()


class TestStopCommands:

    @pytest.mark.parametrize("text", [
        "stop", "Stop!", "please stop now", "I'm done", "end it", "finish",
        "top", "op", " ST ",
    ])
    def test_recognised(self, listener, text):
        assert listener.is_stop_command(text)

    @pytest.mark.parametrize("text", ["", "keep going", "hold", "opera star"])
    def test_not_recognised(self, listener, text):
        assert not listener.is_stop_command(text)

    def test_interim_results_count(self, listener):
        assert listener.handle(TranscriptEvent("stop", confidence=0.1, is_final=False))


class TestDowngrade:

    def test_permission_denied_disables(self, listener):
        listener.on_error("not-allowed")
        assert not listener.available
        assert not listener.handle(TranscriptEvent("stop", is_final=True))

    @pytest.mark.parametrize("error", ["no-speech", "aborted", "network", "audio-capture"])
    def test_other_errors_keep_listening(self, listener, error):
        listener.on_error(error)
        assert listener.available

    def test_three_start_failures_disable(self, listener):
        listener.on_start_failed()
        listener.on_start_failed()
        assert listener.available

        listener.on_start_failed()
        assert not listener.available

    def test_successful_start_resets_failures(self, listener):
        listener.on_start_failed()
        listener.on_start_failed()
        listener.on_started()
        listener.on_start_failed()
        assert listener.available
