"""
test_screens.py - Unit tests for screen selection
"""

import pytest

from call_flow import CallSnapshot, CallState
from kiosk_config import Participant
from resource_lifecycle import ResourceKind
from screens import Screen, ScreenAction, format_duration, render

JOHN = Participant(id=1, name="John", avatar="SW")


def snapshot(state=CallState.RINGING, started=True, **kwargs):
    return CallSnapshot(state=state, started=started, call_duration=kwargs.pop("call_duration", 0),
                        participant=JOHN, **kwargs)


class TestFormatDuration:
    """Tests for MM:SS formatting"""

    @pytest.mark.parametrize("seconds, expected", [
        (0, "00:00"),
        (5, "00:05"),
        (65, "01:05"),
        (3600, "60:00"),
        (-3, "00:00"),
        (59.9, "00:59"),
    ])
    def test_format(self, seconds, expected):
        """Test minutes and seconds are zero padded"""
        assert format_duration(seconds) == expected


class TestRender:
    """Tests for render()"""

    def test_not_started_shows_clock(self):
        """Test the parked machine shows the clock screen"""
        screen = render(snapshot(started=False))
        assert screen.screen == Screen.CLOCK
        assert screen.show_clock
        assert screen.actions == ()

    def test_ringing(self):
        """Test ringing offers answer and decline"""
        screen = render(snapshot(CallState.RINGING))
        assert screen.screen == Screen.RINGING
        assert screen.title == "John"
        assert screen.actions == (ScreenAction.ANSWER, ScreenAction.DECLINE)
        assert not screen.show_clock

    def test_active_shows_duration(self):
        """Test the call screen shows the running duration"""
        screen = render(snapshot(CallState.ACTIVE, call_duration=65))
        assert screen.screen == Screen.ACTIVE
        assert screen.duration_text == "01:05"
        assert ScreenAction.END_CALL in screen.actions
        assert screen.show_camera

    def test_active_with_camera_error(self):
        """Test the error is shown and the camera preview hidden"""
        screen = render(snapshot(CallState.ACTIVE, error="Could not access camera",
                                 error_kind=ResourceKind.CAMERA))
        assert screen.error == "Could not access camera"
        assert not screen.show_camera

    def test_active_with_audio_error_keeps_camera(self):
        """Test an audio error leaves the camera preview on"""
        screen = render(snapshot(CallState.ACTIVE, error="Could not play audio",
                                 error_kind=ResourceKind.AUDIO))
        assert screen.error == "Could not play audio"
        assert screen.show_camera

    def test_error_offers_retry(self):
        """Test retry is appended on every screen showing an error"""
        for state in (CallState.RINGING, CallState.ACTIVE, CallState.ENDED, CallState.RECORDING):
            screen = render(snapshot(state, error="Could not play audio",
                                     error_kind=ResourceKind.AUDIO))
            assert screen.actions[-1] == ScreenAction.RETRY

    def test_no_retry_without_error(self):
        """Test retry is not offered when nothing failed"""
        for state in (CallState.RINGING, CallState.ACTIVE, CallState.ENDED, CallState.RECORDING):
            assert ScreenAction.RETRY not in render(snapshot(state)).actions

    def test_active_video_off(self):
        """Test no preview with video disabled"""
        screen = render(snapshot(CallState.ACTIVE, video_enabled=False))
        assert not screen.show_camera

    def test_ended(self):
        """Test ended screen keeps the final duration"""
        screen = render(snapshot(CallState.ENDED, call_duration=12))
        assert screen.screen == Screen.ENDED
        assert screen.duration_text == "00:12"
        assert screen.actions == (ScreenAction.VIEW_RECORDING, ScreenAction.START_NEW_CALL)

    def test_recording_shows_clock(self):
        """Test the recording screen brings the clock back"""
        screen = render(snapshot(CallState.RECORDING, playback_position=3.0, playback_length=75.0))
        assert screen.screen == Screen.RECORDING
        assert screen.show_clock
        assert screen.duration_text == "00:03 / 01:15"

    def test_success(self):
        """Test the success screen has no actions"""
        screen = render(snapshot(CallState.SUCCESS))
        assert screen.screen == Screen.SUCCESS
        assert screen.actions == ()
        assert "memory" in screen.subtitle

    def test_every_state_has_a_screen(self):
        """Test render is total over the call states"""
        for state in CallState:
            assert render(snapshot(state)).screen.value == state.value


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
