"""
test_kiosk.py - Integration tests for the kiosk wiring

Drives the full chain pointer -> clock -> trigger -> call flow with fake
media, and checks the success navigation and telemetry.
"""

import json
from unittest.mock import Mock

import pytest

from angle_math import hand_tip
from audio_manager import MediaKind
from call_flow import CallState
from fakes import FakeMedia
from gesture_controller import PointerEvent, PointerKind
from kiosk import SUCCESS_ROUTE, Kiosk
from kiosk_state import KioskInbox
from screens import Screen, ScreenAction


def minute_down(geometry, minute: float) -> PointerEvent:
    x, y = hand_tip(geometry.center, minute * 6.0, geometry.radius * 0.6)
    return PointerEvent(PointerKind.DOWN, x, y)


class TestKiosk:
    """Tests for Kiosk"""

    @pytest.fixture
    def navigate(self):
        return Mock()

    @pytest.fixture
    def inbox(self, geometry):
        inbox = KioskInbox()
        inbox.set_geometry(geometry)
        return inbox

    @pytest.fixture
    def kiosk(self, config, media, navigate, inbox, fixed_now, fake_clock):
        """Kiosk at 01:30 with fake media"""
        return Kiosk(config, media, navigate=navigate, inbox=inbox,
                     now_fn=fixed_now, clock=fake_clock)

    def _events(self, config):
        log_file = config.log_dir / "events.log"
        return [json.loads(line) for line in log_file.read_text().splitlines()]

    def test_starts_on_clock(self, kiosk, media):
        """Test initial screen is the clock with nothing acquired"""
        assert kiosk.current_screen == Screen.CLOCK
        assert kiosk.clock_time.to_string() == "01:30"
        assert media.acquired == []

    def test_set_time_starts_call(self, kiosk, media):
        """Test reaching 2:00 rings the phone"""
        kiosk.set_time(2, 0)
        assert kiosk.machine.state == CallState.RINGING
        assert kiosk.current_screen == Screen.RINGING
        assert [h.kind for h in media.live] == [MediaKind.RINGTONE]

    def test_finish_time_before_start_does_nothing(self, kiosk):
        """Test 8:00 first is ignored"""
        kiosk.set_time(8, 0)
        assert kiosk.current_screen == Screen.CLOCK
        kiosk.set_time(2, 0)
        assert kiosk.current_screen == Screen.RINGING

    def test_drag_to_trigger_time(self, kiosk, geometry):
        """Test dragging the minute hand to 12 at 2:30 starts the call"""
        kiosk.set_time(2, 30)
        kiosk.handle_pointer(minute_down(geometry, 0.5))
        assert kiosk.clock_time.to_string() == "02:00"
        assert kiosk.machine.state == CallState.RINGING
        # The clock disappeared, so the drag was dropped
        assert not kiosk.gestures.is_dragging
        assert kiosk.bus.listener_count == 0

    def test_drag_freezes_real_time(self, kiosk, geometry):
        """Test ticks do not overwrite a dragged time"""
        kiosk.handle_pointer(minute_down(geometry, 45.5))
        kiosk.handle_pointer(PointerEvent(PointerKind.UP))
        assert kiosk.ticker.manual
        kiosk.tick()
        assert kiosk.clock_time.to_string() == "01:45"

    def test_pointer_ignored_while_clock_hidden(self, kiosk, geometry):
        """Test the clock cannot be dragged during a call"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.ANSWER)
        kiosk.handle_pointer(minute_down(geometry, 30.5))
        assert kiosk.clock_time.to_string() == "02:00"
        assert not kiosk.gestures.is_dragging

    def test_tick_drains_inbox(self, kiosk, inbox, geometry):
        """Test pointer events posted by the video thread are applied on tick"""
        kiosk.ticker.freeze()
        inbox.post_pointer(minute_down(geometry, 10.5))
        inbox.post_pointer(PointerEvent(PointerKind.UP))
        kiosk.tick()
        assert kiosk.clock_time.minute == 10
        assert not kiosk.gestures.is_dragging
        assert inbox.drain_pointer_events() == []

    def test_full_narrative_navigates_once(self, kiosk, navigate, fake_clock):
        """Test 2:00, call, recording, 8:00 reaches success exactly once"""
        kiosk.set_time(2, 0)
        assert kiosk.perform(ScreenAction.ANSWER)
        for _ in range(3):
            fake_clock.advance(1.0)
            kiosk.tick()
        assert kiosk.screen().duration_text == "00:03"
        assert kiosk.perform(ScreenAction.END_CALL)
        assert kiosk.perform(ScreenAction.VIEW_RECORDING)
        assert kiosk.clock_visible
        kiosk.set_time(8, 0)
        assert kiosk.machine.state == CallState.SUCCESS
        kiosk.set_time(8, 0)
        kiosk.tick()
        navigate.assert_called_once_with(SUCCESS_ROUTE)

    def test_recording_end_navigates(self, kiosk, media, navigate):
        """Test playback finishing also reaches success"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.DECLINE)
        kiosk.perform(ScreenAction.VIEW_RECORDING)
        kiosk.perform(ScreenAction.TOGGLE_PLAYBACK)
        media.finish(media.live_of(MediaKind.RECORDING)[0])
        assert kiosk.current_screen == Screen.SUCCESS
        navigate.assert_called_once_with(SUCCESS_ROUTE)

    def test_action_not_offered(self, kiosk):
        """Test actions missing from the current screen are refused"""
        kiosk.set_time(2, 0)
        assert not kiosk.perform(ScreenAction.END_CALL)
        assert kiosk.machine.state == CallState.RINGING

    def test_force_ring(self, kiosk, inbox):
        """Test the dev command rings regardless of the time"""
        inbox.set_trigger_ring()
        kiosk.tick()
        assert kiosk.machine.state == CallState.RINGING
        assert kiosk.machine.started

    def test_reset(self, kiosk, inbox, media):
        """Test reset releases media and goes back to the clock"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.ANSWER)
        inbox.request_reset()
        kiosk.tick()
        assert kiosk.current_screen == Screen.CLOCK
        assert media.live == []
        assert not kiosk.ticker.manual
        assert kiosk.triggers.has_fired == set()

    def test_display_published_for_overlay(self, kiosk, inbox):
        """Test the video thread sees the current time and visibility"""
        kiosk.set_time(4, 20)
        display_time, show_clock, active_hand = inbox.display()
        assert display_time.to_string() == "04:20"
        assert show_clock
        assert active_hand is None
        kiosk.set_time(2, 0)
        assert inbox.display()[1] is False

    def test_telemetry_written(self, kiosk, config):
        """Test state changes are logged as JSON lines"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.DECLINE)
        events = self._events(config)
        names = [e["event"] for e in events]
        assert "TIME_SET" in names
        assert "TRIGGER" in names
        changes = [e for e in events if e["event"] == "STATE_CHANGE"]
        assert changes[-1]["old_state"] == "ringing"
        assert changes[-1]["new_state"] == "ended"

    def test_telemetry_disabled(self, config, media, fixed_now, fake_clock):
        """Test log_events=False writes nothing"""
        kiosk = Kiosk(config, media, now_fn=fixed_now, clock=fake_clock, log_events=False)
        kiosk.set_time(2, 0)
        assert not (config.log_dir / "events.log").exists()

    def test_retry_after_failure(self, config, navigate, inbox, fixed_now, fake_clock):
        """Test a failed ringtone is offered for retry and recovers"""
        media = FakeMedia(fail=[MediaKind.RINGTONE])
        kiosk = Kiosk(config, media, navigate=navigate, inbox=inbox,
                      now_fn=fixed_now, clock=fake_clock)
        kiosk.set_time(2, 0)
        assert kiosk.screen().error == "Could not play audio"
        assert ScreenAction.RETRY in kiosk.screen().actions
        assert not kiosk.perform(ScreenAction.RETRY)
        media.fail.clear()
        assert kiosk.perform(ScreenAction.RETRY)
        assert len(media.live_of(MediaKind.RINGTONE)) == 1
        assert kiosk.screen().error is None
        assert ScreenAction.RETRY not in kiosk.screen().actions

    def test_seek_recording(self, kiosk):
        """Test the recording slider jumps playback"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.DECLINE)
        assert not kiosk.seek(5.0)
        kiosk.perform(ScreenAction.VIEW_RECORDING)
        assert kiosk.seek(5.0)
        assert kiosk.machine.snapshot().playback_position == 5.0

    def test_dispose_releases_media(self, kiosk, media):
        """Test session teardown frees everything the call held"""
        kiosk.set_time(2, 0)
        kiosk.perform(ScreenAction.ANSWER)
        kiosk.dispose()
        kiosk.dispose()
        assert media.live == []
        assert media.listeners == []
        assert not kiosk.perform(ScreenAction.TOGGLE_VIDEO)

    def test_dispose_drops_drag(self, kiosk, geometry):
        """Test session teardown ends a drag in progress"""
        kiosk.handle_pointer(minute_down(geometry, 45.5))
        assert kiosk.gestures.is_dragging
        kiosk.dispose()
        assert not kiosk.gestures.is_dragging


class TestKioskInbox:
    """Tests for the worker-thread hand-off"""

    def test_drain_empties_queue(self):
        """Test events are handed over once, in order"""
        inbox = KioskInbox()
        inbox.post_pointer(PointerEvent(PointerKind.DOWN, 1, 1))
        inbox.post_pointer(PointerEvent(PointerKind.UP, 2, 2))
        kinds = [e.kind for e in inbox.drain_pointer_events()]
        assert kinds == [PointerKind.DOWN, PointerKind.UP]
        assert inbox.drain_pointer_events() == []

    def test_geometry_unavailable_until_set(self, geometry):
        """Test no geometry before the first frame"""
        inbox = KioskInbox()
        assert not inbox.geometry().is_available
        inbox.set_geometry(geometry)
        assert inbox.geometry() == geometry

    def test_commands_are_one_shot(self):
        """Test dev commands are consumed by the first check"""
        inbox = KioskInbox()
        inbox.request_reset()
        inbox.set_trigger_ring()
        assert inbox.check_reset()
        assert not inbox.check_reset()
        assert inbox.check_trigger_ring()
        assert not inbox.check_trigger_ring()

    def test_latest_frame(self):
        """Test frames carry their timestamp"""
        inbox = KioskInbox()
        assert inbox.latest_frame() == (None, 0.0)
        frame = object()
        inbox.publish_frame(frame, 12.5)
        assert inbox.latest_frame() == (frame, 12.5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
