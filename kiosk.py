"""
kiosk.py - Wires the clock, the gesture engine, the triggers and the call flow

Data flow on the script thread:
    pointer event -> GestureController -> ClockTime -> ClockTrigger
        -> CallFlowMachine -> ResourceScope (timers, audio, camera)

Every step of one event completes before the next event is processed.
"""

import json
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from call_flow import CallEvent, CallFlowMachine, CallState
from clock_time import ClockTicker, ClockTime, local_now
from clock_trigger import ClockTrigger
from gesture_controller import GestureController, PointerBus, PointerEvent, PointerKind
from kiosk_config import KioskConfig
from kiosk_state import KioskInbox
from screens import Screen, ScreenAction, ScreenDescriptor, render

logger = logging.getLogger(__name__)

SUCCESS_ROUTE = "success"


class Kiosk:
    """
    One kiosk session. A page reload builds a new one, which is the
    whole reset story: nothing is persisted.
    """

    def __init__(self, config: KioskConfig, media,
                 navigate: Optional[Callable[[str], None]] = None,
                 inbox: Optional[KioskInbox] = None,
                 now_fn: Optional[Callable[[], datetime]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 log_events: bool = True):
        self.config = config
        self.media = media
        self.navigate = navigate
        self.inbox = inbox or KioskInbox()
        self.clock = clock
        self.now_fn = now_fn or (lambda: local_now(config.timezone_offset_hours))

        self.clock_time = ClockTime.from_datetime(self.now_fn())
        self.ticker = ClockTicker(self.clock_time, self.now_fn, on_change=self._on_time_changed)
        self.bus = PointerBus()
        self.gestures = GestureController(
            self.clock_time, self.inbox.geometry, self.bus,
            ticker=self.ticker, on_change=self._on_time_changed,
        )
        self.triggers = ClockTrigger(config.triggers, on_time_reached=self._on_time_reached)
        self.navigated = False
        self.machine = self._new_machine()

        self.log_events = log_events
        self._init_logging()
        self._publish_display()

    def _new_machine(self) -> CallFlowMachine:
        machine = CallFlowMachine(self.config, self.media, clock=self.clock)
        machine.add_listener(self._on_transition)
        return machine

    # =========================================================================
    # TELEMETRY
    # =========================================================================

    def _init_logging(self):
        """Initialize telemetry logging"""
        self.log_file = None
        if not self.log_events:
            return
        try:
            self.config.log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = self.config.log_dir / "events.log"
        except OSError as e:
            logger.error(f"Telemetry disabled, cannot create {self.config.log_dir}: {e}")

    def _log_event(self, event: str, **kwargs):
        """Log an event to the telemetry file"""
        if self.log_file is None:
            return
        entry = {
            "ts": datetime.now().isoformat(),
            "state": self.machine.state.value if self.machine.started else "clock",
            "clock": self.clock_time.to_string(),
            "event": event,
            **kwargs
        }
        try:
            with open(self.log_file, 'a') as f:
                f.write(json.dumps(entry, default=str) + '\n')
        except Exception as e:
            logger.error(f"Failed to log event: {e}")

    # =========================================================================
    # EVENTS
    # =========================================================================

    def screen(self) -> ScreenDescriptor:
        return render(self.machine.snapshot())

    @property
    def clock_visible(self) -> bool:
        return self.screen().show_clock

    def handle_pointer(self, event: PointerEvent):
        """One pointer event from the input source, fully processed"""
        if event.kind == PointerKind.DOWN and self.clock_visible:
            if self.gestures.on_pointer_down(event.position):
                # The first update may already have fired a trigger and ended the drag
                hand = self.gestures.session.active_hand
                if self.config.freeze_on_drag:
                    self.ticker.freeze()
                self._log_event("DRAG_START", hand=hand.value if hand else None)
        was_dragging = self.gestures.is_dragging
        # Document-level delivery: moves/ups reach the drag wherever they land
        self.bus.publish(event)
        if was_dragging and not self.gestures.is_dragging:
            self._log_event("DRAG_END")
        self._publish_display()

    def tick(self):
        """Periodic callback from the host loop"""
        if self.inbox.check_reset():
            self.reset()
        if self.inbox.check_trigger_ring():
            self.force_ring()

        for event in self.inbox.drain_pointer_events():
            self.handle_pointer(event)

        self.ticker.tick()
        self.machine.tick()
        self.media.poll()

        if self.clock_visible:
            # Catches a screen that opens on a trigger time already shown
            self.triggers.check(self.clock_time)
        self._publish_display()

    def perform(self, action: ScreenAction) -> bool:
        """Route a button press from the current screen"""
        handlers = {
            ScreenAction.ANSWER: self.machine.answer,
            ScreenAction.DECLINE: self.machine.decline,
            ScreenAction.TOGGLE_VIDEO: self.machine.toggle_video,
            ScreenAction.END_CALL: self.machine.end,
            ScreenAction.VIEW_RECORDING: self.machine.view_recording,
            ScreenAction.START_NEW_CALL: self.machine.start_new_call,
            ScreenAction.TOGGLE_PLAYBACK: self.machine.toggle_playback,
            ScreenAction.CLOSE_RECORDING: self.machine.close,
            ScreenAction.RETRY: self.machine.retry_media,
        }
        if action not in self.screen().actions:
            logger.warning(f"Action {action.name} not offered on {self.screen().screen.value}")
            return False
        self._log_event("ACTION", action=action.name)
        done = handlers[action]()
        self._publish_display()
        return done

    def set_time(self, hour: int, minute: int):
        """Manual override: freezes the clock at the given time"""
        self.ticker.freeze()
        self.clock_time.set(hour, minute, 0)
        self._log_event("TIME_SET", time=self.clock_time.to_string())
        self._on_time_changed(self.clock_time)
        self._publish_display()

    def resume_real_time(self):
        self.ticker.unfreeze()
        self.ticker.tick()

    def force_ring(self):
        """Start the call as if the first trigger had been reached"""
        if self.machine.started or not self.triggers.triggers:
            return
        first = self.triggers.triggers[0]
        self.triggers.has_fired.add(first.trigger_id)
        self._log_event("FORCE_RING")
        self._on_time_reached(first.trigger_id)

    def reset(self):
        """Back to the untriggered clock with a fresh call flow"""
        self.gestures.cancel()
        self.machine.dispose()
        self.triggers.reset()
        self.navigated = False
        self.machine = self._new_machine()
        self.ticker.unfreeze()
        self._log_event("SYSTEM_RESET")
        logger.info("Kiosk reset")

    def seek(self, seconds: float) -> bool:
        """Jump the recording playback to the given position"""
        done = self.machine.seek(seconds)
        if done:
            self._log_event("SEEK", position=round(seconds, 1))
        return done

    def dispose(self):
        """Session teardown: drop any drag and release all media"""
        self.gestures.cancel()
        self.machine.dispose()

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def _on_time_changed(self, clock_time: ClockTime):
        if self.clock_visible:
            self.triggers.check(clock_time)

    def _on_time_reached(self, trigger_id: str):
        ids = [t.trigger_id for t in self.triggers.triggers]
        self._log_event("TRIGGER", trigger=trigger_id)
        if ids.index(trigger_id) == 0:
            self.machine.start()
        elif self.machine.can_handle(CallEvent.PLAYBACK_END):
            self.machine.playback_end()
        else:
            logger.info(f"Trigger '{trigger_id}' reached in {self.machine.state.value}, nothing to do")

    def _on_transition(self, old: Optional[CallState], new: CallState, event: Optional[CallEvent]):
        self._log_event(
            "STATE_CHANGE",
            old_state=old.value if old else None,
            new_state=new.value,
            call_event=event.value if event else None,
            call_duration=self.machine.call_duration,
        )
        if not self.clock_visible:
            # The clock widget is gone; an open drag has nothing to move
            self.gestures.cancel()
        if new is CallState.SUCCESS and not self.navigated:
            self.navigated = True
            self._log_event("NAVIGATE", route=SUCCESS_ROUTE)
            if self.navigate:
                self.navigate(SUCCESS_ROUTE)

    def _publish_display(self):
        self.inbox.set_display(self.clock_time, self.clock_visible,
                               self.gestures.session.active_hand)

    @property
    def current_screen(self) -> Screen:
        return self.screen().screen
