"""
kiosk_state.py - Hand-off between the WebRTC worker threads and the script

The video processor runs on its own thread. It never touches the kiosk
core: it posts pointer events and camera frames here, and reads back what
the clock overlay should show. The Streamlit script thread drains the
inbox on every tick, so all core state changes happen on one thread.
"""

import threading
import time
from typing import List, Optional, Tuple

import numpy as np

from angle_math import ClockGeometry, Hand
from clock_time import ClockTime
from gesture_controller import PointerEvent


class KioskInbox:
    def __init__(self):
        self.lock = threading.Lock()
        self._pointer_events: List[PointerEvent] = []
        self._frame: Optional[np.ndarray] = None
        self._frame_seen_at: float = 0.0
        self._geometry = ClockGeometry.unavailable()
        self._display_time: Optional[ClockTime] = None
        self._show_clock = True
        self._active_hand: Optional[Hand] = None
        self.reset_requested = False
        self.trigger_ring = False

    # Worker thread -> script thread

    def post_pointer(self, event: PointerEvent):
        with self.lock:
            self._pointer_events.append(event)

    def drain_pointer_events(self) -> List[PointerEvent]:
        with self.lock:
            events, self._pointer_events = self._pointer_events, []
            return events

    def publish_frame(self, frame: np.ndarray, seen_at: Optional[float] = None):
        with self.lock:
            self._frame = frame
            self._frame_seen_at = time.monotonic() if seen_at is None else seen_at

    def latest_frame(self) -> Tuple[Optional[np.ndarray], float]:
        with self.lock:
            return self._frame, self._frame_seen_at

    def set_geometry(self, geometry: ClockGeometry):
        with self.lock:
            self._geometry = geometry

    def geometry(self) -> ClockGeometry:
        with self.lock:
            return self._geometry

    # Script thread -> worker thread

    def set_display(self, clock_time: ClockTime, show_clock: bool, active_hand: Optional[Hand] = None):
        with self.lock:
            self._display_time = clock_time.copy()
            self._show_clock = show_clock
            self._active_hand = active_hand

    def display(self) -> Tuple[Optional[ClockTime], bool, Optional[Hand]]:
        with self.lock:
            return self._display_time, self._show_clock, self._active_hand

    # Dev mode commands (sidebar -> next tick)

    def request_reset(self):
        with self.lock:
            self.reset_requested = True

    def check_reset(self) -> bool:
        with self.lock:
            if self.reset_requested:
                self.reset_requested = False
                return True
            return False

    def set_trigger_ring(self):
        with self.lock:
            self.trigger_ring = True

    def check_trigger_ring(self) -> bool:
        with self.lock:
            if self.trigger_ring:
                self.trigger_ring = False
                return True
            return False
