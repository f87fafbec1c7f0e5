"""
gesture_controller.py - Drag the clock hands with pointer events

Idle -> Dragging(hand) -> Idle. Pointer events come from any input source
(mouse, touch, tracked hand); the controller only sees (x, y).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional

from angle_math import (
    ClockGeometry, Hand, Point,
    angle_from_position, hand_at, hour_from_angle, minute_from_angle,
)
from clock_time import ClockTicker, ClockTime

logger = logging.getLogger(__name__)


class PointerKind(Enum):
    DOWN = auto()
    MOVE = auto()
    UP = auto()
    CANCEL = auto()


@dataclass(frozen=True)
class PointerEvent:
    """A pointer event in client coordinates"""
    kind: PointerKind
    x: float = 0.0
    y: float = 0.0

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)


PointerListener = Callable[[PointerEvent], None]


class PointerBus:
    """
    Document-level pointer stream.

    Every event the host receives is published here, whether or not it
    landed on the clock widget, so a drag can continue past the widget edge.
    """

    def __init__(self):
        self._listeners: List[PointerListener] = []

    def subscribe(self, listener: PointerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: PointerEvent):
        # Listeners may unsubscribe while handling an UP
        for listener in list(self._listeners):
            listener(event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


@dataclass
class DragSession:
    active_hand: Optional[Hand] = None
    is_dragging: bool = False


def hour_keeping_half(raw_hour: float, current_hour: int) -> int:
    """
    Map an hour-of-12 from the dial back to 24h, staying in the current half.

    13:xx dragged to 5 gives 17; PM dragged to 0 gives 12, AM to 0 gives 0.
    """
    hour = int(math.floor(raw_hour)) % 12
    if current_hour >= 12:
        return 12 if hour == 0 else hour + 12
    return hour


class GestureController:
    """
    Converts a drag on the clock face into ClockTime mutations.

    Args:
        clock_time: the shared time value (mutated in place)
        geometry_fn: returns the current ClockGeometry of the widget
        bus: document-level pointer stream used during a drag
        ticker: auto tick source, suspended while dragging
        on_change: called after every committed time change
    """

    def __init__(self, clock_time: ClockTime,
                 geometry_fn: Callable[[], ClockGeometry],
                 bus: PointerBus,
                 ticker: Optional[ClockTicker] = None,
                 on_change: Optional[Callable[[ClockTime], None]] = None):
        self.clock_time = clock_time
        self.geometry_fn = geometry_fn
        self.bus = bus
        self.ticker = ticker
        self.on_change = on_change
        self.session = DragSession()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_dragging(self) -> bool:
        return self.session.is_dragging

    def _geometry(self) -> ClockGeometry:
        geometry = self.geometry_fn()
        return geometry if geometry is not None else ClockGeometry.unavailable()

    def on_pointer_down(self, pos: Point) -> bool:
        """Start a drag if the pointer is on a hand. Returns True on a hit."""
        if self.session.active_hand is not None:
            return False

        geometry = self._geometry()
        if not geometry.is_available:
            logger.debug("Clock geometry unavailable, pointer down ignored")
            return False

        hand = hand_at(pos, geometry)
        if hand is None:
            return False

        self.session = DragSession(active_hand=hand, is_dragging=True)
        if self.ticker:
            self.ticker.suspend()
        self._unsubscribe = self.bus.subscribe(self._on_document_event)
        logger.debug(f"Drag started on {hand.value} hand")

        # No dead zone: the hand jumps to the pointer right away
        self._apply(pos)
        return True

    def on_pointer_move(self, pos: Point):
        if not self.session.is_dragging:
            return
        self._apply(pos)

    def on_pointer_up(self):
        self._end_session()

    def cancel(self):
        self._end_session()

    def _end_session(self):
        if not self.session.is_dragging:
            return
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug(f"Drag ended on {self.session.active_hand.value} hand")
        self.session = DragSession()
        if self.ticker:
            # The ticker stays idle on its own if the host froze the clock
            self.ticker.resume()

    def _on_document_event(self, event: PointerEvent):
        if event.kind == PointerKind.MOVE:
            self.on_pointer_move(event.position)
        elif event.kind in (PointerKind.UP, PointerKind.CANCEL):
            self._end_session()

    def _apply(self, pos: Point):
        geometry = self._geometry()
        if not geometry.is_available:
            return

        angle = angle_from_position(pos, geometry.center)
        current = self.clock_time
        hour, minute = current.hour, current.minute

        if self.session.active_hand == Hand.HOUR:
            hour = hour_keeping_half(hour_from_angle(angle), current.hour)
        elif self.session.active_hand == Hand.MINUTE:
            minute = int(math.floor(minute_from_angle(angle))) % 60
        else:
            return

        if (hour, minute) == (current.hour, current.minute):
            return

        current.set(hour, minute, current.second)
        if self.on_change:
            self.on_change(current)
