"""
clock_time.py - Wall-clock value shown on the kiosk clock and its tick source
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from angle_math import hour_hand_angle, minute_hand_angle, second_hand_angle

logger = logging.getLogger(__name__)


@dataclass
class ClockTime:
    """
    The single time value driving both rendering and triggers.

    Owned by the kiosk and passed by reference to exactly one writer at a
    time: the gesture controller while a hand is dragged, the ticker
    otherwise.
    """
    hour: int = 0
    minute: int = 0
    second: int = 0

    def __post_init__(self):
        self.set(self.hour, self.minute, self.second)

    @classmethod
    def from_datetime(cls, dt: datetime) -> "ClockTime":
        return cls(dt.hour, dt.minute, dt.second)

    def set(self, hour: int, minute: int, second: int = 0):
        self.hour = int(hour) % 24
        self.minute = int(minute) % 60
        self.second = int(second) % 60

    def copy(self) -> "ClockTime":
        return ClockTime(self.hour, self.minute, self.second)

    @property
    def is_pm(self) -> bool:
        return self.hour >= 12

    @property
    def hour12(self) -> int:
        return self.hour % 12 or 12

    @property
    def hour_angle(self) -> float:
        return hour_hand_angle(self.hour, self.minute)

    @property
    def minute_angle(self) -> float:
        return minute_hand_angle(self.minute)

    @property
    def second_angle(self) -> float:
        return second_hand_angle(self.second)

    def to_string(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def local_now(offset_hours: Optional[float] = None) -> datetime:
    """Current time, optionally pinned to a fixed UTC offset"""
    if offset_hours is None:
        return datetime.now()
    return datetime.now(timezone.utc) + timedelta(hours=offset_hours)


class ClockTicker:
    """
    Real-time auto tick source.

    `suspended` is driven by the gesture controller for the length of a
    drag. `manual` is the freeze flag owned by the host: once set, ticks
    never overwrite the edited time until it is cleared again.
    """

    def __init__(self, clock_time: ClockTime,
                 now_fn: Callable[[], datetime] = local_now,
                 on_change: Optional[Callable[[ClockTime], None]] = None):
        self.clock_time = clock_time
        self.now_fn = now_fn
        self.on_change = on_change
        self.suspended = False
        self.manual = False

    @property
    def running(self) -> bool:
        return not self.suspended and not self.manual

    def suspend(self):
        self.suspended = True

    def resume(self):
        self.suspended = False

    def freeze(self):
        if not self.manual:
            logger.info("Clock frozen (manual mode)")
        self.manual = True

    def unfreeze(self):
        if self.manual:
            logger.info("Clock back to real time")
        self.manual = False

    def tick(self) -> bool:
        """Copy the real time into the clock. Returns True if it changed."""
        if not self.running:
            return False
        now = self.now_fn()
        before = (self.clock_time.hour, self.clock_time.minute, self.clock_time.second)
        self.clock_time.set(now.hour, now.minute, now.second)
        changed = before != (self.clock_time.hour, self.clock_time.minute, self.clock_time.second)
        if changed and self.on_change:
            self.on_change(self.clock_time)
        return changed
