"""
angle_math.py - Pointer geometry for the draggable analog clock

Pure functions that map a pointer position on the clock face to a hand,
an angle (0 degrees at 12 o'clock, clockwise) and a clock value, and back.
Every function is total: bad geometry degrades to "no hand", never raises.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# Hit radii as a fraction of the clock radius
HOUR_HIT_FRACTION = 0.45
MINUTE_HIT_FRACTION = 0.8

DEGREES_PER_HOUR = 30.0
DEGREES_PER_MINUTE = 6.0


class Hand(Enum):
    """Draggable clock hands"""
    HOUR = "hour"
    MINUTE = "minute"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class ClockGeometry:
    """Where the clock widget sits on screen"""
    center: Point
    radius: float

    @classmethod
    def unavailable(cls) -> "ClockGeometry":
        """Widget not laid out yet: zero radius selects no hand"""
        return cls(Point(0.0, 0.0), 0.0)

    @property
    def is_available(self) -> bool:
        return math.isfinite(self.radius) and self.radius > 0


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def distance_from_center(p: Point, center: Point) -> float:
    return math.hypot(p.x - center.x, p.y - center.y)


def hand_from_distance(distance: float, radius: float) -> Optional[Hand]:
    """
    Pick the hand under the pointer.

    Hour inside 0.45r, minute in [0.45r, 0.8r), nothing beyond that.
    """
    if not math.isfinite(radius) or radius <= 0 or not math.isfinite(distance):
        return None
    if distance < radius * HOUR_HIT_FRACTION:
        return Hand.HOUR
    if distance < radius * MINUTE_HIT_FRACTION:
        return Hand.MINUTE
    return None


def hand_at(p: Point, geometry: ClockGeometry) -> Optional[Hand]:
    return hand_from_distance(distance_from_center(p, geometry.center), geometry.radius)


def angle_from_position(p: Point, center: Point) -> float:
    """Angle of the pointer, rotated so 12 o'clock is 0, in [0, 360)"""
    dx = _finite(p.x - center.x)
    dy = _finite(p.y - center.y)
    # atan2(0, 0) is 0.0, so a pointer exactly on the center yields 90, not NaN
    degrees = math.degrees(math.atan2(dy, dx)) + 90.0
    angle = (degrees + 360.0) % 360.0
    # float modulo can round up to exactly 360.0 for tiny negative inputs
    return 0.0 if angle >= 360.0 else angle


def hour_from_angle(angle: float) -> float:
    """Continuous hour-of-12 value in [0, 12)"""
    return (_finite(angle) % 360.0) / DEGREES_PER_HOUR


def minute_from_angle(angle: float) -> float:
    """Continuous minute value in [0, 60)"""
    return ((_finite(angle) % 360.0) / DEGREES_PER_MINUTE) % 60.0


def hour_hand_angle(hour: int, minute: int) -> float:
    """Rendering angle of the hour hand; moves continuously with minutes"""
    return (hour % 12) * DEGREES_PER_HOUR + minute * 0.5


def minute_hand_angle(minute: int, second: int = 0) -> float:
    return minute * DEGREES_PER_MINUTE + second * 0.1


def second_hand_angle(second: int) -> float:
    return second * DEGREES_PER_MINUTE


def hand_tip(center: Point, angle: float, length: float) -> Tuple[float, float]:
    """Screen position of a hand tip (screen y grows downwards)"""
    rad = math.radians(angle - 90.0)
    return center.x + math.cos(rad) * length, center.y + math.sin(rad) * length
