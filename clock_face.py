"""
clock_face.py - Draw the analog clock with OpenCV

Used both for the standalone clock image on the page and for the overlay
on the mirrored camera frame that the hand pointer drags.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from angle_math import (
    HOUR_HIT_FRACTION, MINUTE_HIT_FRACTION, ClockGeometry, Hand, Point, hand_tip,
)
from clock_time import ClockTime

# BGR
FACE_COLOR = (19, 69, 139)
RIM_COLOR = (16, 24, 44)
MARK_COLOR = (16, 24, 44)
HAND_COLOR = (15, 15, 26)
ACTIVE_HAND_COLOR = (0, 215, 255)
SECOND_HAND_COLOR = (19, 69, 139)
CURSOR_COLOR = (0, 255, 0)


def layout_geometry(width: int, height: int, radius_frac: float) -> ClockGeometry:
    """Clock centered in a width x height area"""
    if width <= 0 or height <= 0:
        return ClockGeometry.unavailable()
    return ClockGeometry(Point(width / 2.0, height / 2.0), min(width, height) * radius_frac)


def _pt(xy: Tuple[float, float]) -> Tuple[int, int]:
    return int(round(xy[0])), int(round(xy[1]))


def draw_clock(frame: np.ndarray, clock_time: ClockTime, geometry: ClockGeometry,
               active_hand: Optional[Hand] = None, show_seconds: bool = False,
               alpha: float = 1.0) -> np.ndarray:
    """Draw the clock onto frame (in place when alpha is 1) and return it"""
    if not geometry.is_available:
        return frame

    canvas = frame.copy() if alpha < 1.0 else frame
    c = geometry.center
    r = geometry.radius
    center = _pt((c.x, c.y))

    cv2.circle(canvas, center, int(r), FACE_COLOR, -1, cv2.LINE_AA)
    cv2.circle(canvas, center, int(r), RIM_COLOR, max(2, int(r * 0.04)), cv2.LINE_AA)

    for i in range(60):
        angle = i * 6.0
        outer = hand_tip(c, angle, r * 0.95)
        inner = hand_tip(c, angle, r * (0.85 if i % 5 == 0 else 0.9))
        thickness = max(1, int(r * (0.02 if i % 5 == 0 else 0.008)))
        cv2.line(canvas, _pt(inner), _pt(outer), MARK_COLOR, thickness, cv2.LINE_AA)

    font_scale = max(0.4, r / 160.0)
    for hour in range(1, 13):
        x, y = hand_tip(c, hour * 30.0, r * 0.72)
        text = str(hour)
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 2)
        cv2.putText(canvas, text, (int(x - tw / 2), int(y + th / 2)),
                    cv2.FONT_HERSHEY_SIMPLEX, font_scale, MARK_COLOR, 2, cv2.LINE_AA)

    hour_color = ACTIVE_HAND_COLOR if active_hand == Hand.HOUR else HAND_COLOR
    minute_color = ACTIVE_HAND_COLOR if active_hand == Hand.MINUTE else HAND_COLOR

    # Hand lengths stay inside their own hit zones
    hour_end = hand_tip(c, clock_time.hour_angle, r * (HOUR_HIT_FRACTION - 0.05))
    minute_end = hand_tip(c, clock_time.minute_angle, r * (MINUTE_HIT_FRACTION - 0.05))
    cv2.line(canvas, center, _pt(hour_end), hour_color, max(3, int(r * 0.05)), cv2.LINE_AA)
    cv2.line(canvas, center, _pt(minute_end), minute_color, max(2, int(r * 0.03)), cv2.LINE_AA)

    if show_seconds:
        second_end = hand_tip(c, clock_time.second_angle, r * 0.88)
        cv2.line(canvas, center, _pt(second_end), SECOND_HAND_COLOR, 1, cv2.LINE_AA)

    cv2.circle(canvas, center, max(3, int(r * 0.05)), RIM_COLOR, -1, cv2.LINE_AA)

    if alpha < 1.0:
        return cv2.addWeighted(canvas, alpha, frame, 1.0 - alpha, 0)
    return canvas


def render_clock(clock_time: ClockTime, size: int = 480, show_seconds: bool = True,
                 active_hand: Optional[Hand] = None) -> np.ndarray:
    """Standalone RGB image of the clock"""
    img = np.full((size, size, 3), 30, dtype=np.uint8)
    geometry = layout_geometry(size, size, 0.46)
    img = draw_clock(img, clock_time, geometry, active_hand=active_hand, show_seconds=show_seconds)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def draw_cursor(frame: np.ndarray, position: Optional[Tuple[float, float]], pressed: bool):
    if position is None:
        return
    radius = 12 if pressed else 8
    cv2.circle(frame, _pt(position), radius, CURSOR_COLOR, -1 if pressed else 2, cv2.LINE_AA)
