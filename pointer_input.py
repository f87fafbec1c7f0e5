"""
pointer_input.py - Turn a tracked hand into pointer events

A thumb/index pinch is the "button": pinch closes -> DOWN, hand moves while
pinched -> MOVE, pinch opens -> UP, hand lost mid-pinch -> CANCEL. The
pointer sits halfway between the two fingertips, in frame pixels.
"""

import math
from typing import List, Optional, Tuple

from gesture_controller import PointerEvent, PointerKind

# MediaPipe hand landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_TIP = 8
MIDDLE_MCP = 9


def pinch_ratio(landmarks) -> float:
    """
    Thumb-index tip distance relative to hand size (wrist to middle MCP).

    Scale-free, so the same thresholds work near and far from the camera.
    """
    thumb, index = landmarks[THUMB_TIP], landmarks[INDEX_TIP]
    wrist, middle = landmarks[WRIST], landmarks[MIDDLE_MCP]
    hand_size = math.hypot(middle.x - wrist.x, middle.y - wrist.y)
    if hand_size <= 1e-6:
        return math.inf
    return math.hypot(thumb.x - index.x, thumb.y - index.y) / hand_size


def pinch_point(landmarks, width: int, height: int) -> Tuple[float, float]:
    thumb, index = landmarks[THUMB_TIP], landmarks[INDEX_TIP]
    return (thumb.x + index.x) / 2.0 * width, (thumb.y + index.y) / 2.0 * height


class PinchPointer:
    """Hysteresis between pinch_on (press) and pinch_off (release)"""

    def __init__(self, pinch_on: float = 0.35, pinch_off: float = 0.5, deadzone_px: float = 2.0):
        if pinch_off < pinch_on:
            raise ValueError("pinch_off must be >= pinch_on")
        self.pinch_on = pinch_on
        self.pinch_off = pinch_off
        self.deadzone_px = deadzone_px
        self.pressed = False
        self.position: Optional[Tuple[float, float]] = None
        self._last_sent: Optional[Tuple[float, float]] = None

    def update(self, hand_landmarks, width: int, height: int) -> List[PointerEvent]:
        if hand_landmarks is None:
            return self.lost()

        landmarks = hand_landmarks.landmark
        x, y = pinch_point(landmarks, width, height)
        self.position = (x, y)
        ratio = pinch_ratio(landmarks)

        if not self.pressed:
            if ratio <= self.pinch_on:
                self.pressed = True
                self._last_sent = (x, y)
                return [PointerEvent(PointerKind.DOWN, x, y)]
            return []

        if ratio >= self.pinch_off:
            self.pressed = False
            self._last_sent = None
            return [PointerEvent(PointerKind.UP, x, y)]

        lx, ly = self._last_sent
        if math.hypot(x - lx, y - ly) <= self.deadzone_px:
            return []
        self._last_sent = (x, y)
        return [PointerEvent(PointerKind.MOVE, x, y)]

    def lost(self) -> List[PointerEvent]:
        self.position = None
        if not self.pressed:
            return []
        self.pressed = False
        x, y = self._last_sent or (0.0, 0.0)
        self._last_sent = None
        return [PointerEvent(PointerKind.CANCEL, x, y)]
