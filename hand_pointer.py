"""
hand_pointer.py - WebRTC processors for the kiosk

HandPointerProcessor tracks one hand with MediaPipe Hands, turns pinches
into pointer events for the kiosk and draws the draggable clock over the
mirrored camera frame. CallAudioProcessor replaces the microphone track
with whatever the call flow is currently playing.

Both run on streamlit-webrtc worker threads and only talk to the kiosk
through the KioskInbox and the MediaManager lock.
"""

import logging
import time

import av
import cv2
from streamlit_webrtc import AudioProcessorBase, VideoProcessorBase

from audio_manager import MediaManager
from clock_face import draw_clock, draw_cursor, layout_geometry
from kiosk_config import KioskConfig
from kiosk_state import KioskInbox
from pointer_input import PinchPointer

# MediaPipe imports - handle different versions
import mediapipe as mp

try:
    mp_hands = mp.solutions.hands
    mp_drawing = mp.solutions.drawing_utils
except AttributeError:
    try:
        from mediapipe.python.solutions import hands as mp_hands
        from mediapipe.python.solutions import drawing_utils as mp_drawing
    except ImportError:
        raise ImportError("Could not import mediapipe.solutions. Please verify installation.")

logger = logging.getLogger(__name__)


class HandPointerProcessor(VideoProcessorBase):
    """Camera frame in, mirrored frame with clock overlay out"""

    def __init__(self, inbox: KioskInbox, config: KioskConfig):
        super().__init__()
        self.inbox = inbox
        self.config = config
        raw = config.raw
        self.hands = mp_hands.Hands(
            max_num_hands=raw.get("MEDIAPIPE_MAX_HANDS", 1),
            min_detection_confidence=raw.get("MEDIAPIPE_DETECTION_CONF", 0.7),
            min_tracking_confidence=raw.get("MEDIAPIPE_TRACKING_CONF", 0.6),
            model_complexity=0,
        )
        self.pointer = PinchPointer(
            pinch_on=config.pinch_on,
            pinch_off=config.pinch_off,
            deadzone_px=config.pointer_deadzone_px,
        )
        self.frame_count = 0

    def _first_hand(self, results):
        if not results.multi_hand_landmarks:
            return None
        return results.multi_hand_landmarks[0]

    def recv(self, frame):
        try:
            img = frame.to_ndarray(format="bgr24")
            # Mirror so moving the hand right moves the pointer right
            img = cv2.flip(img, 1)
            h, w = img.shape[:2]
            self.frame_count += 1

            # Preview for the call screen, before any overlay is drawn
            self.inbox.publish_frame(img.copy(), time.monotonic())

            geometry = layout_geometry(w, h, self.config.clock_radius_frac)
            self.inbox.set_geometry(geometry)

            results = self.hands.process(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
            hand = self._first_hand(results)
            if hand is not None:
                self._draw_hand(img, hand)

            for event in self.pointer.update(hand, w, h):
                self.inbox.post_pointer(event)

            display_time, show_clock, active_hand = self.inbox.display()
            if show_clock and display_time is not None:
                img = draw_clock(img, display_time, geometry, active_hand=active_hand, alpha=0.85)
            draw_cursor(img, self.pointer.position, self.pointer.pressed)

            new_frame = av.VideoFrame.from_ndarray(img, format="bgr24")
            new_frame.pts = frame.pts
            new_frame.time_base = frame.time_base
            return new_frame

        except Exception as e:
            logger.error(f"Error processing frame: {e}", exc_info=True)
            # Return original frame on error to prevent freeze
            return frame

    def _draw_hand(self, img, hand_landmarks):
        mp_drawing.draw_landmarks(img, hand_landmarks, mp_hands.HAND_CONNECTIONS)

    def on_ended(self):
        # A stream that stops mid-pinch must not leave a drag open
        for event in self.pointer.lost():
            self.inbox.post_pointer(event)
        self.hands.close()


class CallAudioProcessor(AudioProcessorBase):
    """Sends the call-flow audio to the browser instead of the mic"""

    def __init__(self, media: MediaManager):
        self.media = media

    def recv(self, frame):
        try:
            out = self.media.get_next_frame()
            out.pts = frame.pts
            out.time_base = frame.time_base
            return out
        except Exception as e:
            logger.error(f"Error producing audio frame: {e}", exc_info=True)
            return frame
