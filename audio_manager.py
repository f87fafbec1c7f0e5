"""
audio_manager.py - Audio/media collaborator for the call flow

Hands out opaque handles for the ringtone, the call audio, the recording
playback and the camera preview. Audio is decoded with pydub, converted to
48kHz stereo, and served to the WebRTC audio track as PyAV frames.
"""

import itertools
import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import av
import numpy as np
from pydub import AudioSegment
from pydub.generators import Sine

from kiosk_config import KioskConfig
from resource_lifecycle import ResourceAcquisitionError, ResourceKind

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
CHANNELS = 2
FRAME_MS = 20
# Read cursor is snapped back to the playback clock past this drift
MAX_DRIFT_MS = 250
# Length of the placeholder played when an audio asset is missing
FALLBACK_MS = 10000


class MediaKind(Enum):
    RINGTONE = "ringtone"
    CALL_AUDIO = "call_audio"
    RECORDING = "recording"
    CAMERA = "camera"

    @property
    def resource_kind(self) -> ResourceKind:
        return ResourceKind.CAMERA if self is MediaKind.CAMERA else ResourceKind.AUDIO


def _normalize(segment: AudioSegment) -> AudioSegment:
    return segment.set_frame_rate(SAMPLE_RATE).set_channels(CHANNELS).set_sample_width(2)


class AudioHandle:
    """
    One playing (or paused) audio asset.

    Position follows the wall clock while playing, so playback time and the
    "ended" signal don't depend on whether a WebRTC peer is pulling frames.
    """

    def __init__(self, handle_id: int, kind: MediaKind, segment: AudioSegment,
                 volume: float, loop: bool, clock: Callable[[], float] = time.monotonic):
        self.handle_id = handle_id
        self.kind = kind
        self.segment = segment
        self.volume = volume
        self.loop = loop
        self.clock = clock
        self.lock = threading.Lock()
        self.playing = False
        self.released = False
        self.ended_reported = False
        self._base_ms = 0.0
        self._started_at: Optional[float] = None
        self._read_ms = 0.0

    def __repr__(self):
        return f"AudioHandle(#{self.handle_id}, {self.kind.value})"

    @property
    def length_ms(self) -> float:
        return float(len(self.segment))

    @property
    def length_sec(self) -> float:
        return self.length_ms / 1000.0

    def _position_ms(self) -> float:
        pos = self._base_ms
        if self.playing and self._started_at is not None:
            pos += (self.clock() - self._started_at) * 1000.0
        if self.length_ms <= 0:
            return 0.0
        if self.loop:
            return pos % self.length_ms
        return min(pos, self.length_ms)

    @property
    def position_sec(self) -> float:
        with self.lock:
            return self._position_ms() / 1000.0

    @property
    def finished(self) -> bool:
        with self.lock:
            return not self.loop and self._position_ms() >= self.length_ms

    def play(self):
        with self.lock:
            if self.playing or self.released:
                return
            if not self.loop and self._position_ms() >= self.length_ms:
                # Replaying a finished asset starts over
                self._base_ms = 0.0
                self.ended_reported = False
            self._started_at = self.clock()
            self._read_ms = self._base_ms
            self.playing = True

    def pause(self):
        with self.lock:
            if not self.playing:
                return
            self._base_ms = self._position_ms()
            self._started_at = None
            self.playing = False

    def seek(self, seconds: float):
        with self.lock:
            target = max(0.0, min(self.length_ms, seconds * 1000.0))
            self._base_ms = target
            self._read_ms = target
            if self.playing:
                self._started_at = self.clock()
            if target < self.length_ms:
                self.ended_reported = False

    def stop(self):
        with self.lock:
            self.playing = False
            self.released = True
            self._started_at = None

    def read_chunk(self, duration_ms: int) -> Optional[AudioSegment]:
        """Next chunk for the audio track, or None when silent"""
        with self.lock:
            if not self.playing or self.released:
                return None
            clock_ms = self._position_ms()
            if abs(self._read_ms - clock_ms) > MAX_DRIFT_MS:
                self._read_ms = clock_ms
            start = self._read_ms
            end = start + duration_ms
            if end > self.length_ms:
                if not self.loop:
                    chunk = self.segment[start:self.length_ms]
                    self._read_ms = self.length_ms
                    return chunk if len(chunk) else None
                # Wrap around for looping assets
                chunk = self.segment[start:] + self.segment[:end - self.length_ms]
                self._read_ms = end - self.length_ms
                return chunk
            self._read_ms = end
            return self.segment[start:end]


class CameraHandle:
    """Local preview backed by the frames the WebRTC processor publishes"""

    def __init__(self, handle_id: int, frame_source: Callable[[], Tuple[Optional[np.ndarray], float]]):
        self.handle_id = handle_id
        self.kind = MediaKind.CAMERA
        self.frame_source = frame_source
        self.released = False

    def __repr__(self):
        return f"CameraHandle(#{self.handle_id})"

    def latest_frame(self) -> Optional[np.ndarray]:
        if self.released:
            return None
        frame, _ = self.frame_source()
        return frame

    def stop(self):
        self.released = True


MediaHandle = Union[AudioHandle, CameraHandle]


class MediaManager:
    """
    acquire(kind) -> handle, release(handle), ended listeners.

    Audio handles are created playing, except the recording which loads
    paused until the viewer presses play. Ended events are collected by
    poll() on the script thread, never dispatched from the audio thread.
    """

    def __init__(self, config: KioskConfig,
                 camera_source: Optional[Callable[[], Tuple[Optional[np.ndarray], float]]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.camera_source = camera_source
        self.clock = clock
        self.lock = threading.Lock()
        self._ids = itertools.count(1)
        self._live: Dict[int, MediaHandle] = {}
        self._ended_listeners: List[Callable[[MediaHandle], None]] = []
        self._audio_cache: Dict[str, AudioSegment] = {}
        self.samples_per_frame = int(SAMPLE_RATE * (FRAME_MS / 1000))

    # =========================================================================
    # COLLABORATOR INTERFACE
    # =========================================================================

    def add_ended_listener(self, listener: Callable[[MediaHandle], None]):
        self._ended_listeners.append(listener)

    def remove_ended_listener(self, listener: Callable[[MediaHandle], None]):
        if listener in self._ended_listeners:
            self._ended_listeners.remove(listener)

    def acquire(self, kind: MediaKind) -> MediaHandle:
        """
        Raises:
            ResourceAcquisitionError: camera unavailable or asset not loadable
        """
        if kind is MediaKind.CAMERA:
            handle = self._open_camera()
        else:
            handle = self._open_audio(kind)
        with self.lock:
            self._live[handle.handle_id] = handle
        logger.info(f"Acquired {handle!r}")
        return handle

    def release(self, handle: MediaHandle):
        handle.stop()
        with self.lock:
            self._live.pop(handle.handle_id, None)
        logger.info(f"Released {handle!r}")

    @property
    def live_handles(self) -> List[MediaHandle]:
        with self.lock:
            return list(self._live.values())

    def poll(self) -> List[MediaHandle]:
        """Report audio handles that reached their end since the last poll"""
        ended = []
        for handle in self.live_handles:
            if isinstance(handle, AudioHandle) and not handle.ended_reported and handle.finished:
                handle.ended_reported = True
                ended.append(handle)
        for handle in ended:
            logger.info(f"{handle!r} finished playing")
            for listener in list(self._ended_listeners):
                listener(handle)
        return ended

    # =========================================================================
    # ASSETS
    # =========================================================================

    def _open_audio(self, kind: MediaKind) -> AudioHandle:
        if kind is MediaKind.RINGTONE:
            segment = self._ringtone()
            volume, loop = self.config.ringtone_volume, True
        elif kind is MediaKind.CALL_AUDIO:
            segment = self._load(self.config.call_audio_path)
            volume, loop = self.config.call_audio_volume, False
        else:
            segment = self._load(self.config.recording_audio_path)
            volume, loop = self.config.recording_volume, False

        handle = AudioHandle(next(self._ids), kind, segment, volume, loop, clock=self.clock)
        if kind is not MediaKind.RECORDING:
            handle.play()
        return handle

    def _load(self, path: Path) -> AudioSegment:
        path_str = str(path)
        if path_str in self._audio_cache:
            return self._audio_cache[path_str]
        if not Path(path).exists():
            logger.warning(f"Audio asset missing: {path}")
            logger.info("Using fallback synthesized beep.")
            return self._fallback_beep()
        try:
            logger.info(f"Loading: {Path(path).name}")
            audio = _normalize(AudioSegment.from_file(path_str))
        except Exception as e:
            logger.error(f"Failed to load {Path(path).name}: {e}")
            raise ResourceAcquisitionError(ResourceKind.AUDIO, "Could not play audio") from e
        self._audio_cache[path_str] = audio
        return audio

    def _ringtone(self) -> AudioSegment:
        """Synthesized ring: 440+480Hz for 2s, then 4s of silence"""
        key = "<ringtone>"
        if key not in self._audio_cache:
            tone = Sine(440).to_audio_segment(duration=2000, volume=-12.0)
            tone = tone.overlay(Sine(480).to_audio_segment(duration=2000, volume=-12.0))
            ring = tone + AudioSegment.silent(duration=4000, frame_rate=tone.frame_rate)
            self._audio_cache[key] = _normalize(ring)
        return self._audio_cache[key]

    def _fallback_beep(self) -> AudioSegment:
        """Placeholder for a missing asset: 1000Hz beep every other second"""
        key = "<fallback>"
        if key not in self._audio_cache:
            beep = Sine(1000).to_audio_segment(duration=1000, volume=-18.0)
            gap = AudioSegment.silent(duration=1000, frame_rate=beep.frame_rate)
            self._audio_cache[key] = _normalize((beep + gap) * (FALLBACK_MS // 2000))
        return self._audio_cache[key]

    def _open_camera(self) -> CameraHandle:
        if self.camera_source is None:
            raise ResourceAcquisitionError(ResourceKind.CAMERA, "Could not access camera")
        frame, seen_at = self.camera_source()
        if frame is None or self.clock() - seen_at > self.config.camera_stale_sec:
            logger.warning("No recent camera frames, camera treated as unavailable")
            raise ResourceAcquisitionError(ResourceKind.CAMERA, "Could not access camera")
        return CameraHandle(next(self._ids), self.camera_source)

    # =========================================================================
    # AUDIO TRACK
    # =========================================================================

    def _current_audio(self) -> Optional[AudioHandle]:
        for handle in reversed(self.live_handles):
            if isinstance(handle, AudioHandle) and handle.playing:
                return handle
        return None

    def get_next_frame(self) -> av.AudioFrame:
        """
        Produce the next 20ms audio frame.
        Called by the WebRTC audio processor callback.
        """
        handle = self._current_audio()
        chunk = handle.read_chunk(FRAME_MS) if handle else None
        if chunk is None:
            return self._create_silence()

        samples = np.frombuffer(chunk.raw_data, dtype=np.int16)
        samples = samples.astype(np.float32) * handle.volume
        samples = np.clip(samples, -32768, 32767).astype(np.int16)

        # Pad short tail chunks so every frame has the same size
        total = self.samples_per_frame * CHANNELS
        if samples.size < total:
            samples = np.pad(samples, (0, total - samples.size))
        else:
            samples = samples[:total]

        frame = av.AudioFrame.from_ndarray(samples.reshape(1, -1), format='s16', layout='stereo')
        frame.sample_rate = SAMPLE_RATE
        return frame

    def _create_silence(self) -> av.AudioFrame:
        data = np.zeros((1, self.samples_per_frame * CHANNELS), dtype=np.int16)
        frame = av.AudioFrame.from_ndarray(data, format='s16', layout='stereo')
        frame.sample_rate = SAMPLE_RATE
        return frame
