"""
kiosk_config.py - Configuration for the clock call kiosk

config.json next to this file is the source of truth; built-in defaults are
used when it is missing. The result is turned into one immutable
KioskConfig that is threaded explicitly into the kiosk and call flow.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from clock_trigger import TimeTrigger

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent

DEFAULTS = {
    "TIMEZONE_OFFSET_HOURS": None,
    "FREEZE_ON_DRAG": True,
    "TICK_INTERVAL_SEC": 1.0,
    "CALL_AUDIO_DELAY_SEC": 1.5,
    "CALL_AUDIO_VOLUME": 0.3,
    "RINGTONE_VOLUME": 0.5,
    "RECORDING_VOLUME": 0.7,
    "CALL_AUDIO_PATH": "assets/sounds/audio.mp3",
    "RECORDING_AUDIO_PATH": "assets/sounds/audio.mp3",
    "VIDEO_ENABLED_DEFAULT": True,
    "CAMERA_STALE_SEC": 3.0,
    "CLOCK_RADIUS_FRAC": 0.4,
    "PINCH_ON": 0.35,
    "PINCH_OFF": 0.5,
    "POINTER_DEADZONE_PX": 2,
    "MEDIAPIPE_MAX_HANDS": 1,
    "MEDIAPIPE_DETECTION_CONF": 0.7,
    "MEDIAPIPE_TRACKING_CONF": 0.6,
    "LOG_DIR": "logs",
    "TRIGGERS": [
        {"id": "start_call", "hour": 2, "minute": 0},
        {"id": "finish", "hour": 8, "minute": 0},
    ],
    "PARTICIPANT": {
        "id": 1,
        "name": "John",
        "avatar": "SW",
        "mic_on": True,
        "video_on": True,
        "image": "assets/john.png",
    },
}


def load_config(path: Optional[Path] = None) -> dict:
    """Load configuration from config.json, filling gaps from DEFAULTS"""
    config_path = path or BASE_DIR / "config.json"
    try:
        with open(config_path, 'r') as f:
            loaded = json.load(f)
    except FileNotFoundError:
        logger.warning(f"{config_path.name} not found, using defaults")
        return dict(DEFAULTS)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid {config_path.name} ({e}), using defaults")
        return dict(DEFAULTS)
    return {**DEFAULTS, **loaded}


@dataclass(frozen=True)
class Participant:
    """The caller shown on every call screen; fixed for the session"""
    id: int
    name: str
    avatar: str
    mic_on: bool = True
    video_on: bool = True
    image: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "Participant":
        return cls(
            id=int(raw.get("id", 1)),
            name=str(raw.get("name", "")),
            avatar=str(raw.get("avatar", "")),
            mic_on=bool(raw.get("mic_on", True)),
            video_on=bool(raw.get("video_on", True)),
            image=str(raw.get("image", "")),
        )


@dataclass(frozen=True)
class KioskConfig:
    participant: Participant
    triggers: Tuple[TimeTrigger, ...]
    call_audio_path: Path
    recording_audio_path: Path
    timezone_offset_hours: Optional[float] = None
    freeze_on_drag: bool = True
    tick_interval_sec: float = 1.0
    call_audio_delay_sec: float = 1.5
    call_audio_volume: float = 0.3
    ringtone_volume: float = 0.5
    recording_volume: float = 0.7
    video_enabled_default: bool = True
    camera_stale_sec: float = 3.0
    clock_radius_frac: float = 0.4
    pinch_on: float = 0.35
    pinch_off: float = 0.5
    pointer_deadzone_px: float = 2.0
    log_dir: Path = field(default_factory=lambda: BASE_DIR / "logs")
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, raw: dict, base_dir: Path = BASE_DIR) -> "KioskConfig":
        merged = {**DEFAULTS, **raw}

        def resolve(value) -> Path:
            p = Path(value)
            return p if p.is_absolute() else base_dir / p

        triggers = tuple(
            TimeTrigger(str(t["id"]), int(t["hour"]), int(t.get("minute", 0)))
            for t in merged["TRIGGERS"]
        )
        offset = merged.get("TIMEZONE_OFFSET_HOURS")
        return cls(
            participant=Participant.from_dict(merged["PARTICIPANT"]),
            triggers=triggers,
            call_audio_path=resolve(merged["CALL_AUDIO_PATH"]),
            recording_audio_path=resolve(merged["RECORDING_AUDIO_PATH"]),
            timezone_offset_hours=float(offset) if offset is not None else None,
            freeze_on_drag=bool(merged["FREEZE_ON_DRAG"]),
            tick_interval_sec=float(merged["TICK_INTERVAL_SEC"]),
            call_audio_delay_sec=float(merged["CALL_AUDIO_DELAY_SEC"]),
            call_audio_volume=float(merged["CALL_AUDIO_VOLUME"]),
            ringtone_volume=float(merged["RINGTONE_VOLUME"]),
            recording_volume=float(merged["RECORDING_VOLUME"]),
            video_enabled_default=bool(merged["VIDEO_ENABLED_DEFAULT"]),
            camera_stale_sec=float(merged["CAMERA_STALE_SEC"]),
            clock_radius_frac=float(merged["CLOCK_RADIUS_FRAC"]),
            pinch_on=float(merged["PINCH_ON"]),
            pinch_off=float(merged["PINCH_OFF"]),
            pointer_deadzone_px=float(merged["POINTER_DEADZONE_PX"]),
            log_dir=resolve(merged["LOG_DIR"]),
            raw=merged,
        )


def load_kiosk_config(path: Optional[Path] = None) -> KioskConfig:
    return KioskConfig.from_dict(load_config(path))
