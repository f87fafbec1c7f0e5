"""
call_flow.py - State machine for the simulated incoming call

RINGING -> ACTIVE -> ENDED -> RECORDING -> SUCCESS, with decline, close
and "start new call" detours. Each state visit owns a ResourceScope: the
ringtone, call timer, call audio, camera and recording playback live
there and are released before the next state acquires anything.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from audio_manager import MediaKind
from kiosk_config import KioskConfig, Participant
from resource_lifecycle import (
    IntervalTimer, ResourceAcquisitionError, ResourceKind, ResourceScope,
)

logger = logging.getLogger(__name__)


class CallState(Enum):
    RINGING = "ringing"
    ACTIVE = "active"
    RECORDING = "recording"
    ENDED = "ended"
    SUCCESS = "success"


class CallEvent(Enum):
    ANSWER = "answer"
    DECLINE = "decline"
    END = "end"
    VIEW_RECORDING = "view_recording"
    START_NEW_CALL = "start_new_call"
    PLAYBACK_END = "playback_end"
    CLOSE = "close"


TRANSITIONS: Dict[Tuple[CallState, CallEvent], CallState] = {
    (CallState.RINGING, CallEvent.ANSWER): CallState.ACTIVE,
    (CallState.RINGING, CallEvent.DECLINE): CallState.ENDED,
    (CallState.ACTIVE, CallEvent.END): CallState.ENDED,
    (CallState.ENDED, CallEvent.VIEW_RECORDING): CallState.RECORDING,
    (CallState.ENDED, CallEvent.START_NEW_CALL): CallState.RINGING,
    (CallState.RECORDING, CallEvent.PLAYBACK_END): CallState.SUCCESS,
    (CallState.RECORDING, CallEvent.CLOSE): CallState.ENDED,
}


@dataclass(frozen=True)
class CallLogEntry:
    started_at: datetime
    duration: int


@dataclass(frozen=True)
class CallSnapshot:
    """Everything a screen needs, detached from the live machine"""
    state: CallState
    started: bool
    call_duration: int
    participant: Participant
    error: Optional[str] = None
    error_kind: Optional[ResourceKind] = None
    video_enabled: bool = True
    playback_playing: bool = False
    playback_position: float = 0.0
    playback_length: float = 0.0
    call_count: int = 0


TransitionListener = Callable[[Optional[CallState], CallState, Optional[CallEvent]], None]


class CallFlowMachine:
    """
    Call narrative FSM.

    The machine is created in RINGING but stays parked until start() (the
    first clock trigger); only then does the ringtone start. Media failures
    never move the machine: they set `error` and the state stays usable.
    """

    def __init__(self, config: KioskConfig, media,
                 participant: Optional[Participant] = None,
                 clock: Callable[[], float] = time.monotonic,
                 now_fn: Callable[[], datetime] = datetime.now):
        self.config = config
        self.media = media
        self.participant = participant or config.participant
        self.clock = clock
        self.now_fn = now_fn

        self.state = CallState.RINGING
        self.started = False
        self.disposed = False
        self.call_duration = 0
        self.error: Optional[str] = None
        self.error_kind: Optional[ResourceKind] = None
        self.video_enabled = config.video_enabled_default
        self.call_log: List[CallLogEntry] = []

        self._scope = ResourceScope(self.state.value)
        self._listeners: List[TransitionListener] = []
        self._call_started_at: Optional[datetime] = None
        self._call_audio_due: Optional[float] = None

        self.media.add_ended_listener(self._on_media_ended)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def add_listener(self, listener: TransitionListener):
        self._listeners.append(listener)

    @property
    def is_terminal(self) -> bool:
        return self.state is CallState.SUCCESS

    def held_kinds(self) -> List[ResourceKind]:
        return self._scope.kinds

    def start(self) -> bool:
        """Bring the parked machine to life: the phone starts ringing"""
        if self.started or self.disposed:
            return False
        self.started = True
        logger.info("Incoming call")
        self._enter(self.state)
        self._notify(None, self.state, None)
        return True

    def can_handle(self, event: CallEvent) -> bool:
        return self.started and not self.disposed and (self.state, event) in TRANSITIONS

    def handle(self, event: CallEvent) -> bool:
        """Apply an event. Returns False (and changes nothing) if not allowed."""
        if not self.can_handle(event):
            logger.warning(f"Ignoring {event.value} in {self.state.value}"
                           f"{'' if self.started else ' (call not started)'}")
            return False
        self._transition(event, TRANSITIONS[(self.state, event)])
        return True

    def answer(self) -> bool:
        return self.handle(CallEvent.ANSWER)

    def decline(self) -> bool:
        return self.handle(CallEvent.DECLINE)

    def end(self) -> bool:
        return self.handle(CallEvent.END)

    def view_recording(self) -> bool:
        return self.handle(CallEvent.VIEW_RECORDING)

    def start_new_call(self) -> bool:
        return self.handle(CallEvent.START_NEW_CALL)

    def playback_end(self) -> bool:
        return self.handle(CallEvent.PLAYBACK_END)

    def close(self) -> bool:
        return self.handle(CallEvent.CLOSE)

    def tick(self, now: Optional[float] = None):
        """Advance timers; called from the host's event loop"""
        if not self.started or self.disposed:
            return
        if now is None:
            now = self.clock()

        timer = self._scope.get(ResourceKind.TIMER)
        if timer is not None:
            timer.poll(now)

        if (self.state is CallState.ACTIVE and self._call_audio_due is not None
                and now >= self._call_audio_due):
            self._call_audio_due = None
            self._acquire_media(MediaKind.CALL_AUDIO)

    def toggle_video(self) -> bool:
        """Camera on/off during the call; turning it back on retries a failed camera"""
        if self.state is not CallState.ACTIVE or not self.started or self.disposed:
            return False
        self.video_enabled = not self.video_enabled
        if self.video_enabled:
            self._acquire_media(MediaKind.CAMERA)
        else:
            self._scope.release(ResourceKind.CAMERA)
            if self.error_kind is ResourceKind.CAMERA:
                self._clear_error()
        logger.info(f"Video {'on' if self.video_enabled else 'off'}")
        return True

    def toggle_mic(self) -> bool:
        # The simulated call has no outgoing audio
        logger.info("Mic toggle ignored")
        return False

    def retry_media(self) -> bool:
        """Re-run the current state's acquisitions; held resources are kept"""
        if not self.started or self.disposed:
            return False
        self._clear_error()
        self._acquire_for_state(self.state, entering=False)
        return self.error is None

    def toggle_playback(self) -> bool:
        if self.state is not CallState.RECORDING or self.disposed:
            return False
        handle = self._scope.get(ResourceKind.AUDIO)
        if handle is None:
            handle = self._acquire_media(MediaKind.RECORDING)
            if handle is None:
                return False
        if handle.playing:
            handle.pause()
        else:
            handle.play()
        return True

    def seek(self, seconds: float) -> bool:
        if self.state is not CallState.RECORDING or self.disposed:
            return False
        handle = self._scope.get(ResourceKind.AUDIO)
        if handle is None:
            return False
        handle.seek(seconds)
        return True

    def dispose(self):
        """Forced teardown: release everything, stop reacting to media"""
        if self.disposed:
            return
        self._scope.close()
        self._call_audio_due = None
        self.media.remove_ended_listener(self._on_media_ended)
        self.disposed = True
        logger.info("Call flow disposed")

    def snapshot(self) -> CallSnapshot:
        playing, position, length = False, 0.0, 0.0
        if self.state is CallState.RECORDING:
            handle = self._scope.get(ResourceKind.AUDIO)
            if handle is not None:
                playing = handle.playing
                position = handle.position_sec
                length = handle.length_sec
        return CallSnapshot(
            state=self.state,
            started=self.started,
            call_duration=self.call_duration,
            participant=self.participant,
            error=self.error,
            error_kind=self.error_kind,
            video_enabled=self.video_enabled,
            playback_playing=playing,
            playback_position=position,
            playback_length=length,
            call_count=len(self.call_log),
        )

    def camera_handle(self):
        return self._scope.get(ResourceKind.CAMERA)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _transition(self, event: CallEvent, target: CallState):
        old = self.state
        if old is CallState.ACTIVE and self._call_started_at is not None:
            self.call_log.append(CallLogEntry(self._call_started_at, self.call_duration))
            self._call_started_at = None

        try:
            # Everything the old state held goes before the new state acquires
            self._scope.close()
            self._call_audio_due = None
        finally:
            self.state = target
            self._clear_error()
            self._scope = ResourceScope(target.value)

        if event is CallEvent.START_NEW_CALL:
            self.call_duration = 0

        logger.info(f"Call flow: {old.value} --{event.value}--> {target.value}")
        self._enter(target)
        self._notify(old, target, event)

    def _enter(self, state: CallState):
        if state is CallState.ACTIVE:
            # Entering ACTIVE always starts a fresh count, never a stale timer
            self.call_duration = 0
            self._call_started_at = self.now_fn()
        self._acquire_for_state(state, entering=True)

    def _acquire_for_state(self, state: CallState, entering: bool):
        if state is CallState.RINGING:
            self._acquire_media(MediaKind.RINGTONE)

        elif state is CallState.ACTIVE:
            self._scope.acquire(ResourceKind.TIMER, self._start_call_timer, lambda t: t.cancel())
            if self.video_enabled:
                self._acquire_media(MediaKind.CAMERA)
            if entering and self.config.call_audio_delay_sec > 0:
                self._call_audio_due = self.clock() + self.config.call_audio_delay_sec
            elif self._call_audio_due is None:
                self._acquire_media(MediaKind.CALL_AUDIO)

        elif state is CallState.RECORDING:
            self._acquire_media(MediaKind.RECORDING)

    def _start_call_timer(self) -> IntervalTimer:
        timer = IntervalTimer(1.0, self._on_call_second, clock=self.clock)
        timer.start()
        return timer

    def _on_call_second(self):
        if self.state is CallState.ACTIVE:
            self.call_duration += 1

    def _acquire_media(self, kind: MediaKind):
        try:
            return self._scope.acquire(kind.resource_kind,
                                       lambda: self.media.acquire(kind),
                                       self.media.release)
        except ResourceAcquisitionError as e:
            # Reported once on the current state; no automatic retry
            logger.warning(f"{kind.value} unavailable in {self.state.value}: {e.message}")
            self.error = e.message
            self.error_kind = e.kind
            return None

    def _clear_error(self):
        self.error = None
        self.error_kind = None

    def _on_media_ended(self, handle):
        if self.disposed or handle is not self._scope.get(ResourceKind.AUDIO):
            return
        if self.state is CallState.ACTIVE:
            self.handle(CallEvent.END)
        elif self.state is CallState.RECORDING:
            self.handle(CallEvent.PLAYBACK_END)

    def _notify(self, old: Optional[CallState], new: CallState, event: Optional[CallEvent]):
        for listener in list(self._listeners):
            try:
                listener(old, new, event)
            except Exception as e:
                logger.error(f"Transition listener failed: {e}", exc_info=True)
