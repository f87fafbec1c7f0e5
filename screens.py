"""
screens.py - Pure mapping from call-flow snapshot to what the kiosk shows

render() never touches the machine; the host draws the descriptor and
routes the chosen action back as a call-flow event.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from call_flow import CallSnapshot, CallState
from resource_lifecycle import ResourceKind


class Screen(Enum):
    CLOCK = "clock"
    RINGING = "ringing"
    ACTIVE = "active"
    ENDED = "ended"
    RECORDING = "recording"
    SUCCESS = "success"


class ScreenAction(Enum):
    ANSWER = "Answer Call"
    DECLINE = "Decline Call"
    TOGGLE_VIDEO = "Toggle Video"
    END_CALL = "End Call"
    VIEW_RECORDING = "View Call Recording"
    START_NEW_CALL = "Start New Call"
    TOGGLE_PLAYBACK = "Play / Pause"
    CLOSE_RECORDING = "Close"
    RETRY = "Retry"


@dataclass(frozen=True)
class ScreenDescriptor:
    screen: Screen
    title: str
    subtitle: str = ""
    actions: Tuple[ScreenAction, ...] = ()
    duration_text: Optional[str] = None
    error: Optional[str] = None
    show_clock: bool = False
    show_camera: bool = False


def format_duration(seconds: float) -> str:
    """MM:SS, minutes not wrapped at the hour"""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


_STATE_SCREENS = {
    CallState.RINGING: Screen.RINGING,
    CallState.ACTIVE: Screen.ACTIVE,
    CallState.ENDED: Screen.ENDED,
    CallState.RECORDING: Screen.RECORDING,
    CallState.SUCCESS: Screen.SUCCESS,
}


def render(snapshot: CallSnapshot) -> ScreenDescriptor:
    descriptor = _describe(snapshot)
    if descriptor.error is not None:
        # A failed acquisition can be retried from any screen that shows it
        descriptor = replace(descriptor, actions=descriptor.actions + (ScreenAction.RETRY,))
    return descriptor


def _describe(snapshot: CallSnapshot) -> ScreenDescriptor:
    name = snapshot.participant.name

    if not snapshot.started:
        return ScreenDescriptor(
            screen=Screen.CLOCK,
            title="Set the clock",
            subtitle="Drag the hands to the right time",
            show_clock=True,
        )

    screen = _STATE_SCREENS[snapshot.state]

    if screen is Screen.RINGING:
        return ScreenDescriptor(
            screen=screen,
            title=name,
            subtitle="Incoming video call...",
            actions=(ScreenAction.ANSWER, ScreenAction.DECLINE),
            error=snapshot.error,
        )

    if screen is Screen.ACTIVE:
        return ScreenDescriptor(
            screen=screen,
            title=name,
            subtitle="Video call",
            actions=(ScreenAction.TOGGLE_VIDEO, ScreenAction.END_CALL),
            duration_text=format_duration(snapshot.call_duration),
            error=snapshot.error,
            show_camera=(snapshot.video_enabled
                         and snapshot.error_kind is not ResourceKind.CAMERA),
        )

    if screen is Screen.ENDED:
        return ScreenDescriptor(
            screen=screen,
            title="Call Ended",
            subtitle=f"Call with {name}",
            actions=(ScreenAction.VIEW_RECORDING, ScreenAction.START_NEW_CALL),
            duration_text=format_duration(snapshot.call_duration),
            error=snapshot.error,
        )

    if screen is Screen.RECORDING:
        return ScreenDescriptor(
            screen=screen,
            title="Call Recording",
            subtitle=f"Recorded call with {name}",
            actions=(ScreenAction.TOGGLE_PLAYBACK, ScreenAction.CLOSE_RECORDING),
            duration_text=(f"{format_duration(snapshot.playback_position)}"
                           f" / {format_duration(snapshot.playback_length)}"),
            error=snapshot.error,
            show_clock=True,
        )

    return ScreenDescriptor(
        screen=Screen.SUCCESS,
        title="Success!",
        subtitle="You have unlocked part of your friend's memory!",
    )
