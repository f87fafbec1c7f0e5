"""
resource_lifecycle.py - Scoped ownership of timers, audio and camera handles

Each call-flow state opens a ResourceScope on entry. Whatever the state
acquires goes into its scope, and closing the scope releases all of it,
whichever path left the state (transition, reset, disposal, exception).
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ResourceKind(Enum):
    TIMER = "timer"
    AUDIO = "audio"
    CAMERA = "camera"


class ResourceAcquisitionError(Exception):
    """Audio asset missing/undecodable or camera not available"""

    def __init__(self, kind: ResourceKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class IntervalTimer:
    """
    Repeating timer driven by the event loop instead of a thread.

    The host calls poll() on every tick; one callback runs per whole
    interval elapsed since start(), so a late poll catches up instead of
    dropping seconds.
    """

    def __init__(self, interval: float, callback: Callable[[], None],
                 clock: Callable[[], float] = time.monotonic):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self.clock = clock
        self.fire_count = 0
        self._next_due: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._next_due is not None

    def start(self):
        if self.running:
            return
        self._next_due = self.clock() + self.interval

    def cancel(self):
        self._next_due = None

    def poll(self, now: Optional[float] = None) -> int:
        """Run the callback for every elapsed interval; returns how many ran"""
        if now is None:
            now = self.clock()
        fired = 0
        # cancel() inside the callback stops the catch-up loop
        while self._next_due is not None and now >= self._next_due:
            self._next_due += self.interval
            self.fire_count += 1
            fired += 1
            self.callback()
        return fired


@dataclass
class _Held:
    handle: Any
    release: Callable[[Any], None]


class ResourceScope:
    """
    Resources owned by one state visit.

    At most one handle per ResourceKind; acquiring a kind that is already
    held returns the held handle without calling the factory again.
    """

    def __init__(self, owner: str):
        self.owner = owner
        self.closed = False
        self._held: Dict[ResourceKind, _Held] = {}

    def __enter__(self) -> "ResourceScope":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def acquire(self, kind: ResourceKind, factory: Callable[[], Any],
                release: Callable[[Any], None]) -> Any:
        """
        Acquire a resource into this scope.

        Raises:
            ResourceAcquisitionError: propagated from the factory; nothing
                is held for that kind afterwards.
        """
        if self.closed:
            raise RuntimeError(f"Scope for {self.owner} is closed, cannot acquire {kind.value}")

        held = self._held.get(kind)
        if held is not None:
            logger.debug(f"{self.owner}: {kind.value} already held, reusing")
            return held.handle

        handle = factory()
        self._held[kind] = _Held(handle, release)
        logger.debug(f"{self.owner}: acquired {kind.value}")
        return handle

    def holds(self, kind: ResourceKind) -> bool:
        return kind in self._held

    def get(self, kind: ResourceKind) -> Any:
        held = self._held.get(kind)
        return held.handle if held else None

    @property
    def kinds(self) -> List[ResourceKind]:
        return list(self._held)

    def release(self, kind: ResourceKind) -> bool:
        """Release one kind early (e.g. camera toggled off)"""
        held = self._held.pop(kind, None)
        if held is None:
            return False
        self._release(kind, held)
        return True

    def close(self):
        """Release everything, newest first. Safe to call more than once."""
        while self._held:
            kind = list(self._held)[-1]
            self._release(kind, self._held.pop(kind))
        self.closed = True

    def _release(self, kind: ResourceKind, held: _Held):
        try:
            held.release(held.handle)
            logger.debug(f"{self.owner}: released {kind.value}")
        except Exception as e:
            logger.error(f"{self.owner}: failed to release {kind.value}: {e}")
