"""
clock_trigger.py - One-shot time-of-day triggers for the call narrative

Triggers are ordered: each one is armed only after the previous one fired
(2:00 starts the call, 8:00 finishes it). Firing is edge-triggered through
the fired set, so sitting on a trigger minute for many ticks fires once.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set

from clock_time import ClockTime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeTrigger:
    """Condition on the 12-hour dial: hour12 in 1..12, minute in 0..59"""
    trigger_id: str
    hour12: int
    minute: int

    def matches(self, clock_time: ClockTime) -> bool:
        return (clock_time.hour12, clock_time.minute) == (self.hour12, self.minute)


class ClockTrigger:
    def __init__(self, triggers: Iterable[TimeTrigger],
                 on_time_reached: Optional[Callable[[str], None]] = None,
                 already_fired: Iterable[str] = ()):
        self.triggers: List[TimeTrigger] = list(triggers)
        ids = [t.trigger_id for t in self.triggers]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate trigger ids: {ids}")
        self.on_time_reached = on_time_reached
        self.has_fired: Set[str] = set(already_fired)

    def is_armed(self, trigger: TimeTrigger) -> bool:
        if trigger.trigger_id in self.has_fired:
            return False
        index = self.triggers.index(trigger)
        if index == 0:
            return True
        return self.triggers[index - 1].trigger_id in self.has_fired

    def check(self, clock_time: ClockTime) -> List[str]:
        """Fire every armed trigger matching the time; returns the fired ids"""
        fired = []
        for trigger in self.triggers:
            if not self.is_armed(trigger) or not trigger.matches(clock_time):
                continue
            # Mark before the callback so a re-entrant check can't fire twice
            self.has_fired.add(trigger.trigger_id)
            fired.append(trigger.trigger_id)
            logger.info(f"Trigger '{trigger.trigger_id}' reached at {clock_time.to_string()}")
            if self.on_time_reached:
                self.on_time_reached(trigger.trigger_id)
        return fired

    def reset(self):
        self.has_fired.clear()
