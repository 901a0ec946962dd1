"""
Stimulus: the timed input events that drive a simulation.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Union


@dataclass(frozen=True)
class StimulusEvent:
    """Drive `signal` to `value` at `time`."""
    time: int
    signal: str
    value: int


@dataclass
class Stimulus:
    """
    Append-only builder for a list of stimulus events.

    Usage:
        stim = Stimulus()
        stim.drive(0, "n_rst", 0).drive(12, "n_rst", 1)
        stim.clock("clk", period=10, cycles=8)
    """
    _events: list[StimulusEvent] = field(default_factory=list)

    def drive(self, time: int, signal: str, value: int) -> "Stimulus":
        if time < 0:
            raise ValueError(f"Stimulus time must not be negative, got {time}")
        self._events.append(StimulusEvent(time, signal, value))
        return self

    def clock(self, signal: str, period: int, cycles: int, start: int = 0, initial: int = 0) -> "Stimulus":
        """Toggle `signal` every period/2 for `cycles` full periods.

        The first event, at `start`, drives `initial`; the first edge
        follows half a period later.
        """
        if period < 2 or period % 2:
            raise ValueError(f"Clock period must be an even number >= 2, got {period}")
        half = period // 2
        value = initial & 1
        self.drive(start, signal, value)
        for i in range(1, 2 * cycles + 1):
            value ^= 1
            self.drive(start + i * half, signal, value)
        return self

    def pulse(self, signal: str, start: int, width: int, active: int = 1) -> "Stimulus":
        """Drive `active` at `start` and its complement `width` later."""
        if width <= 0:
            raise ValueError(f"Pulse width must be positive, got {width}")
        self.drive(start, signal, active & 1)
        self.drive(start + width, signal, (active & 1) ^ 1)
        return self

    def extend(self, events: Iterable[Union[StimulusEvent, tuple]]) -> "Stimulus":
        for event in events:
            if not isinstance(event, StimulusEvent):
                event = StimulusEvent(*event)
            self.drive(event.time, event.signal, event.value)
        return self

    def events(self) -> list[StimulusEvent]:
        """All events sorted by time, in insertion order within one time."""
        return sorted(self._events, key=lambda e: e.time)

    def __len__(self) -> int:
        return len(self._events)
