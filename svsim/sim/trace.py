"""
Trace: the timestamped record of signal values a simulation produces.

The simulator only appends. Callers read the trace back through the
helpers below, or walk `entries` directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from svsim.hdl_parser.ast_nodes import Timescale


@dataclass(frozen=True)
class TraceEntry:
    time: int
    signal: str
    value: int


@dataclass
class Trace:
    """Append-only list of (time, signal, value), ordered by time then insertion."""
    entries: list[TraceEntry] = field(default_factory=list)
    timescale: Optional[Timescale] = None

    def record(self, time: int, signal: str, value: int) -> None:
        if self.entries and time < self.entries[-1].time:
            raise ValueError(f"Trace time went backwards: {time} after {self.entries[-1].time}")
        self.entries.append(TraceEntry(time, signal, value))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(self.entries)

    def signals(self) -> list[str]:
        """Names of all recorded signals, in first-seen order."""
        return list(dict.fromkeys(e.signal for e in self.entries))

    def changes(self, signal: str) -> list[tuple[int, int]]:
        """All (time, value) records of one signal."""
        return [(e.time, e.value) for e in self.entries if e.signal == signal]

    def value_at(self, signal: str, time: int) -> Optional[int]:
        """Value of a signal as of `time` (last record at or before it)."""
        value = None
        for e in self.entries:
            if e.time > time:
                break
            if e.signal == signal:
                value = e.value
        return value

    def sample(self, signal: str, times: Iterable[int]) -> list[Optional[int]]:
        return [self.value_at(signal, t) for t in times]

    def final_values(self) -> dict[str, int]:
        values = {}
        for e in self.entries:
            values[e.signal] = e.value
        return values
