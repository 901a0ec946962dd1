"""
Delta-cycle simulation engine.

Runs an elaborated Design against a stimulus:
- Stimulus events are applied one time step at a time
- Within a time step, delta passes repeat until no value changes
- Each pass fires clocked blocks on detected edges, re-runs combinational
  blocks sensitive to changed signals, then commits all non-blocking
  assignments at once

Two-state, unsigned: every value is a Python int kept within its width.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable, Optional, Union

from svsim.errors import SvSimError
from svsim.ir.design import Block, BoundAssign, BoundCase, BoundIf, BoundTarget, Design
from svsim.ir.expr import evaluate
from svsim.ir.types import BlockKind, Edge, mask
from svsim.sim.stimulus import Stimulus, StimulusEvent
from svsim.sim.trace import Trace

logger = logging.getLogger(__name__)

DEFAULT_MAX_DELTA_CYCLES = 1000


class SimulationError(SvSimError):
    """Error while running a design."""
    stage = "simulate"

    def __init__(self, msg: str, time: Optional[int] = None, signal: Optional[str] = None):
        where = f" at t={time}" if time is not None else ""
        super().__init__(f"Simulation error{where}: {msg}")
        self.reason = msg
        self.time = time
        self.signal = signal


class NoConvergenceError(SimulationError):
    def __init__(self, time: int, deltas: int, blocks: list[str]):
        super().__init__(f"No convergence after {deltas} delta cycles; still scheduled: "
                         f"{', '.join(blocks)}", time)
        self.blocks = blocks


class WidthOverflowError(SimulationError):
    def __init__(self, signal: str, value: int, width: int, time: int):
        super().__init__(f"Value {value} does not fit in {width}-bit signal '{signal}'", time, signal)
        self.value = value
        self.width = width


@dataclass
class SimulationState:
    """Mutable state of one run."""
    values: list[int]
    nba: list[tuple[int, int, int, int]] = field(default_factory=list)  # (signal, offset, width, value)
    time: int = 0
    delta: int = 0
    max_delta: int = 0


class _ClockedView:
    """What a clocked block sees: pre-edge values, except its own triggers
    and anything it wrote with a blocking assignment."""

    def __init__(self, values: list[int], before: dict[int, int], triggers: frozenset[int]):
        self.values = values
        self.before = before
        self.triggers = triggers
        self.local: dict[int, int] = {}

    def __getitem__(self, idx: int) -> int:
        if idx in self.local:
            return self.local[idx]
        if idx in self.before and idx not in self.triggers:
            return self.before[idx]
        return self.values[idx]


class Simulator:
    """
    Simulates one Design. The design is read-only here, so several
    simulators may share it.
    """

    def __init__(self, design: Design, max_delta_cycles: int = DEFAULT_MAX_DELTA_CYCLES):
        if max_delta_cycles < 1:
            raise ValueError("max_delta_cycles must be at least 1")
        self.design = design
        self.max_delta_cycles = max_delta_cycles
        self.state: Optional[SimulationState] = None

    # ============================================================
    # Public API
    # ============================================================

    def run(self, stimulus: Union[Stimulus, Iterable[Union[StimulusEvent, tuple]]]) -> Trace:
        """Reset the design, apply every stimulus event and return the trace."""
        if not isinstance(stimulus, Stimulus):
            stimulus = Stimulus().extend(stimulus)
        events = stimulus.events()

        trace = Trace(timescale=self.design.timescale)
        self._initialize()
        for sig, value in zip(self.design.signals, self.state.values):
            trace.record(0, sig.name, value)

        for time, group in groupby(events, key=lambda e: e.time):
            self._step(time, list(group), trace)

        logger.info("simulated %s: %d events, %d trace entries, at most %d delta cycles per step",
                    self.design.name, len(events), len(trace), self.state.max_delta)
        return trace

    def peek(self, name: str) -> int:
        """Current value of a signal."""
        if self.state is None:
            raise SimulationError("Simulator has not been run")
        sig = self.design.lookup(name)
        if sig is None:
            raise SimulationError(f"Unknown signal '{name}'", signal=name)
        return self.state.values[sig.index]

    # ============================================================
    # Scheduling
    # ============================================================

    def _initialize(self):
        """Declared initial values, then every combinational block once, then settle."""
        values = [sig.init for sig in self.design.signals]
        self.state = SimulationState(values=values)

        start = list(values)
        for block in self.design.blocks:
            if block.kind is not BlockKind.CLOCKED:
                self._exec(block.body, values, block)
        self._commit()

        changed = {i: old for i, old in enumerate(start) if values[i] != old}
        self._settle(changed, fire_edges=False)

    def _step(self, time: int, events: list[StimulusEvent], trace: Trace):
        state = self.state
        state.time = time
        values = state.values
        before = list(values)

        changed: dict[int, int] = {}
        for event in events:
            sig = self.design.lookup(event.signal)
            if sig is None:
                raise SimulationError(f"Unknown signal '{event.signal}'", time, event.signal)
            if not sig.drivable:
                inputs = ", ".join(s.name for s in self.design.inputs)
                raise SimulationError(f"'{event.signal}' is not an input port (inputs: {inputs})",
                                      time, event.signal)
            if event.value < 0 or event.value > mask(sig.width):
                raise WidthOverflowError(event.signal, event.value, sig.width, time)
            changed.setdefault(sig.index, values[sig.index])
            values[sig.index] = event.value

        changed = {i: old for i, old in changed.items() if values[i] != old}
        logger.debug("t=%d: %d event(s), %d input change(s)", time, len(events), len(changed))
        self._settle(changed)

        for sig in self.design.signals:
            if values[sig.index] != before[sig.index]:
                trace.record(time, sig.name, values[sig.index])

    def _settle(self, changed: dict[int, int], fire_edges: bool = True):
        """Run delta passes until no signal changes. `changed` maps index to old value."""
        state = self.state
        values = state.values
        signals = self.design.signals
        blocks = self.design.blocks
        state.delta = 0

        while changed:
            clocked: set[int] = set()
            level: set[int] = set()
            for idx, old in changed.items():
                sig = signals[idx]
                level.update(sig.fanout)
                if fire_edges and (old ^ values[idx]) & 1:
                    edge = Edge.POSEDGE if values[idx] & 1 else Edge.NEGEDGE
                    clocked.update(b for b, e in sig.edge_fanout if e is edge)

            if not clocked and not level:
                break

            state.delta += 1
            if state.delta > self.max_delta_cycles:
                names = [blocks[b].name for b in sorted(clocked | level)]
                raise NoConvergenceError(state.time, self.max_delta_cycles, names)

            start = list(values)

            # Clocked blocks sample the values from before this pass
            for b in sorted(clocked):
                block = blocks[b]
                view = _ClockedView(values, changed, block.trigger_signals)
                body = block.body
                if block.reset is not None:
                    if block.reset.asserted(view[block.reset.signal]):
                        body = block.reset.reset_body
                    else:
                        body = block.reset.run_body
                self._exec(body, view, block)

            for b in sorted(level):
                block = blocks[b]
                if block.kind is not BlockKind.CLOCKED:
                    self._exec(block.body, values, block)

            self._commit()

            changed = {i: old for i, old in enumerate(start) if values[i] != old}
            logger.debug("t=%d delta %d: %d clocked, %d comb, %d change(s)", state.time,
                         state.delta, len(clocked), len(level), len(changed))

        state.max_delta = max(state.max_delta, state.delta)

    def _commit(self):
        """Apply all queued non-blocking assignments, in order."""
        values = self.state.values
        for idx, offset, width, value in self.state.nba:
            values[idx] = _insert(values[idx], offset, width, value)
        self.state.nba.clear()

    # ============================================================
    # Statement execution
    # ============================================================

    def _exec(self, stmts: list, view, block: Block):
        for stmt in stmts:
            if isinstance(stmt, BoundAssign):
                value = evaluate(stmt.value.program, view)
                for idx, offset, width, part in self._split(stmt.target, value, view):
                    if stmt.nonblocking:
                        self.state.nba.append((idx, offset, width, part))
                    else:
                        self._write(view, idx, offset, width, part)

            elif isinstance(stmt, BoundIf):
                if evaluate(stmt.cond.program, view):
                    self._exec(stmt.then_body, view, block)
                else:
                    self._exec(stmt.else_body, view, block)

            elif isinstance(stmt, BoundCase):
                selector = evaluate(stmt.selector.program, view)
                for item in stmt.items:
                    if any((selector ^ evaluate(label.program, view)) & care == 0
                           for label, care in item.labels):
                        self._exec(item.body, view, block)
                        break
                else:
                    self._exec(stmt.default, view, block)

            else:
                raise SimulationError(f"{block.name}: unknown statement {type(stmt).__name__}",
                                      self.state.time)

    def _split(self, target: BoundTarget, value: int, view):
        """Yield (signal, offset, width, bits) for each target part, LSB part last in the source."""
        shift = 0
        for part in reversed(target.parts):
            bits = (value >> shift) & mask(part.width)
            shift += part.width
            offset = part.offset
            if part.index is not None:
                index = evaluate(part.index.program, view)
                if not min(part.msb, part.lsb) <= index <= max(part.msb, part.lsb):
                    continue  # out-of-range writes are dropped
                offset = index - part.lsb if part.msb >= part.lsb else part.lsb - index
            yield part.signal, offset, part.width, bits

    def _write(self, view, idx: int, offset: int, width: int, bits: int):
        values = self.state.values
        values[idx] = _insert(values[idx], offset, width, bits)
        if isinstance(view, _ClockedView):
            view.local[idx] = values[idx]


def _insert(current: int, offset: int, width: int, bits: int) -> int:
    field_mask = mask(width) << offset
    return (current & ~field_mask) | ((bits << offset) & field_mask)


def simulate_design(design: Design, stimulus, max_delta_cycles: int = DEFAULT_MAX_DELTA_CYCLES) -> Trace:
    """Convenience function: run one design against a stimulus."""
    return Simulator(design, max_delta_cycles).run(stimulus)
