"""
Elaborated design: the flat signal table and the bound procedural blocks.

Signals live in one list and are addressed by integer index everywhere
below this module. Names are only used to look signals up from the
outside (stimulus, peek, trace).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Union

from svsim.hdl_parser.ast_nodes import Timescale
from svsim.ir.expr import BoundExpr
from svsim.ir.types import BitWidth, BlockKind, Edge, NetType, ParamValue, PortDir


@dataclass
class Signal:
    """One port, net or variable."""
    index: int
    name: str
    range: BitWidth = field(default_factory=lambda: BitWidth(0, 0))
    direction: Optional[PortDir] = None   # None for internal signals
    net_type: NetType = NetType.WIRE
    init: int = 0
    fanout: list[int] = field(default_factory=list)                   # level-sensitive blocks
    edge_fanout: list[tuple[int, Edge]] = field(default_factory=list)  # clocked blocks

    @property
    def width(self) -> int:
        return self.range.width

    @property
    def is_port(self) -> bool:
        return self.direction is not None

    @property
    def drivable(self) -> bool:
        """True when the stimulus may drive this signal."""
        return self.direction in (PortDir.INPUT, PortDir.INOUT)

    def __repr__(self):
        return f"Signal({self.index}, {self.name!r}, {self.range})"


# ============================================================
# Bound statements
# ============================================================

@dataclass(frozen=True)
class TargetPart:
    """A contiguous bit range of one signal that an assignment writes.

    For a dynamic bit select `index` holds the compiled index expression,
    and `msb`/`lsb` the signal's declared range used to map it.
    """
    signal: int
    offset: int
    width: int
    index: Optional[BoundExpr] = None
    msb: int = 0
    lsb: int = 0


@dataclass(frozen=True)
class BoundTarget:
    """Assignment target. For a concatenation the first part is the MSB."""
    parts: tuple[TargetPart, ...]

    @property
    def width(self) -> int:
        return sum(p.width for p in self.parts)

    @property
    def signals(self) -> set[int]:
        return {p.signal for p in self.parts}


@dataclass
class BoundAssign:
    target: BoundTarget
    value: BoundExpr
    nonblocking: bool = False


@dataclass
class BoundIf:
    cond: BoundExpr
    then_body: list[BoundStmt] = field(default_factory=list)
    else_body: list[BoundStmt] = field(default_factory=list)


@dataclass
class BoundCaseItem:
    # (label, care mask): a label matches when (selector ^ label) & care == 0
    labels: list[tuple[BoundExpr, int]] = field(default_factory=list)
    body: list[BoundStmt] = field(default_factory=list)


@dataclass
class BoundCase:
    selector: BoundExpr
    items: list[BoundCaseItem] = field(default_factory=list)
    default: list[BoundStmt] = field(default_factory=list)


BoundStmt = Union[BoundAssign, BoundIf, BoundCase]


# ============================================================
# Blocks
# ============================================================

@dataclass(frozen=True)
class Trigger:
    signal: int
    edge: Edge = Edge.ANY


@dataclass
class ResetInfo:
    """Reset recognized from a clocked block's top-level if statement."""
    signal: int
    active_level: int          # 0 for active-low, 1 for active-high
    asynchronous: bool
    reset_body: list[BoundStmt] = field(default_factory=list)
    run_body: list[BoundStmt] = field(default_factory=list)

    def asserted(self, value: int) -> bool:
        return bool(value) == bool(self.active_level)


@dataclass
class Block:
    """A bound procedural block or continuous assignment."""
    index: int
    name: str
    kind: BlockKind
    body: list[BoundStmt] = field(default_factory=list)
    triggers: list[Trigger] = field(default_factory=list)
    reads: frozenset[int] = frozenset()
    writes: frozenset[int] = frozenset()
    clock: Optional[int] = None
    reset: Optional[ResetInfo] = None

    @property
    def trigger_signals(self) -> frozenset[int]:
        return frozenset(t.signal for t in self.triggers)

    def __repr__(self):
        return f"Block({self.index}, {self.name!r}, {self.kind.name})"


@dataclass
class Design:
    """The elaborated top module."""
    name: str
    signals: list[Signal] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    parameters: dict[str, ParamValue] = field(default_factory=dict)
    timescale: Optional[Timescale] = None
    _by_name: dict[str, int] = field(default_factory=dict, repr=False)

    def add_signal(self, signal: Signal) -> Signal:
        signal.index = len(self.signals)
        self.signals.append(signal)
        self._by_name[signal.name] = signal.index
        return signal

    def add_block(self, block: Block) -> Block:
        block.index = len(self.blocks)
        self.blocks.append(block)
        return block

    def lookup(self, name: str) -> Optional[Signal]:
        idx = self._by_name.get(name)
        return None if idx is None else self.signals[idx]

    def signal(self, name: str) -> Signal:
        sig = self.lookup(name)
        if sig is None:
            raise KeyError(name)
        return sig

    @property
    def inputs(self) -> list[Signal]:
        return [s for s in self.signals if s.direction in (PortDir.INPUT, PortDir.INOUT)]

    @property
    def outputs(self) -> list[Signal]:
        return [s for s in self.signals if s.direction in (PortDir.OUTPUT, PortDir.INOUT)]

    def summary(self) -> str:
        kinds = {k: sum(1 for b in self.blocks if b.kind is k) for k in BlockKind}
        return (f"Design '{self.name}': {len(self.signals)} signals "
                f"({len(self.inputs)} in, {len(self.outputs)} out), "
                f"{kinds[BlockKind.COMB]} comb, {kinds[BlockKind.CLOCKED]} clocked, "
                f"{kinds[BlockKind.CONTINUOUS]} continuous")
