"""
Core types shared by the elaborator and the simulation engine.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional


class PortDir(Enum):
    """Port direction for module I/O."""
    INPUT = auto()
    OUTPUT = auto()
    INOUT = auto()


class NetType(Enum):
    """Declared storage kind. Two-state simulation treats all three alike."""
    WIRE = auto()
    REG = auto()
    LOGIC = auto()


class BlockKind(Enum):
    """The closed set of process kinds the scheduler knows about."""
    COMB = auto()          # always_comb, always @(*), always @(a or b)
    CLOCKED = auto()       # always_ff / always with edge triggers
    CONTINUOUS = auto()    # assign lhs = rhs


class Edge(Enum):
    """What change on a signal wakes a block."""
    ANY = auto()           # any value change (level sensitive)
    POSEDGE = auto()       # LSB 0 -> 1
    NEGEDGE = auto()       # LSB 1 -> 0


@dataclass(frozen=True)
class BitWidth:
    """Declared bit range of a signal.

    Both orientations are allowed: [7:0] is descending, [0:7] ascending.
    Offsets are counted from the storage LSB, which is the `lsb` index.
    """
    msb: int
    lsb: int = 0

    @property
    def width(self) -> int:
        return abs(self.msb - self.lsb) + 1

    @property
    def descending(self) -> bool:
        return self.msb >= self.lsb

    @staticmethod
    def from_width(w: int) -> "BitWidth":
        """Create a BitWidth from just a width, e.g., 8 -> [7:0]."""
        return BitWidth(msb=w - 1, lsb=0)

    def contains(self, index: int) -> bool:
        return min(self.msb, self.lsb) <= index <= max(self.msb, self.lsb)

    def offset(self, index: int) -> int:
        """Storage bit position of a declared index."""
        if self.descending:
            return index - self.lsb
        return self.lsb - index

    def __repr__(self):
        if self.lsb == 0 and self.msb == 0:
            return "BitWidth(1)"
        return f"BitWidth([{self.msb}:{self.lsb}])"


@dataclass
class ParamValue:
    """A resolved parameter value."""
    name: str
    value: int
    width: int = 32
    local: bool = False
    range: Optional[BitWidth] = None


def mask(width: int) -> int:
    """All-ones value of the given width."""
    return (1 << width) - 1
