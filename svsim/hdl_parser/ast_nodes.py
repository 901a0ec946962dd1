"""
Abstract Syntax Tree nodes for the supported SystemVerilog subset.

The AST is a tree that directly mirrors the source code structure. The
elaborator binds it into a flat Design; the AST itself is never mutated
after parsing. Source positions are excluded from equality so two parses
of equivalent text compare equal.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional


# ============================================================
# Base
# ============================================================

@dataclass
class ASTNode:
    """Base class for all AST nodes."""
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)


# ============================================================
# Expressions
# ============================================================

@dataclass
class Expr(ASTNode):
    """Base class for expressions."""
    pass


@dataclass
class NumberLiteral(Expr):
    """Numeric literal: 42, 8'hFF, 4'b1010, '1"""
    raw: str = ""                  # Original text
    value: int = 0                 # Resolved integer value
    width: Optional[int] = None    # Bit width, None when unsized
    wildcard: int = 0              # x/z/? bit positions
    fill: bool = False             # '0 / '1, sized by context


@dataclass
class Identifier(Expr):
    """A signal or parameter reference: my_signal"""
    name: str = ""


@dataclass
class BitSelect(Expr):
    """Bit or part select: signal[7:0] or signal[3]"""
    target: Expr = None
    msb: Expr = None
    lsb: Optional[Expr] = None  # None for single-bit select


@dataclass
class UnaryOp(Expr):
    """Unary operation: ~a, !a, -a, and reductions &a, |a, ^a, ~&a, ~|a, ~^a"""
    op: str = ""
    operand: Expr = None


@dataclass
class BinaryOp(Expr):
    """Binary operation: a + b, a & b, a == b, etc."""
    op: str = ""           # "+", "-", "*", "/", "%", "&", "|", "^", "~^",
                           # "<<", ">>", "<<<", ">>>", "==", "!=", "===", "!==",
                           # "<", "<=", ">", ">=", "&&", "||"
    left: Expr = None
    right: Expr = None


@dataclass
class TernaryOp(Expr):
    """Ternary/conditional: cond ? true_val : false_val"""
    cond: Expr = None
    true_val: Expr = None
    false_val: Expr = None


@dataclass
class Concat(Expr):
    """Concatenation: {a, b, c}"""
    parts: list[Expr] = field(default_factory=list)


@dataclass
class Repeat(Expr):
    """Replication: {4{a}}"""
    count: Expr = None
    value: Expr = None


@dataclass
class FuncCall(Expr):
    """System function call in constant context: $clog2(N)"""
    name: str = ""
    args: list[Expr] = field(default_factory=list)


# ============================================================
# Statements
# ============================================================

@dataclass
class Statement(ASTNode):
    """Base class for statements."""
    pass


@dataclass
class BlockingAssign(Statement):
    """Blocking assignment: lhs = rhs;"""
    lhs: Expr = None
    rhs: Expr = None


@dataclass
class NonBlockingAssign(Statement):
    """Non-blocking assignment: lhs <= rhs;"""
    lhs: Expr = None
    rhs: Expr = None


@dataclass
class IfStatement(Statement):
    """if/else: if (cond) ... else ..."""
    cond: Expr = None
    then_body: list[Statement] = field(default_factory=list)
    else_body: list[Statement] = field(default_factory=list)


@dataclass
class CaseStatement(Statement):
    """case/casex/casez"""
    kind: str = "case"     # "case", "casex", "casez"
    expr: Expr = None
    items: list[CaseItem] = field(default_factory=list)
    default: list[Statement] = field(default_factory=list)


@dataclass
class CaseItem(ASTNode):
    """A single arm of a case statement."""
    values: list[Expr] = field(default_factory=list)
    body: list[Statement] = field(default_factory=list)


@dataclass
class Block(Statement):
    """begin...end block nested inside a statement list."""
    name: str = ""
    stmts: list[Statement] = field(default_factory=list)


# ============================================================
# Declarations
# ============================================================

@dataclass
class Range(ASTNode):
    """Bit range: [msb:lsb]"""
    msb: Expr = None
    lsb: Expr = None


@dataclass
class PortDecl(ASTNode):
    """Port declaration: input logic [7:0] data"""
    direction: str = "input"   # "input", "output", "inout"
    net_type: str = "wire"     # "wire", "reg", "logic"
    range: Optional[Range] = None
    name: str = ""


@dataclass
class NetDecl(ASTNode):
    """Net/variable declaration: wire [3:0] foo; / logic [7:0] acc = 0;"""
    net_type: str = "wire"
    range: Optional[Range] = None
    name: str = ""
    init_value: Optional[Expr] = None


@dataclass
class ParamDecl(ASTNode):
    """Parameter/localparam declaration."""
    kind: str = "parameter"    # "parameter" or "localparam"
    range: Optional[Range] = None
    name: str = ""
    value: Expr = None


# ============================================================
# Module-level constructs
# ============================================================

@dataclass
class ContinuousAssign(ASTNode):
    """assign lhs = rhs;"""
    lhs: Expr = None
    rhs: Expr = None


@dataclass
class SensItem(ASTNode):
    """Sensitivity list item: posedge clk, negedge rst, or plain signal."""
    edge: str = ""         # "posedge", "negedge", or "" for level
    signal: Identifier = None


@dataclass
class AlwaysBlock(ASTNode):
    """always @(...), always_ff @(...) or always_comb"""
    kind: str = "always"   # "always", "always_ff", "always_comb"
    sensitivity: list[SensItem] = field(default_factory=list)
    is_star: bool = False  # always @(*)
    body: list[Statement] = field(default_factory=list)


# ============================================================
# Top-level
# ============================================================

_TIME_UNITS = {"s": 1.0, "ms": 1e-3, "us": 1e-6, "ns": 1e-9, "ps": 1e-12, "fs": 1e-15}


@dataclass
class Timescale(ASTNode):
    """`timescale unit / precision, e.g. unit='1ns', precision='1ps'"""
    unit: str = "1ns"
    precision: str = "1ps"

    @staticmethod
    def seconds(text: str) -> float:
        """Convert '10ns' to seconds."""
        digits = text.rstrip("abcdefghijklmnopqrstuvwxyz")
        return int(digits) * _TIME_UNITS[text[len(digits):]]

    @property
    def unit_seconds(self) -> float:
        return self.seconds(self.unit)

    @property
    def precision_seconds(self) -> float:
        return self.seconds(self.precision)


@dataclass
class Module(ASTNode):
    """A module definition."""
    name: str = ""
    params: list[ParamDecl] = field(default_factory=list)   # header #(...) list
    ports: list[PortDecl] = field(default_factory=list)
    body: list[ASTNode] = field(default_factory=list)
    # Declarations, body parameters, assigns and always blocks in source order


@dataclass
class SourceFile(ASTNode):
    """A complete source file (one or more modules)."""
    modules: list[Module] = field(default_factory=list)
    timescale: Optional[Timescale] = None
