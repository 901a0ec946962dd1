"""
Compiled expressions.

The elaborator lowers every expression tree into a flat postfix program
with all widths resolved. Evaluation walks the program with an explicit
operand stack, so nesting depth never touches the Python call stack.

Instructions are plain tuples whose first element is an Op:

    (CONST, value)                   push a constant
    (LOAD, signal)                   push a signal's current value
    (SLICE, shift, width)            top = (top >> shift) & mask(width)
    (INDEX, msb, lsb)                pop index, pop value, push the selected bit
    (UNARY, op, width, operand_width)
    (BINARY, op, width)
    (TERNARY,)                       pop else, then, cond
    (CONCAT, widths)                 pop len(widths) parts, first part is MSB
    (REPLICATE, count, width)
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto
from typing import Sequence

from svsim.ir.types import mask


class Op(Enum):
    CONST = auto()
    LOAD = auto()
    SLICE = auto()
    INDEX = auto()
    UNARY = auto()
    BINARY = auto()
    TERNARY = auto()
    CONCAT = auto()
    REPLICATE = auto()


@dataclass(frozen=True)
class BoundExpr:
    """A compiled expression: postfix program plus its evaluation width."""
    program: tuple
    width: int

    def reads(self) -> set[int]:
        return {instr[1] for instr in self.program if instr[0] is Op.LOAD}


def _unary(op: str, a: int, width: int, operand_width: int) -> int:
    if op == "~":
        return ~a & mask(width)
    if op == "-":
        return -a & mask(width)
    if op == "+":
        return a
    if op == "!":
        return int(a == 0)
    if op == "&":
        return int(a == mask(operand_width))
    if op == "~&":
        return int(a != mask(operand_width))
    if op == "|":
        return int(a != 0)
    if op == "~|":
        return int(a == 0)
    if op == "^":
        return bin(a).count("1") & 1
    if op == "~^":
        return (bin(a).count("1") & 1) ^ 1
    raise ValueError(f"Unknown unary operator {op!r}")


def _binary(op: str, a: int, b: int, width: int) -> int:
    if op == "+":
        return (a + b) & mask(width)
    if op == "-":
        return (a - b) & mask(width)
    if op == "*":
        return (a * b) & mask(width)
    if op == "/":
        return a // b if b else 0
    if op == "%":
        return a % b if b else 0
    if op == "&":
        return a & b
    if op == "|":
        return a | b
    if op == "^":
        return a ^ b
    if op == "~^":
        return ~(a ^ b) & mask(width)
    if op in ("<<", "<<<"):
        return (a << b) & mask(width) if b < width else 0
    if op in (">>", ">>>"):
        return a >> b if b < width else 0
    if op in ("==", "==="):
        return int(a == b)
    if op in ("!=", "!=="):
        return int(a != b)
    if op == "<":
        return int(a < b)
    if op == "<=":
        return int(a <= b)
    if op == ">":
        return int(a > b)
    if op == ">=":
        return int(a >= b)
    if op == "&&":
        return int(bool(a) and bool(b))
    if op == "||":
        return int(bool(a) or bool(b))
    raise ValueError(f"Unknown binary operator {op!r}")


def evaluate(program: Sequence[tuple], values) -> int:
    """Run a postfix program against `values` (anything indexable by signal)."""
    stack: list[int] = []
    for instr in program:
        op = instr[0]
        if op is Op.CONST:
            stack.append(instr[1])
        elif op is Op.LOAD:
            stack.append(values[instr[1]])
        elif op is Op.SLICE:
            stack[-1] = (stack[-1] >> instr[1]) & mask(instr[2])
        elif op is Op.INDEX:
            _, msb, lsb = instr
            index = stack.pop()
            value = stack.pop()
            # Out-of-range dynamic selects read as 0
            if min(msb, lsb) <= index <= max(msb, lsb):
                shift = index - lsb if msb >= lsb else lsb - index
                stack.append((value >> shift) & 1)
            else:
                stack.append(0)
        elif op is Op.UNARY:
            stack[-1] = _unary(instr[1], stack[-1], instr[2], instr[3])
        elif op is Op.BINARY:
            b = stack.pop()
            stack[-1] = _binary(instr[1], stack[-1], b, instr[2])
        elif op is Op.TERNARY:
            else_val = stack.pop()
            then_val = stack.pop()
            stack[-1] = then_val if stack[-1] else else_val
        elif op is Op.CONCAT:
            widths = instr[1]
            parts = stack[-len(widths):]
            del stack[-len(widths):]
            result = 0
            for part, w in zip(parts, widths):
                result = (result << w) | (part & mask(w))
            stack.append(result)
        elif op is Op.REPLICATE:
            _, count, width = instr
            part = stack[-1] & mask(width)
            result = 0
            for _ in range(count):
                result = (result << width) | part
            stack[-1] = result
        else:
            raise ValueError(f"Unknown instruction {instr!r}")

    return stack.pop()
