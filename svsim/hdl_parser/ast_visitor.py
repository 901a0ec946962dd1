"""
Visitor pattern for traversing the SystemVerilog AST.

The elaborator uses these visitors to find which names a procedural block
reads and which it writes before binding it to the signal table.
"""

from __future__ import annotations
from dataclasses import fields
from typing import Any
from svsim.hdl_parser.ast_nodes import *


class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override visit_* methods for the node types they care about.
    The default implementation visits all children in field order.

    Usage:
        class NameCounter(ASTVisitor):
            def visit_Identifier(self, node: Identifier) -> Any:
                self.count += 1

        NameCounter().visit(ast)
    """

    def visit(self, node: ASTNode) -> Any:
        if node is None:
            return None

        visitor_method = getattr(self, f"visit_{node.__class__.__name__}", self.generic_visit)
        return visitor_method(node)

    def generic_visit(self, node: ASTNode) -> Any:
        """Recursively visit every child node."""
        for child in iter_children(node):
            self.visit(child)
        return None

    def visit_list(self, nodes: list[ASTNode]) -> list[Any]:
        return [self.visit(node) for node in nodes]


class AccessCollector(ASTVisitor):
    """
    Collects the identifier names a statement list reads and writes.

    Assignment targets count as writes. Index expressions inside a target
    (the `i` in `mem[i] <= d`) count as reads.

    Walks an explicit work list instead of recursing.
    """

    def __init__(self):
        self.reads: set[str] = set()
        self.writes: set[str] = set()

    def visit(self, node: ASTNode):
        # (node, is_assignment_target)
        work = [(node, False)]
        while work:
            node, is_target = work.pop()
            if node is None:
                continue

            if is_target:
                if isinstance(node, Identifier):
                    self.writes.add(node.name)
                elif isinstance(node, BitSelect):
                    work.append((node.target, True))
                    work.append((node.msb, False))
                    work.append((node.lsb, False))
                elif isinstance(node, Concat):
                    work.extend((part, True) for part in node.parts)
                else:
                    work.append((node, False))

            elif isinstance(node, Identifier):
                self.reads.add(node.name)
            elif isinstance(node, (BlockingAssign, NonBlockingAssign, ContinuousAssign)):
                work.append((node.lhs, True))
                work.append((node.rhs, False))
            else:
                work.extend((child, False) for child in iter_children(node))


def iter_children(node: ASTNode):
    """Yield the direct child nodes of `node` in field order."""
    for f in fields(node):
        value = getattr(node, f.name)

        if isinstance(value, list):
            for item in value:
                if isinstance(item, ASTNode):
                    yield item

        elif isinstance(value, ASTNode):
            yield value


def collect_accesses(nodes: list[ASTNode]) -> tuple[set[str], set[str]]:
    """Return (reads, writes) over a list of statements or module items."""
    collector = AccessCollector()
    collector.visit_list(nodes)
    return collector.reads, collector.writes
