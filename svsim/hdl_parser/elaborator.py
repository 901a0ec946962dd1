"""
Elaborator: converts the AST into a simulatable Design.

Takes a parsed module and binds it into a flat signal table plus a list of
compiled blocks:
- Resolves parameters (overrides win over defaults)
- Computes concrete widths of ports and declarations
- Compiles every expression into a postfix program with resolved widths
- Computes read/write sets and registers sensitivity
- Recognizes clock and reset of clocked blocks
- Enforces the single-driver rule

The AST is never modified.
"""

from __future__ import annotations
import logging
from typing import Optional

from svsim.errors import SvSimError
from svsim.hdl_parser.ast_nodes import *
from svsim.hdl_parser.ast_visitor import AccessCollector, collect_accesses
from svsim.ir.design import (
    Block as DesignBlock, BoundAssign, BoundCase, BoundCaseItem, BoundIf, BoundTarget,
    Design, ResetInfo, Signal, TargetPart, Trigger,
)
from svsim.ir.expr import BoundExpr, Op
from svsim.ir.types import BitWidth, BlockKind, Edge, NetType, ParamValue, PortDir, mask

logger = logging.getLogger(__name__)


class ElaborationError(SvSimError):
    """Error during elaboration."""
    stage = "elaborate"

    def __init__(self, msg: str, node: Optional[ASTNode] = None,
                 signal: Optional[str] = None, block: Optional[str] = None):
        line = node.line if node is not None and node.line else None
        col = node.col if line is not None else None
        where = f" at L{line}:{col}" if line is not None else ""
        super().__init__(f"Elaboration error{where}: {msg}", line, col)
        self.reason = msg
        self.signal = signal
        self.block = block


class WidthMismatchError(ElaborationError):
    pass


class UnresolvedReferenceError(ElaborationError):
    def __init__(self, name: str, node: Optional[ASTNode] = None,
                 block: Optional[str] = None, msg: Optional[str] = None):
        super().__init__(msg or f"Unresolved reference '{name}'", node, signal=name, block=block)


class MultipleDriversError(ElaborationError):
    def __init__(self, signal: str, first: str, second: str):
        super().__init__(f"Signal '{signal}' is driven by both {first} and {second}",
                         signal=signal, block=second)
        self.blocks = (first, second)


_DIRECTIONS = {"input": PortDir.INPUT, "output": PortDir.OUTPUT, "inout": PortDir.INOUT}
_NET_TYPES = {"wire": NetType.WIRE, "reg": NetType.REG, "logic": NetType.LOGIC}

_COMPARE_OPS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}
_LOGICAL_OPS = {"&&", "||"}
_SHIFT_OPS = {"<<", ">>", "<<<", ">>>"}
_CONTEXT_UNARY_OPS = {"~", "-", "+"}

_CONST_BINARY = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a // b if b else 0,
    "%": lambda a, b: a % b if b else 0,
    "&": lambda a, b: a & b,
    "|": lambda a, b: a | b,
    "^": lambda a, b: a ^ b,
    "<<": lambda a, b: a << b,
    ">>": lambda a, b: a >> b,
    "<<<": lambda a, b: a << b,
    ">>>": lambda a, b: a >> b,
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "===": lambda a, b: int(a == b),
    "!==": lambda a, b: int(a != b),
    "<": lambda a, b: int(a < b),
    "<=": lambda a, b: int(a <= b),
    ">": lambda a, b: int(a > b),
    ">=": lambda a, b: int(a >= b),
    "&&": lambda a, b: int(bool(a) and bool(b)),
    "||": lambda a, b: int(bool(a) or bool(b)),
}


def clog2(n: int) -> int:
    """Ceiling log2, as $clog2 defines it ($clog2(0) == $clog2(1) == 0)."""
    return (n - 1).bit_length() if n > 1 else 0


class Elaborator:
    """
    Elaborates one module of an AST into a Design.

    Hierarchy is not supported: the selected module is the whole design.
    """

    def __init__(self, overrides: Optional[dict[str, int]] = None):
        self.overrides: dict[str, int] = dict(overrides or {})
        self.design: Optional[Design] = None
        self.parameters: dict[str, ParamValue] = {}
        self._block_name: Optional[str] = None

    def elaborate(self, ast: SourceFile, top: Optional[str] = None) -> Design:
        """
        Elaborate an AST into a design.

        Args:
            ast: Parsed source
            top: Name of the module to elaborate; required when the file
                 holds more than one module

        Raises:
            ElaborationError: If elaboration fails
        """
        module = self._select_module(ast, top)
        design = self.elaborate_module(module)
        design.timescale = ast.timescale
        return design

    def _select_module(self, ast: SourceFile, top: Optional[str]) -> Module:
        if not ast.modules:
            raise ElaborationError("No modules found in source")
        if top is not None:
            for module in ast.modules:
                if module.name == top:
                    return module
            raise ElaborationError(f"No module named '{top}'")
        if len(ast.modules) > 1:
            names = ", ".join(m.name for m in ast.modules)
            raise ElaborationError(f"Several modules ({names}); choose one with top=")
        return ast.modules[0]

    def elaborate_module(self, module: Module) -> Design:
        """Elaborate a single module."""
        self.design = Design(name=module.name)
        self.parameters = {}
        self._block_name = None

        try:
            # Phase 1: Resolve parameters
            self._resolve_parameters(module)

            # Phase 2: Signal table from ports and declarations
            self._elaborate_ports(module)
            self._elaborate_declarations(module)

            # Phase 3: Compile assigns and always blocks
            self._elaborate_body(module)
            self._block_name = None

            # Phase 4: Structural checks and sensitivity
            self._check_drivers()
            self._register_sensitivity()
        except RecursionError:
            raise ElaborationError("Expression nested too deeply", module,
                                   block=self._block_name) from None

        logger.info("%s", self.design.summary())
        return self.design

    # ============================================================
    # Parameters and declarations
    # ============================================================

    def _resolve_parameters(self, module: Module):
        """Resolve all parameter values in declaration order."""
        decls = list(module.params) + [item for item in module.body if isinstance(item, ParamDecl)]
        by_name = {p.name: p for p in decls}

        for name in self.overrides:
            if name not in by_name:
                raise UnresolvedReferenceError(name, msg=f"Override of unknown parameter '{name}'")
            if by_name[name].kind == "localparam":
                raise UnresolvedReferenceError(name, by_name[name],
                                               msg=f"Cannot override localparam '{name}'")

        for param in decls:
            if param.name in self.parameters:
                raise ElaborationError(f"Duplicate parameter '{param.name}'", param, signal=param.name)

            rng = self._get_range(param.range) if param.range else None
            if param.name in self.overrides:
                value = self.overrides[param.name]
            else:
                value = self._eval_const_expr(param.value)

            if rng is not None:
                width = rng.width
            else:
                width = max(32, value.bit_length())
            value &= mask(width)

            self.parameters[param.name] = ParamValue(
                name=param.name, value=value, width=width,
                local=param.kind == "localparam", range=rng,
            )
            logger.debug("%s %s = %d", param.kind, param.name, value)

        self.design.parameters = dict(self.parameters)

    def _declare(self, name: str, node: ASTNode) -> None:
        if name in self.parameters:
            raise ElaborationError(f"'{name}' is already declared as a parameter", node, signal=name)

    def _elaborate_ports(self, module: Module):
        for port in module.ports:
            self._declare(port.name, port)
            if self.design.lookup(port.name) is not None:
                raise ElaborationError(f"Duplicate port '{port.name}'", port, signal=port.name)
            self.design.add_signal(Signal(
                index=0, name=port.name, range=self._get_range(port.range),
                direction=_DIRECTIONS[port.direction], net_type=_NET_TYPES[port.net_type],
            ))

    def _elaborate_declarations(self, module: Module):
        redeclared: set[str] = set()
        for item in module.body:
            if not isinstance(item, NetDecl):
                continue
            self._declare(item.name, item)
            rng = self._get_range(item.range)
            sig = self.design.lookup(item.name)

            if sig is None:
                sig = self.design.add_signal(Signal(
                    index=0, name=item.name, range=rng, net_type=_NET_TYPES[item.net_type],
                ))
            elif sig.is_port and item.name not in redeclared:
                # output q; reg q; style redeclaration
                if sig.width != rng.width:
                    raise WidthMismatchError(
                        f"Port '{item.name}' is {sig.width} bits wide but redeclared with {rng.width}",
                        item, signal=item.name)
                sig.net_type = _NET_TYPES[item.net_type]
                redeclared.add(item.name)
            else:
                raise ElaborationError(f"Duplicate declaration of '{item.name}'", item, signal=item.name)

            # Wire initializers become continuous assigns in _elaborate_body
            if item.init_value is not None and item.net_type != "wire":
                sig.init = self._eval_init(item, sig)

    def _eval_init(self, decl: NetDecl, sig: Signal) -> int:
        if not self._is_const(decl.init_value):
            raise ElaborationError(f"Initial value of '{decl.name}' is not constant", decl, signal=decl.name)
        value = self._eval_const_expr(decl.init_value)
        if isinstance(decl.init_value, NumberLiteral) and decl.init_value.fill and value:
            return mask(sig.width)
        return value & mask(sig.width)

    def _get_range(self, range_node: Optional[Range]) -> BitWidth:
        """Convert [msb:lsb] to a BitWidth; no range means one bit."""
        if range_node is None:
            return BitWidth(0, 0)
        msb = self._eval_const_expr(range_node.msb)
        lsb = self._eval_const_expr(range_node.lsb)
        if msb < 0 or lsb < 0:
            raise WidthMismatchError(f"Negative range [{msb}:{lsb}]", range_node)
        return BitWidth(msb, lsb)

    # ============================================================
    # Blocks
    # ============================================================

    def _elaborate_body(self, module: Module):
        for item in module.body:
            if isinstance(item, ContinuousAssign):
                self._elaborate_assign(item)
            elif isinstance(item, AlwaysBlock):
                self._elaborate_always_block(item)
            elif isinstance(item, NetDecl) and item.net_type == "wire" and item.init_value is not None:
                target = Identifier(name=item.name, line=item.line, col=item.col)
                self._elaborate_assign(ContinuousAssign(lhs=target, rhs=item.init_value,
                                                        line=item.line, col=item.col))

    def _elaborate_assign(self, assign: ContinuousAssign):
        """Elaborate a continuous assignment."""
        self._block_name = f"assign at L{assign.line}:{assign.col}"
        target = self._bind_target(assign.lhs)
        value = self._compile(assign.rhs, target.width)
        block = DesignBlock(index=0, name=self._block_name, kind=BlockKind.CONTINUOUS,
                      body=[BoundAssign(target, value)])
        self._finish_block(block, [assign])

    def _elaborate_always_block(self, always: AlwaysBlock):
        """Classify an always block and compile its body."""
        self._block_name = f"{always.kind} at L{always.line}:{always.col}"
        edges = [s for s in always.sensitivity if s.edge]
        levels = [s for s in always.sensitivity if not s.edge]

        if always.kind == "always_comb" or always.is_star:
            kind, explicit = BlockKind.COMB, None
        elif edges and levels:
            raise ElaborationError("Mixed edge and level sensitivity", always, block=self._block_name)
        elif edges:
            kind, explicit = BlockKind.CLOCKED, None
        elif always.kind == "always_ff":
            raise ElaborationError("always_ff needs posedge/negedge triggers", always,
                                   block=self._block_name)
        else:
            kind, explicit = BlockKind.COMB, levels

        block = DesignBlock(index=0, name=self._block_name, kind=kind, body=self._bind_stmts(always.body))
        if kind is BlockKind.CLOCKED:
            self._classify_clocked(block, always, edges)
        self._finish_block(block, always.body, explicit)

    def _finish_block(self, block: DesignBlock, items: list[ASTNode],
                      levels: Optional[list[SensItem]] = None):
        """Attach read/write sets and level triggers, then add the block."""
        reads, writes = collect_accesses(items)
        block.reads = frozenset(self._signal_indices(reads))
        block.writes = frozenset(self._signal_indices(writes))

        if block.kind is not BlockKind.CLOCKED:
            if levels is None:
                block.triggers = [Trigger(i) for i in sorted(block.reads)]
            else:
                block.triggers = [Trigger(self._resolve_signal(s.signal).index) for s in levels]

        self.design.add_block(block)
        logger.debug("%s: reads %s, writes %s", block.name,
                     sorted(self.design.signals[i].name for i in block.reads),
                     sorted(self.design.signals[i].name for i in block.writes))

    def _signal_indices(self, names: set[str]) -> list[int]:
        indices = []
        for name in sorted(names):
            if name in self.parameters:
                continue
            sig = self.design.lookup(name)
            if sig is None:
                raise UnresolvedReferenceError(name, block=self._block_name)
            indices.append(sig.index)
        return indices

    def _classify_clocked(self, block: DesignBlock, always: AlwaysBlock, edges: list[SensItem]):
        """Pick the clock and the optional reset out of the edge triggers."""
        block.triggers = [
            Trigger(self._resolve_signal(item.signal).index,
                    Edge.POSEDGE if item.edge == "posedge" else Edge.NEGEDGE)
            for item in edges
        ]

        reset = self._find_reset(always.body)
        reset_trigger = None
        if reset is not None and len(block.triggers) > 1:
            for trigger in block.triggers:
                if trigger.signal == reset[0].index:
                    reset_trigger = trigger

        clocks = [t for t in block.triggers if reset_trigger is None or t.signal != reset_trigger.signal]
        if len(clocks) != 1:
            raise ElaborationError(
                f"Cannot identify a single clock among {len(block.triggers)} edge triggers",
                always, block=block.name)
        block.clock = clocks[0].signal

        if reset is None:
            return
        sig, level = reset
        if reset_trigger is not None:
            expected = Edge.NEGEDGE if level == 0 else Edge.POSEDGE
            if reset_trigger.edge is not expected:
                logger.warning("%s: reset '%s' is active-%s but triggered on %s", block.name,
                               sig.name, "low" if level == 0 else "high",
                               reset_trigger.edge.name.lower())
        top_if = block.body[0]
        block.reset = ResetInfo(signal=sig.index, active_level=level,
                                asynchronous=reset_trigger is not None,
                                reset_body=top_if.then_body, run_body=top_if.else_body)
        logger.debug("%s: clock %s, %s reset %s", block.name, self.design.signals[block.clock].name,
                     "async" if block.reset.asynchronous else "sync", sig.name)

    def _find_reset(self, body: list[Statement]) -> Optional[tuple[Signal, int]]:
        """Recognize `if (!rst)`, `if (~rst)`, `if (rst)`, `if (rst == 0)` and `if (rst == 1)`."""
        while len(body) == 1 and isinstance(body[0], Block):
            body = body[0].stmts
        if len(body) != 1 or not isinstance(body[0], IfStatement):
            return None
        cond = body[0].cond

        if isinstance(cond, Identifier):
            ident, level = cond, 1
        elif isinstance(cond, UnaryOp) and cond.op in ("!", "~") and isinstance(cond.operand, Identifier):
            ident, level = cond.operand, 0
        elif (isinstance(cond, BinaryOp) and cond.op in ("==", "===")
              and isinstance(cond.left, Identifier) and isinstance(cond.right, NumberLiteral)
              and cond.right.value in (0, 1) and not cond.right.fill):
            ident, level = cond.left, cond.right.value
        else:
            return None

        sig = self.design.lookup(ident.name)
        if sig is None or sig.width != 1:
            return None
        return sig, level

    def _check_drivers(self):
        """Every signal has at most one driving block; inputs have none."""
        drivers: dict[int, DesignBlock] = {}
        for block in self.design.blocks:
            for idx in sorted(block.writes):
                sig = self.design.signals[idx]
                if sig.direction is PortDir.INPUT:
                    raise MultipleDriversError(sig.name, "stimulus", block.name)
                if idx in drivers:
                    raise MultipleDriversError(sig.name, drivers[idx].name, block.name)
                drivers[idx] = block

    def _register_sensitivity(self):
        for block in self.design.blocks:
            if not block.triggers:
                logger.warning("%s has an empty sensitivity list; it only runs at time 0", block.name)
            for trigger in block.triggers:
                sig = self.design.signals[trigger.signal]
                if trigger.edge is Edge.ANY:
                    if block.index not in sig.fanout:
                        sig.fanout.append(block.index)
                else:
                    sig.edge_fanout.append((block.index, trigger.edge))

    # ============================================================
    # Statements and assignment targets
    # ============================================================

    def _bind_stmts(self, stmts: list[Statement]) -> list:
        bound = []
        for stmt in stmts:
            if isinstance(stmt, Block):
                bound.extend(self._bind_stmts(stmt.stmts))
            else:
                bound.append(self._bind_stmt(stmt))
        return bound

    def _bind_stmt(self, stmt: Statement):
        if isinstance(stmt, (BlockingAssign, NonBlockingAssign)):
            target = self._bind_target(stmt.lhs)
            value = self._compile(stmt.rhs, target.width)
            return BoundAssign(target, value, nonblocking=isinstance(stmt, NonBlockingAssign))

        if isinstance(stmt, IfStatement):
            return BoundIf(self._compile(stmt.cond),
                           self._bind_stmts(stmt.then_body),
                           self._bind_stmts(stmt.else_body))

        if isinstance(stmt, CaseStatement):
            return self._bind_case(stmt)

        raise ElaborationError(f"Unsupported statement: {type(stmt).__name__}", stmt)

    def _bind_case(self, stmt: CaseStatement) -> BoundCase:
        # Selector and labels are compared at the widest of them all
        labels = [v for item in stmt.items for v in item.values]
        width = max([self._expr_width(stmt.expr)] + [self._expr_width(v) for v in labels])

        case = BoundCase(self._compile(stmt.expr, width))
        for item in stmt.items:
            bound = BoundCaseItem(body=self._bind_stmts(item.body))
            for value in item.values:
                care = mask(width)
                if stmt.kind in ("casez", "casex") and isinstance(value, NumberLiteral):
                    care &= ~value.wildcard
                bound.labels.append((self._compile(value, width), care))
            case.items.append(bound)
        case.default = self._bind_stmts(stmt.default)
        return case

    def _bind_target(self, lhs: Expr) -> BoundTarget:
        """Bind an assignment target: name, bit/part select, or concatenation."""
        if isinstance(lhs, Concat):
            parts = []
            for part in lhs.parts:
                parts.extend(self._bind_target(part).parts)
            return BoundTarget(tuple(parts))

        if isinstance(lhs, Identifier):
            sig = self._target_signal(lhs)
            return BoundTarget((TargetPart(sig.index, 0, sig.width),))

        if isinstance(lhs, BitSelect) and isinstance(lhs.target, Identifier):
            sig = self._target_signal(lhs.target)
            if lhs.lsb is not None:
                offset, width = self._const_part(sig.name, sig.range, lhs)
                return BoundTarget((TargetPart(sig.index, offset, width),))
            if self._is_const(lhs.msb):
                offset = self._const_bit(sig.name, sig.range, lhs)
                return BoundTarget((TargetPart(sig.index, offset, 1),))
            index = self._compile(lhs.msb)
            return BoundTarget((TargetPart(sig.index, 0, 1, index, sig.range.msb, sig.range.lsb),))

        raise ElaborationError(f"Invalid assignment target: {type(lhs).__name__}", lhs,
                               block=self._block_name)

    def _target_signal(self, ident: Identifier) -> Signal:
        if ident.name in self.parameters:
            raise ElaborationError(f"Cannot assign to parameter '{ident.name}'", ident,
                                   signal=ident.name, block=self._block_name)
        return self._resolve_signal(ident)

    def _resolve_signal(self, ident: Identifier) -> Signal:
        sig = self.design.lookup(ident.name)
        if sig is None:
            raise UnresolvedReferenceError(ident.name, ident, block=self._block_name)
        return sig

    def _const_bit(self, name: str, rng: BitWidth, node: BitSelect) -> int:
        index = self._eval_const_expr(node.msb)
        if not rng.contains(index):
            raise WidthMismatchError(f"Bit select {name}[{index}] is outside [{rng.msb}:{rng.lsb}]",
                                     node, signal=name, block=self._block_name)
        return rng.offset(index)

    def _const_part(self, name: str, rng: BitWidth, node: BitSelect) -> tuple[int, int]:
        """Return (offset, width) of a constant part select."""
        msb = self._eval_const_expr(node.msb)
        lsb = self._eval_const_expr(node.lsb)
        if not (rng.contains(msb) and rng.contains(lsb)):
            raise WidthMismatchError(f"Part select {name}[{msb}:{lsb}] is outside [{rng.msb}:{rng.lsb}]",
                                     node, signal=name, block=self._block_name)
        if msb != lsb and (msb > lsb) != rng.descending:
            raise WidthMismatchError(f"Part select {name}[{msb}:{lsb}] is reversed against [{rng.msb}:{rng.lsb}]",
                                     node, signal=name, block=self._block_name)
        return rng.offset(lsb), abs(msb - lsb) + 1

    # ============================================================
    # Expression compilation
    # ============================================================

    def _compile(self, expr: Expr, context: int = 0) -> BoundExpr:
        """Compile an expression evaluated in a context of `context` bits."""
        widths = self._self_widths(expr)
        program = self._emit(expr, context, widths)
        return BoundExpr(tuple(program), max(widths[id(expr)], context))

    def _expr_width(self, expr: Expr) -> int:
        return self._self_widths(expr)[id(expr)]

    def _operands(self, node: Expr) -> list[Expr]:
        if isinstance(node, UnaryOp):
            return [node.operand]
        if isinstance(node, BinaryOp):
            return [node.left, node.right]
        if isinstance(node, TernaryOp):
            return [node.cond, node.true_val, node.false_val]
        if isinstance(node, Concat):
            return list(node.parts)
        if isinstance(node, Repeat):
            return [node.value]
        if isinstance(node, BitSelect) and node.lsb is None and not self._is_const(node.msb):
            return [node.msb]
        return []

    def _self_widths(self, root: Expr) -> dict[int, int]:
        """Self-determined width of every node, computed bottom-up without recursion."""
        widths: dict[int, int] = {}
        work = [(root, False)]
        while work:
            node, expanded = work.pop()
            if expanded:
                widths[id(node)] = self._node_width(node, widths)
            else:
                work.append((node, True))
                for child in self._operands(node):
                    work.append((child, False))
        return widths

    def _node_width(self, node: Expr, widths: dict[int, int]) -> int:
        if isinstance(node, NumberLiteral):
            if node.fill:
                return 1
            if node.width is not None:
                return node.width
            return max(32, node.value.bit_length())

        if isinstance(node, Identifier):
            sig = self.design.lookup(node.name)
            if sig is not None:
                return sig.width
            if node.name in self.parameters:
                return self.parameters[node.name].width
            raise UnresolvedReferenceError(node.name, node, block=self._block_name)

        if isinstance(node, BitSelect):
            name, rng, _ = self._select_source(node)
            if node.lsb is not None:
                return self._const_part(name, rng, node)[1]
            if self._is_const(node.msb):
                self._const_bit(name, rng, node)
            return 1

        if isinstance(node, UnaryOp):
            if node.op in _CONTEXT_UNARY_OPS:
                return widths[id(node.operand)]
            return 1

        if isinstance(node, BinaryOp):
            if node.op in _COMPARE_OPS or node.op in _LOGICAL_OPS:
                return 1
            if node.op in _SHIFT_OPS:
                return widths[id(node.left)]
            return max(widths[id(node.left)], widths[id(node.right)])

        if isinstance(node, TernaryOp):
            return max(widths[id(node.true_val)], widths[id(node.false_val)])

        if isinstance(node, Concat):
            return sum(widths[id(p)] for p in node.parts)

        if isinstance(node, Repeat):
            count = self._eval_const_expr(node.count)
            if count < 1:
                raise ElaborationError(f"Replication count must be positive, got {count}", node,
                                       block=self._block_name)
            return count * widths[id(node.value)]

        if isinstance(node, FuncCall):
            return 32

        raise ElaborationError(f"Unsupported expression type: {type(node).__name__}", node)

    def _select_source(self, node: BitSelect) -> tuple[str, BitWidth, tuple]:
        """Name, declared range and load instruction of a select's base."""
        if not isinstance(node.target, Identifier):
            raise ElaborationError("Selects are only supported on named signals", node,
                                   block=self._block_name)
        name = node.target.name
        sig = self.design.lookup(name)
        if sig is not None:
            return name, sig.range, (Op.LOAD, sig.index)
        if name in self.parameters:
            param = self.parameters[name]
            return name, param.range or BitWidth.from_width(param.width), (Op.CONST, param.value)
        raise UnresolvedReferenceError(name, node.target, block=self._block_name)

    def _emit(self, root: Expr, context: int, widths: dict[int, int]) -> list[tuple]:
        """Emit the postfix program. Work items are (node, context) or (None, instruction)."""
        program: list[tuple] = []
        work: list[tuple] = [(root, context)]

        while work:
            node, ctx = work.pop()
            if node is None:
                program.append(ctx)
                continue

            width = max(widths[id(node)], ctx)

            if isinstance(node, NumberLiteral):
                value = mask(width) if node.fill and node.value else node.value
                program.append((Op.CONST, value))

            elif isinstance(node, Identifier):
                sig = self.design.lookup(node.name)
                if sig is not None:
                    program.append((Op.LOAD, sig.index))
                else:
                    program.append((Op.CONST, self.parameters[node.name].value))

            elif isinstance(node, BitSelect):
                name, rng, load = self._select_source(node)
                program.append(load)
                if node.lsb is not None:
                    offset, part_width = self._const_part(name, rng, node)
                    program.append((Op.SLICE, offset, part_width))
                elif self._is_const(node.msb):
                    program.append((Op.SLICE, self._const_bit(name, rng, node), 1))
                else:
                    work.append((None, (Op.INDEX, rng.msb, rng.lsb)))
                    work.append((node.msb, 0))

            elif isinstance(node, UnaryOp):
                if node.op in _CONTEXT_UNARY_OPS:
                    work.append((None, (Op.UNARY, node.op, width, width)))
                    work.append((node.operand, width))
                else:
                    work.append((None, (Op.UNARY, node.op, 1, widths[id(node.operand)])))
                    work.append((node.operand, 0))

            elif isinstance(node, BinaryOp):
                if node.op in _COMPARE_OPS:
                    operand_ctx = max(widths[id(node.left)], widths[id(node.right)])
                    left_ctx, right_ctx, op_width = operand_ctx, operand_ctx, 1
                elif node.op in _LOGICAL_OPS:
                    left_ctx, right_ctx, op_width = 0, 0, 1
                elif node.op in _SHIFT_OPS:
                    left_ctx, right_ctx, op_width = width, 0, width
                else:
                    left_ctx, right_ctx, op_width = width, width, width
                work.append((None, (Op.BINARY, node.op, op_width)))
                work.append((node.right, right_ctx))
                work.append((node.left, left_ctx))

            elif isinstance(node, TernaryOp):
                work.append((None, (Op.TERNARY,)))
                work.append((node.false_val, width))
                work.append((node.true_val, width))
                work.append((node.cond, 0))

            elif isinstance(node, Concat):
                work.append((None, (Op.CONCAT, tuple(widths[id(p)] for p in node.parts))))
                for part in reversed(node.parts):
                    work.append((part, 0))

            elif isinstance(node, Repeat):
                value_width = widths[id(node.value)]
                work.append((None, (Op.REPLICATE, widths[id(node)] // value_width, value_width)))
                work.append((node.value, 0))

            elif isinstance(node, FuncCall):
                program.append((Op.CONST, self._eval_const_expr(node)))

            else:
                raise ElaborationError(f"Unsupported expression type: {type(node).__name__}", node)

        return program

    # ============================================================
    # Constant evaluation
    # ============================================================

    def _is_const(self, expr: Expr) -> bool:
        """True when the expression only references parameters."""
        collector = AccessCollector()
        collector.visit(expr)
        return all(name in self.parameters for name in collector.reads)

    def _eval_const_expr(self, expr: Expr) -> int:
        """Evaluate a constant expression (parameters, ranges, indices)."""
        if isinstance(expr, NumberLiteral):
            return expr.value

        elif isinstance(expr, Identifier):
            if expr.name in self.parameters:
                return self.parameters[expr.name].value
            if self.design is not None and self.design.lookup(expr.name) is not None:
                raise ElaborationError(f"'{expr.name}' is not a constant", expr, signal=expr.name)
            raise UnresolvedReferenceError(expr.name, expr, block=self._block_name)

        elif isinstance(expr, UnaryOp):
            value = self._eval_const_expr(expr.operand)
            if expr.op == "-":
                return -value
            if expr.op == "+":
                return value
            if expr.op == "~":
                return ~value & mask(max(32, value.bit_length()))
            if expr.op == "!":
                return int(value == 0)

        elif isinstance(expr, BinaryOp):
            left = self._eval_const_expr(expr.left)
            right = self._eval_const_expr(expr.right)
            if expr.op in _CONST_BINARY:
                return _CONST_BINARY[expr.op](left, right)

        elif isinstance(expr, TernaryOp):
            if self._eval_const_expr(expr.cond):
                return self._eval_const_expr(expr.true_val)
            return self._eval_const_expr(expr.false_val)

        elif isinstance(expr, FuncCall):
            if expr.name == "$clog2" and len(expr.args) == 1:
                return clog2(self._eval_const_expr(expr.args[0]))
            raise ElaborationError(f"Unsupported system function {expr.name}", expr)

        raise ElaborationError(f"Cannot evaluate non-constant expression: {type(expr).__name__}", expr)


def elaborate(ast: SourceFile, overrides: Optional[dict[str, int]] = None,
              top: Optional[str] = None) -> Design:
    """
    Convenience function to elaborate an AST.

    Args:
        ast: Parsed source
        overrides: Parameter values replacing the declared defaults
        top: Module to elaborate when the file has several

    Returns:
        Elaborated design
    """
    elaborator = Elaborator(overrides)
    return elaborator.elaborate(ast, top)
