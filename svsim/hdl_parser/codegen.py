"""
SystemVerilog code generation from the AST.

Prints any AST node back to re-parseable source. Binary and ternary
expressions are fully parenthesized, so parsing the output again yields a
structurally equal tree.
"""

from __future__ import annotations
from svsim.hdl_parser.ast_nodes import *


class VerilogCodeGenerator:
    """
    Generates SystemVerilog source code from AST nodes.

    Statements and module items render to lists of lines; expressions
    render to strings.
    """

    def __init__(self, indent_str: str = "    "):
        self.indent_str = indent_str

    def generate(self, node: ASTNode) -> str:
        """Generate source code from an AST node."""
        if isinstance(node, SourceFile):
            return self._source_file(node)
        if isinstance(node, Module):
            return "\n".join(self._module(node)) + "\n"
        if isinstance(node, (Statement, ContinuousAssign, AlwaysBlock, NetDecl, ParamDecl)):
            return "\n".join(self._item(node, 0)) + "\n"
        return self.expr(node)

    def _pad(self, depth: int) -> str:
        return self.indent_str * depth

    # ============================================================
    # Top-level
    # ============================================================

    def _source_file(self, node: SourceFile) -> str:
        chunks = []
        if node.timescale is not None:
            chunks.append(f"`timescale {node.timescale.unit}/{node.timescale.precision}\n")
        chunks.extend("\n".join(self._module(m)) + "\n" for m in node.modules)
        return "\n".join(chunks)

    def _module(self, node: Module) -> list[str]:
        header = f"module {node.name}"
        lines = []

        if node.params:
            params = [f"{self._pad(1)}{self._param_text(p)}" for p in node.params]
            lines.append(header + " #(")
            lines.append(",\n".join(params))
            header = ")"

        if node.ports:
            ports = [f"{self._pad(1)}{self._port_text(p)}" for p in node.ports]
            lines.append(header + " (")
            lines.append(",\n".join(ports))
            header = ")"

        lines.append(header + ";")
        for item in node.body:
            lines.append("")
            lines.extend(self._item(item, 1))
        lines.append("")
        lines.append("endmodule")
        return lines

    # ============================================================
    # Declarations
    # ============================================================

    def _range_text(self, node: Optional[Range]) -> str:
        if node is None:
            return ""
        return f"[{self.expr(node.msb)}:{self.expr(node.lsb)}] "

    def _param_text(self, node: ParamDecl) -> str:
        return f"{node.kind} {self._range_text(node.range)}{node.name} = {self.expr(node.value)}"

    def _port_text(self, node: PortDecl) -> str:
        net = "" if node.net_type == "wire" else f"{node.net_type} "
        return f"{node.direction} {net}{self._range_text(node.range)}{node.name}"

    def _net_text(self, node: NetDecl) -> str:
        text = f"{node.net_type} {self._range_text(node.range)}{node.name}"
        if node.init_value is not None:
            text += f" = {self.expr(node.init_value)}"
        return text + ";"

    # ============================================================
    # Module items and statements
    # ============================================================

    def _item(self, node: ASTNode, depth: int) -> list[str]:
        pad = self._pad(depth)

        if isinstance(node, NetDecl):
            return [pad + self._net_text(node)]
        if isinstance(node, ParamDecl):
            return [pad + self._param_text(node) + ";"]
        if isinstance(node, ContinuousAssign):
            return [f"{pad}assign {self.expr(node.lhs)} = {self.expr(node.rhs)};"]
        if isinstance(node, AlwaysBlock):
            head = node.kind
            if node.kind != "always_comb":
                events = "*" if node.is_star else " or ".join(self._sens_text(s) for s in node.sensitivity)
                head += f" @({events})"
            return self._begin_end(pad + head + " begin", node.body, depth)
        if isinstance(node, BlockingAssign):
            return [f"{pad}{self.expr(node.lhs)} = {self.expr(node.rhs)};"]
        if isinstance(node, NonBlockingAssign):
            return [f"{pad}{self.expr(node.lhs)} <= {self.expr(node.rhs)};"]
        if isinstance(node, IfStatement):
            lines = self._begin_end(f"{pad}if ({self.expr(node.cond)}) begin", node.then_body, depth)
            if node.else_body:
                else_lines = self._begin_end(" else begin", node.else_body, depth)
                lines[-1] += else_lines[0]
                lines.extend(else_lines[1:])
            return lines
        if isinstance(node, CaseStatement):
            return self._case_lines(node, depth)
        if isinstance(node, Block):
            head = f"{pad}begin : {node.name}" if node.name else f"{pad}begin"
            return self._begin_end(head, node.stmts, depth)

        raise NotImplementedError(f"Code generation for {node.__class__.__name__} not implemented")

    def _begin_end(self, head: str, stmts: list[Statement], depth: int) -> list[str]:
        """`head`, the statements one level deeper, then a closing 'end'."""
        lines = [head]
        for stmt in stmts:
            lines.extend(self._item(stmt, depth + 1))
        lines.append(self._pad(depth) + "end")
        return lines

    def _case_lines(self, node: CaseStatement, depth: int) -> list[str]:
        pad = self._pad(depth + 1)
        lines = [f"{self._pad(depth)}{node.kind} ({self.expr(node.expr)})"]
        for item in node.items:
            labels = ", ".join(self.expr(v) for v in item.values)
            lines.extend(self._begin_end(f"{pad}{labels}: begin", item.body, depth + 1))
        if node.default:
            lines.extend(self._begin_end(f"{pad}default: begin", node.default, depth + 1))
        lines.append(f"{self._pad(depth)}endcase")
        return lines

    def _sens_text(self, node: SensItem) -> str:
        name = self.expr(node.signal)
        return f"{node.edge} {name}" if node.edge else name

    # ============================================================
    # Expressions
    # ============================================================

    def expr(self, node: Expr) -> str:
        """Render an expression."""
        method = getattr(self, f"_expr_{node.__class__.__name__}", None)
        if method is None:
            raise NotImplementedError(f"Code generation for {node.__class__.__name__} not implemented")
        return method(node)

    def _expr_NumberLiteral(self, node: NumberLiteral) -> str:
        return node.raw

    def _expr_Identifier(self, node: Identifier) -> str:
        return node.name

    def _expr_BitSelect(self, node: BitSelect) -> str:
        index = self.expr(node.msb)
        if node.lsb is not None:
            index += f":{self.expr(node.lsb)}"
        return f"{self.expr(node.target)}[{index}]"

    def _expr_UnaryOp(self, node: UnaryOp) -> str:
        operand = self.expr(node.operand)
        # "- -a" and "~ &a" would otherwise fuse into other operators
        if isinstance(node.operand, UnaryOp):
            operand = f"({operand})"
        return node.op + operand

    def _expr_BinaryOp(self, node: BinaryOp) -> str:
        return f"({self.expr(node.left)} {node.op} {self.expr(node.right)})"

    def _expr_TernaryOp(self, node: TernaryOp) -> str:
        return f"({self.expr(node.cond)} ? {self.expr(node.true_val)} : {self.expr(node.false_val)})"

    def _expr_Concat(self, node: Concat) -> str:
        return "{" + ", ".join(self.expr(p) for p in node.parts) + "}"

    def _expr_Repeat(self, node: Repeat) -> str:
        parts = node.value.parts if isinstance(node.value, Concat) else [node.value]
        inner = ", ".join(self.expr(p) for p in parts)
        return f"{{{self.expr(node.count)}{{{inner}}}}}"

    def _expr_FuncCall(self, node: FuncCall) -> str:
        return f"{node.name}({', '.join(self.expr(a) for a in node.args)})"


def generate_verilog(node: ASTNode, indent_str: str = "    ") -> str:
    """
    Generate SystemVerilog code from an AST node.

    Args:
        node: The AST node to generate code from
        indent_str: String to use for indentation (default: 4 spaces)

    Returns:
        Generated source code
    """
    generator = VerilogCodeGenerator(indent_str=indent_str)
    return generator.generate(node)
