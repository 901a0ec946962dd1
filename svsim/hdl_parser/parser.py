"""
Recursive-descent parser for the supported SystemVerilog subset.

Supported constructs:
  - Module declarations with #(parameter ...) lists and ANSI ports
  - wire / reg / logic declarations, optionally initialized
  - parameter / localparam
  - assign (continuous assignment)
  - always_comb, always_ff @(...), always @(posedge clk), always @(*)
  - if/else, case/casex/casez, begin/end blocks
  - Expressions: arithmetic, bitwise, logical, comparison, shift,
    reduction, ternary, concatenation, replication, bit-select,
    part-select, $clog2
  - `timescale

Parsing is fail-fast: the first syntax error aborts with a ParseError
carrying the expected kind and the offending token.
"""

from __future__ import annotations
import logging
import re
from typing import Optional

from svsim.errors import SvSimError
from svsim.hdl_parser.tokens import Token, TokenType
from svsim.hdl_parser.lexer import lex
from svsim.hdl_parser.ast_nodes import *

logger = logging.getLogger(__name__)


class ParseError(SvSimError):
    stage = "parse"

    def __init__(self, msg: str, token: Token, expected: str = ""):
        super().__init__(
            f"Parse error at L{token.line}:{token.col}: {msg} (got {token.type.name} = {token.value!r})",
            token.line, token.col,
        )
        self.token = token
        self.expected = expected


_TIMESCALE_RE = re.compile(
    r"timescale\s+(\d+\s*(?:s|ms|us|ns|ps|fs))\s*/\s*(\d+\s*(?:s|ms|us|ns|ps|fs))$"
)

_NET_TYPES = (TokenType.WIRE, TokenType.REG, TokenType.LOGIC)
_DIRECTIONS = (TokenType.INPUT, TokenType.OUTPUT, TokenType.INOUT)

_UNARY_OPS = (
    TokenType.TILDE, TokenType.BANG, TokenType.MINUS, TokenType.PLUS,
    TokenType.AMP, TokenType.PIPE, TokenType.CARET,
    TokenType.NAND, TokenType.NOR, TokenType.XNOR,
)

# Binary operator binding strength, loosest first
_BINARY_PRECEDENCE = {
    TokenType.LOR: 1,
    TokenType.LAND: 2,
    TokenType.PIPE: 3,
    TokenType.CARET: 4, TokenType.XNOR: 4,
    TokenType.AMP: 5,
    TokenType.EQ: 6, TokenType.NEQ: 6, TokenType.CASE_EQ: 6, TokenType.CASE_NEQ: 6,
    TokenType.LT: 7, TokenType.LE: 7, TokenType.GT: 7, TokenType.GE: 7,
    TokenType.LSHIFT: 8, TokenType.RSHIFT: 8, TokenType.ALSHIFT: 8, TokenType.ARSHIFT: 8,
    TokenType.PLUS: 9, TokenType.MINUS: 9,
    TokenType.STAR: 10, TokenType.SLASH: 10, TokenType.PERCENT: 10,
}

# Alternate spellings folded to one operator name
_OP_SPELLING = {"^~": "~^"}


class Parser:
    """Recursive-descent parser producing an AST."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    # ---- Token navigation ----

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset=0) -> Token:
        p = self.pos + offset
        if p < len(self.tokens):
            return self.tokens[p]
        return self.tokens[-1]  # EOF

    def _at(self, *types: TokenType) -> bool:
        return self._cur().type in types

    def _eat(self, tt: TokenType) -> Token:
        tok = self._cur()
        if tok.type != tt:
            raise ParseError(f"Expected {tt.name}", tok, expected=tt.name)
        self.pos += 1
        return tok

    def _eat_if(self, tt: TokenType) -> Optional[Token]:
        if self._cur().type == tt:
            return self._eat(tt)
        return None

    def _expect_semi(self):
        self._eat(TokenType.SEMICOLON)

    # ---- Top-level ----

    def parse(self) -> SourceFile:
        """Parse a complete source file."""
        sf = SourceFile()
        try:
            while not self._at(TokenType.EOF):
                if self._at(TokenType.DIRECTIVE):
                    sf.timescale = self._parse_timescale()
                else:
                    sf.modules.append(self._parse_module())
        except RecursionError:
            raise ParseError("Expression nested too deeply", self._cur(),
                             expected="expression") from None
        logger.debug("parsed %d module(s)", len(sf.modules))
        return sf

    def _parse_timescale(self) -> Timescale:
        tok = self._eat(TokenType.DIRECTIVE)
        m = _TIMESCALE_RE.match(tok.value)
        if not m:
            raise ParseError("Malformed `timescale directive", tok, expected="timescale")
        unit, precision = (s.replace(" ", "") for s in m.groups())
        return Timescale(unit=unit, precision=precision, line=tok.line, col=tok.col)

    # ---- Module ----

    def _parse_module(self) -> Module:
        tok = self._eat(TokenType.MODULE)
        mod = Module(line=tok.line, col=tok.col)
        mod.name = self._eat(TokenType.IDENT).value

        # Optional parameter list: #(parameter ...)
        if self._eat_if(TokenType.HASH):
            self._eat(TokenType.LPAREN)
            kind = "parameter"
            while not self._at(TokenType.RPAREN):
                if self._at(TokenType.PARAMETER, TokenType.LOCALPARAM):
                    kind = self._cur().value
                    self.pos += 1
                mod.params.append(self._parse_param_assignment(kind))
                if not self._eat_if(TokenType.COMMA):
                    break
            self._eat(TokenType.RPAREN)

        # Port list
        if self._eat_if(TokenType.LPAREN):
            if not self._at(TokenType.RPAREN):
                self._parse_port_list(mod)
            self._eat(TokenType.RPAREN)

        self._expect_semi()

        # Module body
        while not self._at(TokenType.ENDMODULE):
            item = self._parse_module_item(mod)
            if item is not None:
                mod.body.append(item)

        self._eat(TokenType.ENDMODULE)
        # Optional end label: endmodule : name
        if self._eat_if(TokenType.COLON):
            self._eat(TokenType.IDENT)
        return mod

    def _parse_port_list(self, mod: Module):
        """Parse ANSI-style port declarations in the module header.

        A bare name after a comma inherits the previous port's direction,
        type and range: input [3:0] a, b
        """
        prev: Optional[PortDecl] = None
        while True:
            if prev is not None and self._at(TokenType.IDENT):
                tok = self._eat(TokenType.IDENT)
                port = PortDecl(direction=prev.direction, net_type=prev.net_type,
                                range=prev.range, name=tok.value,
                                line=tok.line, col=tok.col)
            else:
                port = self._parse_port_decl()
            mod.ports.append(port)
            prev = port
            if not self._eat_if(TokenType.COMMA):
                break

    def _parse_port_decl(self) -> PortDecl:
        """Parse a single port declaration: input [wire|reg|logic] [7:0] name"""
        tok = self._cur()
        pd = PortDecl(line=tok.line, col=tok.col)

        # Direction
        if not self._at(*_DIRECTIONS):
            raise ParseError("Expected port direction", tok, expected="INPUT")
        pd.direction = tok.value
        self.pos += 1

        # Optional: wire / reg / logic
        if self._at(*_NET_TYPES):
            pd.net_type = self._cur().value
            self.pos += 1

        # Optional: range
        if self._at(TokenType.LBRACKET):
            pd.range = self._parse_range()

        pd.name = self._eat(TokenType.IDENT).value
        return pd

    def _parse_range(self) -> Range:
        """Parse [msb:lsb]"""
        tok = self._eat(TokenType.LBRACKET)
        msb = self._parse_expr()
        self._eat(TokenType.COLON)
        lsb = self._parse_expr()
        self._eat(TokenType.RBRACKET)
        return Range(msb=msb, lsb=lsb, line=tok.line, col=tok.col)

    # ---- Module body items ----

    def _parse_module_item(self, mod: Module) -> Optional[ASTNode]:
        tok = self._cur()

        # Stray semicolon
        if self._eat_if(TokenType.SEMICOLON):
            return None

        # wire / reg / logic declaration (possibly several names)
        if self._at(*_NET_TYPES):
            mod.body.extend(self._parse_net_decls())
            return None

        # Parameter / localparam in body
        if self._at(TokenType.PARAMETER, TokenType.LOCALPARAM):
            kind = self._cur().value
            self.pos += 1
            while True:
                mod.body.append(self._parse_param_assignment(kind))
                if not self._eat_if(TokenType.COMMA):
                    break
            self._expect_semi()
            return None

        # Continuous assign (possibly several targets)
        if self._at(TokenType.ASSIGN):
            mod.body.extend(self._parse_continuous_assigns())
            return None

        # Procedural blocks
        if self._at(TokenType.ALWAYS, TokenType.ALWAYS_COMB, TokenType.ALWAYS_FF):
            return self._parse_always()

        raise ParseError("Unexpected token in module body", tok, expected="module item")

    def _parse_net_decls(self) -> list[NetDecl]:
        tok = self._cur()
        net_type = tok.value
        self.pos += 1

        rng = None
        if self._at(TokenType.LBRACKET):
            rng = self._parse_range()

        decls = []
        while True:
            name_tok = self._eat(TokenType.IDENT)
            nd = NetDecl(net_type=net_type, range=rng, name=name_tok.value,
                         line=name_tok.line, col=name_tok.col)
            # Optional initial value
            if self._eat_if(TokenType.ASSIGN_OP):
                nd.init_value = self._parse_expr()
            decls.append(nd)
            if not self._eat_if(TokenType.COMMA):
                break

        self._expect_semi()
        return decls

    def _parse_param_assignment(self, kind: str) -> ParamDecl:
        """Parse [range] NAME = expr (the keyword has already been consumed)."""
        tok = self._cur()
        pd = ParamDecl(kind=kind, line=tok.line, col=tok.col)

        if self._at(TokenType.LBRACKET):
            pd.range = self._parse_range()

        pd.name = self._eat(TokenType.IDENT).value
        self._eat(TokenType.ASSIGN_OP)
        pd.value = self._parse_expr()
        return pd

    def _parse_continuous_assigns(self) -> list[ContinuousAssign]:
        tok = self._eat(TokenType.ASSIGN)
        assigns = []
        while True:
            ca = ContinuousAssign(line=tok.line, col=tok.col)
            ca.lhs = self._parse_lvalue()
            self._eat(TokenType.ASSIGN_OP)
            ca.rhs = self._parse_expr()
            assigns.append(ca)
            if not self._eat_if(TokenType.COMMA):
                break
        self._expect_semi()
        return assigns

    # ---- Always blocks ----

    def _parse_always(self) -> AlwaysBlock:
        tok = self._cur()
        self.pos += 1
        ab = AlwaysBlock(kind=tok.value, line=tok.line, col=tok.col)

        if ab.kind == "always_comb":
            ab.body = self._parse_statement_or_block()
            return ab

        self._eat(TokenType.AT)

        # @* or @(*)
        if self._eat_if(TokenType.STAR):
            ab.is_star = True
        else:
            self._eat(TokenType.LPAREN)
            if self._eat_if(TokenType.STAR):
                ab.is_star = True
            else:
                self._parse_sensitivity_list(ab)
            self._eat(TokenType.RPAREN)

        # Body: single statement or begin...end block
        ab.body = self._parse_statement_or_block()
        return ab

    def _parse_sensitivity_list(self, ab: AlwaysBlock):
        """posedge clk or negedge rst_n / posedge clk, negedge rst_n / a or b"""
        while True:
            tok = self._cur()
            si = SensItem(line=tok.line, col=tok.col)
            if self._eat_if(TokenType.POSEDGE):
                si.edge = "posedge"
            elif self._eat_if(TokenType.NEGEDGE):
                si.edge = "negedge"
            name_tok = self._eat(TokenType.IDENT)
            si.signal = Identifier(name=name_tok.value, line=name_tok.line, col=name_tok.col)
            ab.sensitivity.append(si)

            if not (self._eat_if(TokenType.OR) or self._eat_if(TokenType.COMMA)):
                break

    def _parse_statement_or_block(self) -> list[Statement]:
        """Parse either begin...end or a single statement."""
        if self._at(TokenType.BEGIN):
            return self._parse_begin_end()[1]
        else:
            stmt = self._parse_statement()
            return [stmt] if stmt else []

    def _parse_begin_end(self) -> tuple[str, list[Statement]]:
        self._eat(TokenType.BEGIN)
        # Optional block name: begin : name
        name = ""
        if self._eat_if(TokenType.COLON):
            name = self._eat(TokenType.IDENT).value

        stmts = []
        while not self._at(TokenType.END):
            stmt = self._parse_statement()
            if stmt:
                stmts.append(stmt)
        self._eat(TokenType.END)
        # Optional end label: end : name
        if name and self._at(TokenType.COLON) and self._peek(1).type == TokenType.IDENT:
            self._eat(TokenType.COLON)
            self._eat(TokenType.IDENT)
        return name, stmts

    def _parse_statement(self) -> Optional[Statement]:
        tok = self._cur()

        # Empty statement
        if self._eat_if(TokenType.SEMICOLON):
            return None

        if self._at(TokenType.IF):
            return self._parse_if()

        if self._at(TokenType.CASE, TokenType.CASEX, TokenType.CASEZ):
            return self._parse_case()

        if self._at(TokenType.BEGIN):
            name, stmts = self._parse_begin_end()
            return Block(name=name, stmts=stmts, line=tok.line, col=tok.col)

        if self._at(TokenType.IDENT, TokenType.LBRACE):
            lhs = self._parse_lvalue()

            if self._eat_if(TokenType.ASSIGN_OP):
                rhs = self._parse_expr()
                self._expect_semi()
                return BlockingAssign(lhs=lhs, rhs=rhs, line=tok.line, col=tok.col)
            elif self._eat_if(TokenType.LE):
                rhs = self._parse_expr()
                self._expect_semi()
                return NonBlockingAssign(lhs=lhs, rhs=rhs, line=tok.line, col=tok.col)
            raise ParseError("Expected '=' or '<=' after assignment target", self._cur(),
                             expected="ASSIGN_OP")

        raise ParseError("Expected statement", tok, expected="statement")

    def _parse_if(self) -> IfStatement:
        tok = self._eat(TokenType.IF)
        self._eat(TokenType.LPAREN)
        cond = self._parse_expr()
        self._eat(TokenType.RPAREN)

        then_body = self._parse_statement_or_block()
        else_body = []

        if self._eat_if(TokenType.ELSE):
            else_body = self._parse_statement_or_block()

        return IfStatement(cond=cond, then_body=then_body, else_body=else_body,
                           line=tok.line, col=tok.col)

    def _parse_case(self) -> CaseStatement:
        tok = self._cur()
        kind = tok.value
        self._eat(tok.type)  # case / casex / casez

        self._eat(TokenType.LPAREN)
        expr = self._parse_expr()
        self._eat(TokenType.RPAREN)

        cs = CaseStatement(kind=kind, expr=expr, line=tok.line, col=tok.col)

        while not self._at(TokenType.ENDCASE):
            if self._at(TokenType.DEFAULT):
                self._eat(TokenType.DEFAULT)
                self._eat_if(TokenType.COLON)
                cs.default = self._parse_statement_or_block()
            else:
                ci = CaseItem(line=self._cur().line, col=self._cur().col)
                # Parse comma-separated values
                while True:
                    ci.values.append(self._parse_expr())
                    if not self._eat_if(TokenType.COMMA):
                        break
                self._eat(TokenType.COLON)
                ci.body = self._parse_statement_or_block()
                cs.items.append(ci)

        self._eat(TokenType.ENDCASE)
        return cs

    # ---- Assignment targets ----

    def _parse_lvalue(self) -> Expr:
        """Identifier, bit/part select, or a concatenation of those."""
        if self._at(TokenType.LBRACE):
            tok = self._eat(TokenType.LBRACE)
            parts = [self._parse_lvalue()]
            while self._eat_if(TokenType.COMMA):
                parts.append(self._parse_lvalue())
            self._eat(TokenType.RBRACE)
            if len(parts) == 1:
                return parts[0]
            return Concat(parts=parts, line=tok.line, col=tok.col)

        tok = self._eat(TokenType.IDENT)
        return self._parse_selects(Identifier(name=tok.value, line=tok.line, col=tok.col))

    # ---- Expression parsing (precedence climbing) ----

    def _parse_expr(self) -> Expr:
        return self._parse_ternary()

    def _parse_ternary(self) -> Expr:
        expr = self._parse_binary()
        if self._eat_if(TokenType.QUESTION):
            true_val = self._parse_expr()
            self._eat(TokenType.COLON)
            false_val = self._parse_ternary()
            return TernaryOp(cond=expr, true_val=true_val, false_val=false_val,
                             line=expr.line, col=expr.col)
        return expr

    def _parse_binary(self, min_prec: int = 1) -> Expr:
        """Precedence climbing over _BINARY_PRECEDENCE; every level is left-associative."""
        left = self._parse_unary()
        while True:
            prec = _BINARY_PRECEDENCE.get(self._cur().type)
            if prec is None or prec < min_prec:
                return left
            op = _OP_SPELLING.get(self._cur().value, self._cur().value)
            self.pos += 1
            right = self._parse_binary(prec + 1)
            left = BinaryOp(op=op, left=left, right=right, line=left.line, col=left.col)

    def _parse_unary(self) -> Expr:
        tok = self._cur()

        # In operand position &, |, ^ and their negations are reductions
        if self._at(*_UNARY_OPS):
            op = self._eat(self._cur().type).value
            op = _OP_SPELLING.get(op, op)
            operand = self._parse_unary()
            return UnaryOp(op=op, operand=operand, line=tok.line, col=tok.col)

        return self._parse_postfix()

    def _parse_postfix(self) -> Expr:
        return self._parse_selects(self._parse_primary())

    def _parse_selects(self, expr: Expr) -> Expr:
        # Bit select / part select: expr[idx] or expr[msb:lsb]
        while self._at(TokenType.LBRACKET):
            self._eat(TokenType.LBRACKET)
            msb = self._parse_expr()
            lsb = None
            if self._eat_if(TokenType.COLON):
                lsb = self._parse_expr()
            self._eat(TokenType.RBRACKET)
            expr = BitSelect(target=expr, msb=msb, lsb=lsb,
                             line=expr.line, col=expr.col)
        return expr

    def _parse_primary(self) -> Expr:
        tok = self._cur()

        # Number literal, already resolved by the lexer
        if self._at(TokenType.NUMBER):
            self._eat(TokenType.NUMBER)
            return NumberLiteral(raw=tok.value, value=tok.number, width=tok.width,
                                 wildcard=tok.wildcard, fill=tok.fill,
                                 line=tok.line, col=tok.col)

        # Identifier or system function call
        if self._at(TokenType.IDENT):
            name = self._eat(TokenType.IDENT).value

            if name.startswith("$"):
                self._eat(TokenType.LPAREN)
                args = []
                while not self._at(TokenType.RPAREN):
                    args.append(self._parse_expr())
                    if not self._eat_if(TokenType.COMMA):
                        break
                self._eat(TokenType.RPAREN)
                return FuncCall(name=name, args=args, line=tok.line, col=tok.col)

            return Identifier(name=name, line=tok.line, col=tok.col)

        # Parenthesized expression
        if self._at(TokenType.LPAREN):
            self._eat(TokenType.LPAREN)
            expr = self._parse_expr()
            self._eat(TokenType.RPAREN)
            return expr

        # Concatenation or replication: {a, b} or {4{a}}
        if self._at(TokenType.LBRACE):
            return self._parse_concat_or_repeat()

        raise ParseError("Expected expression", tok, expected="expression")

    def _parse_concat_or_repeat(self) -> Expr:
        tok = self._eat(TokenType.LBRACE)

        first = self._parse_expr()

        # Replication: {count{expr, ...}}
        if self._at(TokenType.LBRACE):
            inner_tok = self._eat(TokenType.LBRACE)
            parts = [self._parse_expr()]
            while self._eat_if(TokenType.COMMA):
                parts.append(self._parse_expr())
            self._eat(TokenType.RBRACE)
            self._eat(TokenType.RBRACE)
            value = parts[0] if len(parts) == 1 else Concat(parts=parts, line=inner_tok.line,
                                                             col=inner_tok.col)
            return Repeat(count=first, value=value, line=tok.line, col=tok.col)

        # Concatenation: {a, b, c, ...}
        parts = [first]
        while self._eat_if(TokenType.COMMA):
            parts.append(self._parse_expr())
        self._eat(TokenType.RBRACE)

        if len(parts) == 1:
            return parts[0]  # {a} is just a
        return Concat(parts=parts, line=tok.line, col=tok.col)


# ============================================================
# Public API
# ============================================================

def parse(tokens: list[Token]) -> SourceFile:
    """Parse a token list (ending with EOF) into an AST."""
    return Parser(list(tokens)).parse()


def parse_verilog(source: str, filename: str = "<input>") -> SourceFile:
    """Parse SystemVerilog source code into an AST."""
    tokens = lex(source, filename)
    parser = Parser(tokens)
    return parser.parse()
