"""
Token types for the supported SystemVerilog subset.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional


class TokenType(Enum):
    # Literals
    NUMBER = auto()         # 32, 8'hFF, 4'b1010, 3'd7, '0
    IDENT = auto()          # my_signal, $clog2
    DIRECTIVE = auto()      # `timescale 1ns/1ps

    # Keywords
    MODULE = auto()
    ENDMODULE = auto()
    INPUT = auto()
    OUTPUT = auto()
    INOUT = auto()
    WIRE = auto()
    REG = auto()
    LOGIC = auto()
    PARAMETER = auto()
    LOCALPARAM = auto()
    ASSIGN = auto()
    ALWAYS = auto()
    ALWAYS_COMB = auto()
    ALWAYS_FF = auto()
    BEGIN = auto()
    END = auto()
    IF = auto()
    ELSE = auto()
    CASE = auto()
    CASEX = auto()
    CASEZ = auto()
    ENDCASE = auto()
    DEFAULT = auto()
    POSEDGE = auto()
    NEGEDGE = auto()
    OR = auto()             # sensitivity list separator

    # Operators
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /
    PERCENT = auto()        # %
    AMP = auto()            # &
    PIPE = auto()           # |
    CARET = auto()          # ^
    TILDE = auto()          # ~
    BANG = auto()           # !
    NAND = auto()           # ~&
    NOR = auto()            # ~|
    XNOR = auto()           # ~^ or ^~
    LSHIFT = auto()         # <<
    RSHIFT = auto()         # >>
    ALSHIFT = auto()        # <<<
    ARSHIFT = auto()        # >>>

    LAND = auto()           # &&
    LOR = auto()            # ||

    EQ = auto()             # ==
    NEQ = auto()            # !=
    CASE_EQ = auto()        # ===
    CASE_NEQ = auto()       # !==
    LT = auto()             # <
    LE = auto()             # <=  (also non-blocking assignment)
    GT = auto()             # >
    GE = auto()             # >=

    QUESTION = auto()       # ?
    COLON = auto()          # :
    AT = auto()             # @
    HASH = auto()           # #

    # Delimiters
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACKET = auto()       # [
    RBRACKET = auto()       # ]
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    SEMICOLON = auto()      # ;
    COMMA = auto()          # ,
    DOT = auto()            # .
    ASSIGN_OP = auto()      # = (blocking assignment)

    EOF = auto()


@dataclass
class Token:
    type: TokenType
    value: str
    line: int
    col: int
    # Resolved literal, set for NUMBER tokens only
    number: Optional[int] = None
    width: Optional[int] = None     # None for unsized literals
    wildcard: int = 0               # bits written as x, z or ?
    fill: bool = False              # '0 / '1 fill literal

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


# Keyword lookup table
KEYWORDS: dict[str, TokenType] = {
    "module": TokenType.MODULE,
    "endmodule": TokenType.ENDMODULE,
    "input": TokenType.INPUT,
    "output": TokenType.OUTPUT,
    "inout": TokenType.INOUT,
    "wire": TokenType.WIRE,
    "reg": TokenType.REG,
    "logic": TokenType.LOGIC,
    "parameter": TokenType.PARAMETER,
    "localparam": TokenType.LOCALPARAM,
    "assign": TokenType.ASSIGN,
    "always": TokenType.ALWAYS,
    "always_comb": TokenType.ALWAYS_COMB,
    "always_ff": TokenType.ALWAYS_FF,
    "begin": TokenType.BEGIN,
    "end": TokenType.END,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "case": TokenType.CASE,
    "casex": TokenType.CASEX,
    "casez": TokenType.CASEZ,
    "endcase": TokenType.ENDCASE,
    "default": TokenType.DEFAULT,
    "posedge": TokenType.POSEDGE,
    "negedge": TokenType.NEGEDGE,
    "or": TokenType.OR,
}
