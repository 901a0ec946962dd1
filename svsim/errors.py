"""
Base error type shared by every stage of the pipeline.

Each stage defines its own subclass next to the code that raises it
(LexerError in the lexer, ParseError in the parser, and so on).
"""

from typing import Optional


class SvSimError(Exception):
    """Terminal error raised by one stage of lex -> parse -> elaborate -> simulate."""

    stage: str = "core"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col

    @property
    def location(self) -> str:
        if self.line is None:
            return ""
        return f"L{self.line}:{self.col}"
