"""
Hand-written lexer for the supported SystemVerilog subset.

Handles:
  - Number formats: plain decimal, sized and unsized based literals
    (8'hFF, 4'b1010, 3'd7, 'hA) and the '0 / '1 fill literals
  - Single and multi-character operators
  - // and /* */ comments
  - `timescale (emitted as a DIRECTIVE token); other directives are skipped

Tokens are produced lazily: iterating a Lexer scans the buffer on demand and
every new iteration starts over from the beginning of the source with a
cursor of its own.
"""

import logging
from typing import Iterator, Optional

from svsim.errors import SvSimError
from svsim.hdl_parser.tokens import Token, TokenType, KEYWORDS

logger = logging.getLogger(__name__)


class LexerError(SvSimError):
    stage = "lex"

    def __init__(self, msg: str, line: int, col: int, char: Optional[str] = None):
        super().__init__(f"Lexer error at L{line}:{col}: {msg}", line, col)
        self.reason = msg
        self.char = char


_BASES = {"b": 2, "o": 8, "d": 10, "h": 16}
_BITS_PER_DIGIT = {2: 1, 8: 3, 16: 4}
_WILDCARD_DIGITS = "xz?"

THREE_CHAR = {
    "<<<": TokenType.ALSHIFT,
    ">>>": TokenType.ARSHIFT,
    "===": TokenType.CASE_EQ,
    "!==": TokenType.CASE_NEQ,
}

TWO_CHAR = {
    "<<": TokenType.LSHIFT,
    ">>": TokenType.RSHIFT,
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "&&": TokenType.LAND,
    "||": TokenType.LOR,
    "~&": TokenType.NAND,
    "~|": TokenType.NOR,
    "~^": TokenType.XNOR,
    "^~": TokenType.XNOR,
}

ONE_CHAR = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "&": TokenType.AMP,
    "|": TokenType.PIPE,
    "^": TokenType.CARET,
    "~": TokenType.TILDE,
    "!": TokenType.BANG,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "?": TokenType.QUESTION,
    ":": TokenType.COLON,
    "@": TokenType.AT,
    "#": TokenType.HASH,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ";": TokenType.SEMICOLON,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "=": TokenType.ASSIGN_OP,
}


def resolve_number(raw: str, line: int = 0, col: int = 0) -> tuple[int, Optional[int], int]:
    """Parse a number literal. Returns (value, width, wildcard_mask).

    Width is None for unsized literals. x/z/? digits read as 0 and are
    reported in the wildcard mask so casez/casex can ignore them.
    """
    text = raw.replace("_", "")

    if "'" not in text:
        if not text.isdigit():
            raise LexerError(f"Malformed number {raw!r}", line, col)
        return int(text), None, 0

    size_str, rest = text.split("'", 1)
    if rest[:1] in ("s", "S"):
        raise LexerError(f"Signed literals are not supported: {raw!r}", line, col)
    if not rest or rest[0].lower() not in _BASES:
        raise LexerError(f"Missing base in literal {raw!r}", line, col)

    base = _BASES[rest[0].lower()]
    digits = rest[1:].lower()
    if not digits:
        raise LexerError(f"Missing digits in literal {raw!r}", line, col)

    width = None
    if size_str:
        width = int(size_str)
        if width == 0:
            raise LexerError(f"Zero-width literal {raw!r}", line, col)

    value = 0
    wildcard = 0
    if base == 10:
        if digits in _WILDCARD_DIGITS:
            wildcard = (1 << (width or 32)) - 1
        elif not digits.isdigit():
            raise LexerError(f"Invalid digit in decimal literal {raw!r}", line, col)
        else:
            value = int(digits)
    else:
        bits = _BITS_PER_DIGIT[base]
        for ch in digits:
            value <<= bits
            wildcard <<= bits
            if ch in _WILDCARD_DIGITS:
                wildcard |= (1 << bits) - 1
                continue
            try:
                digit = int(ch, base)
            except ValueError:
                raise LexerError(f"Invalid digit {ch!r} in base-{base} literal {raw!r}", line, col)
            value |= digit

    if width is not None:
        mask = (1 << width) - 1
        if value & ~mask:
            logger.warning("L%d:%d: literal %s does not fit in %d bits; truncating", line, col, raw, width)
        value &= mask
        wildcard &= mask

    return value, width, wildcard


class Lexer:
    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1

    def _peek(self, offset=0) -> str:
        p = self.pos + offset
        if p < len(self.source):
            return self.source[p]
        return "\0"

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _skip_whitespace_and_comments(self):
        while not self._at_end():
            ch = self._peek()

            # Whitespace
            if ch in " \t\r\n\f":
                self._advance()
                continue

            # Line comment
            if ch == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            # Block comment
            if ch == "/" and self._peek(1) == "*":
                line, col = self.line, self.col
                self._advance()  # /
                self._advance()  # *
                while True:
                    if self._at_end():
                        raise LexerError("Unterminated block comment", line, col)
                    if self._peek() == "*" and self._peek(1) == "/":
                        self._advance()  # *
                        self._advance()  # /
                        break
                    self._advance()
                continue

            break

    def _read_directive(self) -> Optional[Token]:
        """Read a compiler directive. Only `timescale produces a token."""
        start_line, start_col = self.line, self.col
        self._advance()  # `
        text = ""
        while not self._at_end() and self._peek() != "\n":
            if self._peek() == "/" and self._peek(1) in "/*":
                break
            text += self._advance()
        text = text.strip()

        if text.startswith("timescale"):
            return Token(TokenType.DIRECTIVE, text, start_line, start_col)

        logger.debug("L%d: skipping directive `%s", start_line, text)
        return None

    def _read_number(self) -> Token:
        """Read a number literal: 123, 8'hFF, 4'b1010, 3'd7, 'h1A, 'b1."""
        start_line, start_col = self.line, self.col
        num_str = ""

        # Size prefix or plain decimal number
        while not self._at_end() and (self._peek().isdigit() or self._peek() == "_"):
            num_str += self._advance()

        # Based literal: [size]'<base><digits>
        if not self._at_end() and self._peek() == "'":
            num_str += self._advance()  # consume '
            if self._peek() in "sS":
                num_str += self._advance()
            if self._peek().lower() in _BASES:
                num_str += self._advance()  # consume base char
                while not self._at_end() and (self._peek().isalnum() or self._peek() in "_?"):
                    num_str += self._advance()

        value, width, wildcard = resolve_number(num_str, start_line, start_col)
        return Token(TokenType.NUMBER, num_str, start_line, start_col,
                     number=value, width=width, wildcard=wildcard)

    def _read_fill_literal(self) -> Token:
        """Read '0 or '1; 'x and 'z read as '0 in the two-state model."""
        start_line, start_col = self.line, self.col
        raw = self._advance() + self._advance()
        value = 1 if raw == "'1" else 0
        return Token(TokenType.NUMBER, raw, start_line, start_col, number=value, fill=True)

    def _read_ident_or_keyword(self) -> Token:
        start_line, start_col = self.line, self.col
        ident = ""
        while not self._at_end() and (self._peek().isalnum() or self._peek() in "_$"):
            ident += self._advance()

        tt = KEYWORDS.get(ident, TokenType.IDENT)
        return Token(tt, ident, start_line, start_col)

    def _next_token(self) -> Optional[Token]:
        ch = self._peek()
        start_line, start_col = self.line, self.col

        if ch == "`":
            return self._read_directive()

        # Numbers (also unsized based literals like 'h1A)
        if ch.isdigit():
            return self._read_number()

        if ch == "'":
            nxt = self._peek(1)
            if nxt.lower() in _BASES or nxt in "sS":
                return self._read_number()
            if nxt in "01xXzZ" and not (self._peek(2).isalnum() or self._peek(2) == "_"):
                return self._read_fill_literal()
            raise LexerError(f"Unexpected character: {ch!r}", start_line, start_col, char=ch)

        # Identifiers, keywords and system function names
        if ch.isalpha() or ch == "_" or ch == "$":
            return self._read_ident_or_keyword()

        ch3 = self.source[self.pos:self.pos + 3]
        if ch3 in THREE_CHAR:
            self._advance(); self._advance(); self._advance()
            return Token(THREE_CHAR[ch3], ch3, start_line, start_col)

        ch2 = self.source[self.pos:self.pos + 2]
        if ch2 in TWO_CHAR:
            self._advance(); self._advance()
            return Token(TWO_CHAR[ch2], ch2, start_line, start_col)

        if ch in ONE_CHAR:
            self._advance()
            return Token(ONE_CHAR[ch], ch, start_line, start_col)

        raise LexerError(f"Unexpected character: {ch!r}", start_line, start_col, char=ch)

    def __iter__(self) -> Iterator[Token]:
        """Scan lazily from the start of the buffer, ending with EOF."""
        # Each iteration owns its cursor
        return Lexer(self.source, self.filename)._scan()

    def _scan(self) -> Iterator[Token]:
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break
            tok = self._next_token()
            if tok is not None:
                yield tok
        yield Token(TokenType.EOF, "", self.line, self.col)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source. Returns list of tokens ending with EOF."""
        return list(self)


def tokenize(source: str, filename: str = "<input>") -> Iterator[Token]:
    """Lazily tokenize source code."""
    return iter(Lexer(source, filename))


def lex(source: str, filename: str = "<input>") -> list[Token]:
    """Convenience function: lex source code into tokens."""
    return Lexer(source, filename).tokenize()
