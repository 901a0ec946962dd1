"""
Tests for the lexer: literals, operators, comments and directives.
"""

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from svsim.hdl_parser.lexer import Lexer, LexerError, lex, tokenize, resolve_number
from svsim.hdl_parser.tokens import TokenType


def types_of(source):
    return [t.type for t in lex(source)]


def test_keywords_and_identifiers():
    """Test: Keywords are recognized, other words are identifiers"""
    toks = lex("module counter always_ff logic my_sig $clog2 endmodule")
    assert [t.type for t in toks] == [
        TokenType.MODULE, TokenType.IDENT, TokenType.ALWAYS_FF, TokenType.LOGIC,
        TokenType.IDENT, TokenType.IDENT, TokenType.ENDMODULE, TokenType.EOF,
    ]
    assert toks[1].value == "counter"
    assert toks[5].value == "$clog2"
    print("✓ test_keywords_and_identifiers")


def test_positions():
    """Test: Tokens carry 1-based line and column"""
    toks = lex("module m;\n  wire a;\nendmodule")
    wire = toks[3]
    assert wire.type == TokenType.WIRE
    assert (wire.line, wire.col) == (2, 3)
    print("✓ test_positions")


def test_decimal_numbers():
    """Test: Plain decimal numbers are unsized"""
    toks = lex("42 1_000")
    assert toks[0].number == 42 and toks[0].width is None
    assert toks[1].number == 1000
    print("✓ test_decimal_numbers")


def test_based_literals():
    """Test: Sized and unsized based literals"""
    toks = lex("8'hFF 4'b1010 3'd7 12'o17 'hA")
    assert [(t.number, t.width) for t in toks[:-1]] == [
        (255, 8), (10, 4), (7, 3), (15, 12), (10, None),
    ]
    assert toks[0].value == "8'hFF"
    print("✓ test_based_literals")


def test_wildcard_digits():
    """Test: x/z/? digits read as 0 and are reported as wildcard bits"""
    value, width, wildcard = resolve_number("4'b1x0z")
    assert value == 0b1000
    assert width == 4
    assert wildcard == 0b0101

    value, width, wildcard = resolve_number("8'bz")
    assert value == 0 and wildcard == 0b1
    print("✓ test_wildcard_digits")


def test_oversized_literal_truncates():
    """Test: A sized literal that does not fit keeps its low bits"""
    value, width, _ = resolve_number("3'd9")
    assert width == 3
    assert value == 1
    print("✓ test_oversized_literal_truncates")


def test_fill_literals():
    """Test: '0 and '1 become fill literals"""
    toks = lex("'0 '1 'x")
    assert all(t.fill for t in toks[:-1])
    assert [t.number for t in toks[:-1]] == [0, 1, 0]
    print("✓ test_fill_literals")


def test_invalid_literals():
    """Test: Malformed literals raise LexerError"""
    for bad in ["4'b102", "0'h1", "8'sd5", "4'q3"]:
        try:
            lex(bad)
            assert False, f"Expected LexerError for {bad}"
        except LexerError as e:
            assert e.stage == "lex"
            assert e.line == 1
    print("✓ test_invalid_literals")


def test_operators_longest_match():
    """Test: Multi-character operators win over their prefixes"""
    assert types_of("<<< >>> === !== << >> == != <= >= && || ~& ~| ~^ ^~")[:-1] == [
        TokenType.ALSHIFT, TokenType.ARSHIFT, TokenType.CASE_EQ, TokenType.CASE_NEQ,
        TokenType.LSHIFT, TokenType.RSHIFT, TokenType.EQ, TokenType.NEQ,
        TokenType.LE, TokenType.GE, TokenType.LAND, TokenType.LOR,
        TokenType.NAND, TokenType.NOR, TokenType.XNOR, TokenType.XNOR,
    ]
    assert types_of("a<=b")[:-1] == [TokenType.IDENT, TokenType.LE, TokenType.IDENT]
    print("✓ test_operators_longest_match")


def test_comments_skipped():
    """Test: Line and block comments produce no tokens"""
    toks = lex("a // comment\n/* block\ncomment */ b")
    assert [t.value for t in toks[:-1]] == ["a", "b"]
    assert toks[1].line == 3
    print("✓ test_comments_skipped")


def test_unterminated_block_comment():
    """Test: Unterminated block comment is an error at its start"""
    try:
        lex("wire a;\n/* never closed")
        assert False, "Expected LexerError"
    except LexerError as e:
        assert (e.line, e.col) == (2, 1)
        assert "Unterminated" in str(e)
    print("✓ test_unterminated_block_comment")


def test_unexpected_character():
    """Test: Unknown characters raise LexerError with location"""
    try:
        lex("wire a;\n  \\")
        assert False, "Expected LexerError"
    except LexerError as e:
        assert "L2:3" in str(e)
        assert e.location == "L2:3"
        assert e.char == "\\"

    try:
        lex("assign a = 'q;")
        assert False, "Expected LexerError"
    except LexerError as e:
        assert e.char == "'"
        assert (e.line, e.col) == (1, 12)
    print("✓ test_unexpected_character")


def test_directives():
    """Test: `timescale becomes a token, other directives are skipped"""
    toks = lex("`timescale 1ns / 1ps\n`define WIDTH 8\nmodule")
    assert toks[0].type == TokenType.DIRECTIVE
    assert toks[0].value == "timescale 1ns / 1ps"
    assert toks[1].type == TokenType.MODULE
    print("✓ test_directives")


def test_lazy_iteration_restarts():
    """Test: Iterating a Lexer twice scans from the start both times"""
    lexer = Lexer("wire [3:0] a;")
    first = [(t.type, t.value) for t in lexer]
    second = [(t.type, t.value) for t in lexer]
    assert first == second
    assert first[-1][0] == TokenType.EOF

    stream = tokenize("a b")
    assert next(stream).value == "a"
    assert next(stream).value == "b"
    print("✓ test_lazy_iteration_restarts")


def test_independent_iterators():
    """Test: Interleaved iterations over one Lexer do not disturb each other"""
    lexer = Lexer("module a; endmodule")
    first = iter(lexer)
    assert next(first).value == "module"

    second = iter(lexer)
    assert next(second).value == "module"
    assert next(first).value == "a"
    assert next(second).value == "a"
    assert [t.value for t in first] == [";", "endmodule", ""]
    assert next(second).type == TokenType.SEMICOLON
    print("✓ test_independent_iterators")


def run_all():
    tests = [
        test_keywords_and_identifiers,
        test_positions,
        test_decimal_numbers,
        test_based_literals,
        test_wildcard_digits,
        test_oversized_literal_truncates,
        test_fill_literals,
        test_invalid_literals,
        test_operators_longest_match,
        test_comments_skipped,
        test_unterminated_block_comment,
        test_unexpected_character,
        test_directives,
        test_lazy_iteration_restarts,
        test_independent_iterators,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"✗ {test.__name__}: {e}")
            failed += 1
            import traceback
            traceback.print_exc()

    print(f"\n{'='*50}")
    print(f"Lexer Tests: {passed} passed, {failed} failed, {passed+failed} total")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    print("Running lexer tests...\n")
    run_all()
