"""
Tests for procedural blocks: always_comb, always_ff, always @(...),
if/else, case/casez/casex and begin/end blocks.
"""

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from svsim.hdl_parser.parser import parse_verilog
from svsim.hdl_parser.ast_nodes import *


def always_blocks(verilog):
    mod = parse_verilog(verilog).modules[0]
    return [item for item in mod.body if isinstance(item, AlwaysBlock)]


def test_always_comb():
    """Test: always_comb has no sensitivity list"""
    ab, = always_blocks("""
    module t;
        always_comb begin
            y = a & b;
        end
    endmodule
    """)
    assert ab.kind == "always_comb"
    assert ab.sensitivity == []
    assert isinstance(ab.body[0], BlockingAssign)
    print("✓ test_always_comb")


def test_always_ff_with_async_reset():
    """Test: always_ff @(posedge clk, negedge n_rst)"""
    ab, = always_blocks("""
    module t;
        always_ff @(posedge clk, negedge n_rst) begin
            if (!n_rst)
                q <= 1'b0;
            else
                q <= d;
        end
    endmodule
    """)
    assert ab.kind == "always_ff"
    assert [(s.edge, s.signal.name) for s in ab.sensitivity] == [
        ("posedge", "clk"), ("negedge", "n_rst"),
    ]
    stmt = ab.body[0]
    assert isinstance(stmt, IfStatement)
    assert isinstance(stmt.cond, UnaryOp) and stmt.cond.op == "!"
    assert isinstance(stmt.then_body[0], NonBlockingAssign)
    assert isinstance(stmt.else_body[0], NonBlockingAssign)
    print("✓ test_always_ff_with_async_reset")


def test_sensitivity_separators():
    """Test: 'or' and ',' both separate sensitivity items"""
    ab, = always_blocks("module t; always @(a or b, c) y = a; endmodule")
    assert [s.signal.name for s in ab.sensitivity] == ["a", "b", "c"]
    assert all(s.edge == "" for s in ab.sensitivity)
    print("✓ test_sensitivity_separators")


def test_always_star():
    """Test: always @(*) and always @*"""
    for src in ["always @(*) y = a;", "always @* y = a;"]:
        ab, = always_blocks(f"module t; {src} endmodule")
        assert ab.is_star
        assert ab.sensitivity == []
    print("✓ test_always_star")


def test_if_else_chain():
    """Test: else if chains nest in else_body"""
    ab, = always_blocks("""
    module t;
        always_comb begin
            if (a) y = 1;
            else if (b) y = 2;
            else y = 3;
        end
    endmodule
    """)
    stmt = ab.body[0]
    assert len(stmt.else_body) == 1
    inner = stmt.else_body[0]
    assert isinstance(inner, IfStatement)
    assert inner.else_body[0].rhs.value == 3
    print("✓ test_if_else_chain")


def test_case_statement():
    """Test: case with multiple labels per item and default"""
    ab, = always_blocks("""
    module t;
        always_comb begin
            case (sel)
                2'd0, 2'd1: y = a;
                2'd2: begin
                    y = b;
                end
                default: y = 0;
            endcase
        end
    endmodule
    """)
    case = ab.body[0]
    assert isinstance(case, CaseStatement)
    assert case.kind == "case"
    assert len(case.items) == 2
    assert [v.value for v in case.items[0].values] == [0, 1]
    assert len(case.default) == 1
    print("✓ test_case_statement")


def test_casez_wildcards():
    """Test: casez labels keep their wildcard bits"""
    ab, = always_blocks("""
    module t;
        always_comb
            casez (op)
                4'b1???: y = 1;
                default y = 0;
            endcase
    endmodule
    """)
    case = ab.body[0]
    assert case.kind == "casez"
    label = case.items[0].values[0]
    assert label.value == 0b1000
    assert label.wildcard == 0b0111
    print("✓ test_casez_wildcards")


def test_nested_and_named_blocks():
    """Test: begin : name ... end, nested begin inside a statement list"""
    ab, = always_blocks("""
    module t;
        always_comb begin : comb_logic
            x = 1;
            begin
                y = 2;
            end
            ;
        end : comb_logic
    endmodule
    """)
    assert len(ab.body) == 2
    assert isinstance(ab.body[1], Block)
    assert isinstance(ab.body[1].stmts[0], BlockingAssign)
    print("✓ test_nested_and_named_blocks")


def test_bit_select_targets():
    """Test: procedural targets with constant and dynamic selects"""
    ab, = always_blocks("""
    module t;
        always_ff @(posedge clk) begin
            q[3] <= d;
            q[7:4] <= 4'hF;
            mem[addr] <= d;
        end
    endmodule
    """)
    assert all(isinstance(s.lhs, BitSelect) for s in ab.body)
    assert ab.body[2].lhs.msb.name == "addr"
    print("✓ test_bit_select_targets")


def run_all():
    tests = [
        test_always_comb,
        test_always_ff_with_async_reset,
        test_sensitivity_separators,
        test_always_star,
        test_if_else_chain,
        test_case_statement,
        test_casez_wildcards,
        test_nested_and_named_blocks,
        test_bit_select_targets,
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
    print(f"Procedural Block Tests: {passed} passed, {failed} failed, {passed+failed} total")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    print("Running procedural block tests...\n")
    run_all()
