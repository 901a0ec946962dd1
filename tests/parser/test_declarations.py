"""
Tests for module headers, ports, parameters and net declarations.
"""

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from svsim.hdl_parser.parser import parse_verilog
from svsim.hdl_parser.ast_nodes import *


def test_empty_module():
    """Test: module name; endmodule"""
    ast = parse_verilog("module test; endmodule")
    assert len(ast.modules) == 1
    assert ast.modules[0].name == "test"
    assert ast.modules[0].ports == []
    print("✓ test_empty_module")


def test_ansi_ports():
    """Test: ANSI port list with directions, types and ranges"""
    verilog = """
    module test(
        input logic clk,
        input wire [7:0] data,
        inout d,
        output reg [3:0] q
    );
    endmodule
    """
    mod = parse_verilog(verilog).modules[0]
    assert [p.name for p in mod.ports] == ["clk", "data", "d", "q"]
    assert [p.direction for p in mod.ports] == ["input", "input", "inout", "output"]
    assert [p.net_type for p in mod.ports] == ["logic", "wire", "wire", "reg"]
    assert mod.ports[1].range.msb.value == 7
    assert mod.ports[1].range.lsb.value == 0
    assert mod.ports[0].range is None
    print("✓ test_ansi_ports")


def test_port_inherits_previous_declaration():
    """Test: input [3:0] a, b gives b the same direction and range"""
    mod = parse_verilog("module t(input [3:0] a, b, output c); endmodule").modules[0]
    a, b, c = mod.ports
    assert b.direction == "input"
    assert b.range == a.range
    assert c.direction == "output"
    assert c.range is None
    print("✓ test_port_inherits_previous_declaration")


def test_header_parameters():
    """Test: #(parameter A = 1, B = A * 2) header list"""
    verilog = """
    module test #(parameter NUM_CNT_BITS = 4, WIDTH = NUM_CNT_BITS * 2) (
        input [NUM_CNT_BITS-1:0] x
    );
    endmodule
    """
    mod = parse_verilog(verilog).modules[0]
    assert [p.name for p in mod.params] == ["NUM_CNT_BITS", "WIDTH"]
    assert all(p.kind == "parameter" for p in mod.params)
    assert isinstance(mod.params[1].value, BinaryOp)
    assert isinstance(mod.ports[0].range.msb, BinaryOp)
    print("✓ test_header_parameters")


def test_body_parameters():
    """Test: parameter / localparam in module body stay in the body"""
    verilog = """
    module test;
        parameter DEPTH = 16;
        localparam [3:0] AW = $clog2(DEPTH), EXTRA = 1;
    endmodule
    """
    mod = parse_verilog(verilog).modules[0]
    assert mod.params == []
    params = [item for item in mod.body if isinstance(item, ParamDecl)]
    assert [(p.kind, p.name) for p in params] == [
        ("parameter", "DEPTH"), ("localparam", "AW"), ("localparam", "EXTRA"),
    ]
    assert isinstance(params[1].value, FuncCall)
    assert params[1].value.name == "$clog2"
    assert params[1].range is not None
    print("✓ test_body_parameters")


def test_net_declarations():
    """Test: wire / reg / logic, comma lists and initializers"""
    verilog = """
    module test;
        wire a, b;
        reg [7:0] r;
        logic [3:0] count = 4'd3;
        wire w = a & b;
    endmodule
    """
    mod = parse_verilog(verilog).modules[0]
    nets = [item for item in mod.body if isinstance(item, NetDecl)]
    assert [(n.net_type, n.name) for n in nets] == [
        ("wire", "a"), ("wire", "b"), ("reg", "r"), ("logic", "count"), ("wire", "w"),
    ]
    assert nets[3].init_value.value == 3
    assert isinstance(nets[4].init_value, BinaryOp)
    print("✓ test_net_declarations")


def test_continuous_assign_list():
    """Test: assign a = b, c = d; yields two assigns"""
    mod = parse_verilog("module t; assign a = b, c = {d, e}; endmodule").modules[0]
    assigns = [item for item in mod.body if isinstance(item, ContinuousAssign)]
    assert len(assigns) == 2
    assert assigns[0].lhs.name == "a"
    assert isinstance(assigns[1].rhs, Concat)
    print("✓ test_continuous_assign_list")


def test_concat_assign_target():
    """Test: {carry, sum} = ... parses as a concatenated target"""
    mod = parse_verilog("module t; assign {co, s[3:0]} = a + b; endmodule").modules[0]
    lhs = mod.body[0].lhs
    assert isinstance(lhs, Concat)
    assert isinstance(lhs.parts[1], BitSelect)
    print("✓ test_concat_assign_target")


def test_multiple_modules_and_end_label():
    """Test: Several modules in one file, optional endmodule label"""
    ast = parse_verilog("module a; endmodule : a\nmodule b; endmodule")
    assert [m.name for m in ast.modules] == ["a", "b"]
    print("✓ test_multiple_modules_and_end_label")


def test_timescale():
    """Test: `timescale sets SourceFile.timescale"""
    ast = parse_verilog("`timescale 10ns / 1ps\nmodule t; endmodule")
    assert ast.timescale.unit == "10ns"
    assert ast.timescale.precision == "1ps"
    assert abs(ast.timescale.unit_seconds - 1e-8) < 1e-20
    assert parse_verilog("module t; endmodule").timescale is None
    print("✓ test_timescale")


def test_positions_recorded():
    """Test: Nodes carry source line/column, ignored by equality"""
    mod = parse_verilog("module t;\n  wire a;\nendmodule").modules[0]
    assert (mod.line, mod.col) == (1, 1)
    assert mod.body[0].line == 2
    assert NetDecl(name="a", line=2) == NetDecl(name="a", line=9)
    print("✓ test_positions_recorded")


def run_all():
    tests = [
        test_empty_module,
        test_ansi_ports,
        test_port_inherits_previous_declaration,
        test_header_parameters,
        test_body_parameters,
        test_net_declarations,
        test_continuous_assign_list,
        test_concat_assign_target,
        test_multiple_modules_and_end_label,
        test_timescale,
        test_positions_recorded,
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
    print(f"Declaration Tests: {passed} passed, {failed} failed, {passed+failed} total")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    print("Running declaration tests...\n")
    run_all()
