"""
svsim: a SystemVerilog-subset parser and delta-cycle simulator.

Pipeline: source -> lex -> parse -> elaborate -> simulate -> Trace.
"""

from typing import Optional

from svsim.errors import SvSimError
from svsim.hdl_parser.parser import parse_verilog
from svsim.hdl_parser.elaborator import elaborate
from svsim.sim.engine import DEFAULT_MAX_DELTA_CYCLES, Simulator
from svsim.sim.stimulus import Stimulus, StimulusEvent
from svsim.sim.trace import Trace

__all__ = [
    "SvSimError", "Simulator", "Stimulus", "StimulusEvent", "Trace",
    "parse_verilog", "elaborate", "simulate",
]


def simulate(source: str, stimulus, overrides: Optional[dict[str, int]] = None,
             top: Optional[str] = None,
             max_delta_cycles: int = DEFAULT_MAX_DELTA_CYCLES) -> Trace:
    """
    Parse, elaborate and simulate `source` in one call.

    Args:
        source: SystemVerilog source text
        stimulus: A Stimulus, or an iterable of StimulusEvent / (time, signal, value)
        overrides: Parameter values replacing the declared defaults
        top: Module to simulate when the source holds several
        max_delta_cycles: Delta passes allowed per time step

    Raises:
        SvSimError: The first error of whichever stage failed
    """
    design = elaborate(parse_verilog(source), overrides, top)
    return Simulator(design, max_delta_cycles).run(stimulus)
