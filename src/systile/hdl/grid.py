"""
WSGrid - RTL twin of the behavioral SystolicGrid.

The WSGrid instantiates an N x N mesh of WSProcessingElements and surrounds it
with the skew and deskew registers of the weight-stationary dataflow:

                 in_psum_0   in_psum_1 (+1 reg)   ...
                     |            |
    in_act_0 ----> [PE 0,0] ---> [PE 0,1] ---> ...
                     |            |
    in_act_1 -R--> [PE 1,0] ---> [PE 1,1] ---> ...
                     |            |
                 [N-1 regs]   [N-2 regs]            (deskew)
                     |            |
                 out_psum_0   out_psum_1

Row r activations pass r skew registers, column c partial sums pass c skew
registers, and the bottom MAC of column c passes N-1-c deskew registers. With
the PEs' own registers, every path is exactly 2N - 2 registers long, so an
input vector presented on cycle 1 appears on ``out_psum_*`` (with ``out_valid``
high) on cycle 2N - 1.

Weights enter the top row on ``in_weight_*`` with ``load_weight`` high and
shift down one row per cycle; after N cycles PE(r, c) holds the vector that
was presented N-1-r cycles into the load.
"""

from amaranth import Module, Signal, signed
from amaranth.lib.wiring import Component, In, Out

from ..config import GridConfig
from .pe import WSProcessingElement


def _delay(m, source, depth, shape, enable, clear, name):
    """Chain ``depth`` registers after ``source``; returns the last stage."""
    stage = source
    for i in range(depth):
        reg = Signal(shape, name=f"{name}_{i}")
        with m.If(clear):
            m.d.sync += reg.eq(0)
        with m.Elif(enable):
            m.d.sync += reg.eq(stage)
        stage = reg
    return stage


class WSGrid(Component):
    """
    Weight-stationary systolic grid.

    Ports:
        en: Clock enable for the whole grid
        load_weight: Load mode (weights shift down) instead of compute mode
        clear: Synchronously zero the PEs (issued on load-phase entry)

        in_weight_0..N: Weight vector entering the top row during load
        in_act_0..N: Activation vector, element r feeding row r
        in_psum_0..N: Partial sums entering the top of each column
        in_valid: The activation vector on this cycle is real data

        out_psum_0..N: Result vector leaving the bottom edge
        out_valid: ``out_psum_*`` carries a valid result this cycle

    Parameters:
        config: GridConfig with grid size and register widths
    """

    def __init__(self, config: GridConfig):
        self.config = config
        n = config.dim

        ports = {
            "en": In(1),
            "load_weight": In(1),
            "clear": In(1),
            "in_valid": In(1),
            "out_valid": Out(1),
        }

        for i in range(n):
            ports[f"in_weight_{i}"] = In(signed(config.weight_bits))
            ports[f"in_act_{i}"] = In(signed(config.input_bits))
            ports[f"in_psum_{i}"] = In(signed(config.acc_bits))
            ports[f"out_psum_{i}"] = Out(signed(config.acc_bits))

        super().__init__(ports)

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config
        n = cfg.dim

        pes = [[WSProcessingElement(cfg) for _ in range(n)] for _ in range(n)]
        for r in range(n):
            for c in range(n):
                m.submodules[f"pe_{r}_{c}"] = pes[r][c]

        # Delay lines only advance on enabled compute cycles; clear empties them
        shifting = Signal(name="shifting")
        m.d.comb += shifting.eq(self.en & ~self.load_weight)

        # =================================================================
        # Control Broadcast
        # =================================================================
        for r in range(n):
            for c in range(n):
                m.d.comb += [
                    pes[r][c].en.eq(self.en),
                    pes[r][c].load_weight.eq(self.load_weight),
                    pes[r][c].clear.eq(self.clear),
                ]

        # =================================================================
        # Horizontal (activation) Wiring - skewed, then left to right
        # =================================================================
        for r in range(n):
            skewed = _delay(
                m,
                getattr(self, f"in_act_{r}"),
                r,
                signed(cfg.input_bits),
                shifting,
                self.clear,
                f"act_skew_{r}",
            )
            m.d.comb += pes[r][0].in_act.eq(skewed)
            for c in range(1, n):
                m.d.comb += pes[r][c].in_act.eq(pes[r][c - 1].out_act)

        # =================================================================
        # Vertical (weight, partial sum) Wiring - top to bottom
        # =================================================================
        for c in range(n):
            m.d.comb += pes[0][c].in_weight.eq(getattr(self, f"in_weight_{c}"))
            skewed = _delay(
                m,
                getattr(self, f"in_psum_{c}"),
                c,
                signed(cfg.acc_bits),
                shifting,
                self.clear,
                f"psum_skew_{c}",
            )
            m.d.comb += pes[0][c].in_psum.eq(skewed)

            for r in range(1, n):
                m.d.comb += [
                    pes[r][c].in_weight.eq(pes[r - 1][c].out_weight),
                    pes[r][c].in_psum.eq(pes[r - 1][c].out_psum),
                ]

            deskewed = _delay(
                m,
                pes[n - 1][c].mac_out,
                n - 1 - c,
                signed(cfg.acc_bits),
                shifting,
                self.clear,
                f"deskew_{c}",
            )
            m.d.comb += getattr(self, f"out_psum_{c}").eq(deskewed)

        # =================================================================
        # Valid Tracking - same 2N - 2 register depth as the data
        # =================================================================
        valid_in = Signal(name="valid_in")
        m.d.comb += valid_in.eq(self.in_valid & shifting)
        valid_out = _delay(m, valid_in, 2 * n - 2, 1, shifting, self.clear, "valid")
        m.d.comb += self.out_valid.eq(valid_out)

        return m
