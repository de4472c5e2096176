"""
WSProcessingElement - RTL twin of the behavioral ProcessingElement.

Each PE performs a multiply-accumulate (MAC) against its stationary weight:
    mac_out = in_psum + (in_act * weight)

Modes (broadcast to the whole grid):
- load_weight=1: weight <= in_weight, out_weight shows the previous weight
- load_weight=0: act <= in_act, psum <= mac_out

Data flows:
- Weights: top to bottom during load
- Activations: left to right, registered
- Partial sums: top to bottom, registered (mac_out is the combinational sum)
"""

from amaranth import Module, Signal, signed
from amaranth.lib.wiring import Component, In, Out

from ..config import GridConfig


class WSProcessingElement(Component):
    """
    Weight-stationary processing element.

    Ports:
        en: Clock enable; when low every register holds
        load_weight: Select load mode (weight shift) over compute mode
        clear: Synchronously zero every register

        in_weight: Weight from the PE above (or the weight stream)
        in_act: Activation from the left (or the activation stream)
        in_psum: Partial sum from the PE above (or the partial-in stream)

        out_weight: Stationary weight, feeds the PE below during load
        out_act: Registered activation, feeds the PE to the right
        out_psum: Registered partial sum, feeds the PE below
        mac_out: Combinational MAC result (used at the bottom edge)

    Parameters:
        config: GridConfig with the register widths
    """

    def __init__(self, config: GridConfig):
        self.config = config

        super().__init__(
            {
                # Control
                "en": In(1),
                "load_weight": In(1),
                "clear": In(1),
                # Inputs
                "in_weight": In(signed(config.weight_bits)),
                "in_act": In(signed(config.input_bits)),
                "in_psum": In(signed(config.acc_bits)),
                # Outputs
                "out_weight": Out(signed(config.weight_bits)),
                "out_act": Out(signed(config.input_bits)),
                "out_psum": Out(signed(config.acc_bits)),
                "mac_out": Out(signed(config.acc_bits)),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config

        weight = Signal(signed(cfg.weight_bits), name="weight")
        act = Signal(signed(cfg.input_bits), name="act")
        psum = Signal(signed(cfg.acc_bits), name="psum")

        # =================================================================
        # Multiply-Accumulate
        # =================================================================

        product = Signal(signed(cfg.product_bits), name="product")
        m.d.comb += product.eq(self.in_act * weight)
        # Truncated to acc_bits (two's complement wrap)
        m.d.comb += self.mac_out.eq(self.in_psum + product)

        # =================================================================
        # Register Update
        # =================================================================

        with m.If(self.clear):
            m.d.sync += [weight.eq(0), act.eq(0), psum.eq(0)]
        with m.Elif(self.en):
            with m.If(self.load_weight):
                m.d.sync += weight.eq(self.in_weight)
            with m.Else():
                m.d.sync += [act.eq(self.in_act), psum.eq(self.mac_out)]

        m.d.comb += [
            self.out_weight.eq(weight),
            self.out_act.eq(act),
            self.out_psum.eq(psum),
        ]

        return m
