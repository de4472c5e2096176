"""
Processing Element (PE) - The fundamental compute unit of the systolic grid.

Each PE holds one stationary weight and performs a multiply-accumulate (MAC)
on every compute cycle:
    partial_out = partial_in + activation_in * weight

The PE has two modes, selected for the whole grid at once:
- Load: the weight register shifts down the column (daisy chain)
- Compute: activations flow right, partial sums flow down

Data flows:
- Weights: top to bottom, load mode only
- Activations: left to right, forwarded unchanged
- Partial sums: top to bottom, one MAC added per PE
"""

from dataclasses import dataclass, field

from ..config import GridConfig
from ..util.fixed_point import to_signed


@dataclass
class PEState:
    """Architectural state of a PE: the stationary weight and the accumulator."""

    weight: int = 0
    accumulator: int = 0


@dataclass
class ProcessingElement:
    """
    Weight-stationary processing element.

    All outputs are registered: the values a PE returns from ``load`` or
    ``compute`` are what its neighbours see during the current cycle, and the
    inputs it is given are latched for the next one. A grid can therefore
    clock its PEs in a single top-left to bottom-right sweep, handing each
    PE's returned values straight to its right and lower neighbours.

    Attributes:
        row: Row position in the grid
        col: Column position in the grid
        config: Grid configuration (register widths)
        state: Stationary weight and accumulator
        activation: Horizontal forwarding register
    """

    row: int
    col: int
    config: GridConfig
    state: PEState = field(default_factory=PEState)
    activation: int = 0

    def reset(self) -> None:
        """Zero every register."""
        self.state = PEState()
        self.activation = 0

    @property
    def weight(self) -> int:
        return self.state.weight

    @property
    def partial_sum(self) -> int:
        """Partial sum latched on the most recent compute cycle."""
        return self.state.accumulator

    def load(self, weight_in: int, en: bool = True) -> int:
        """
        Clock one load-mode cycle.

        Args:
            weight_in: Weight arriving from the PE above (or the weight stream)
            en: Clock enable; when low every register holds

        Returns:
            The previous weight, forwarded to the PE below.
        """
        weight_out = self.state.weight
        if en:
            self.state.weight = to_signed(weight_in, self.config.weight_bits)
        return weight_out

    def compute(self, activation_in: int, partial_in: int, en: bool = True) -> tuple[int, int]:
        """
        Clock one compute-mode cycle.

        Args:
            activation_in: Activation from the left neighbour (or the input stream)
            partial_in: Partial sum from the PE above (or the partial-in stream)
            en: Clock enable; when low every register holds

        Returns:
            (activation_out, partial_out) as registered on the previous cycle.
        """
        outputs = (self.activation, self.state.accumulator)
        if en:
            cfg = self.config
            activation = to_signed(activation_in, cfg.input_bits)
            product = activation * self.state.weight
            self.state.accumulator = to_signed(partial_in + product, cfg.acc_bits)
            self.activation = activation
        return outputs
