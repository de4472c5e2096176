"""
Systile Configuration Module

This module defines the configuration dataclass for the weight-stationary grid
model. All hardware parameters are specified here and propagate through the
behavioral model and the RTL twin alike.

Note: The grid computes C = A × B with B (the weights) held stationary in the
processing elements. Activations flow left to right, partial sums flow top to
bottom.
"""

import math
from dataclasses import dataclass

from .errors import ArithmeticOverflow
from .util.fixed_point import signed_range


@dataclass(frozen=True)
class GridConfig:
    """
    Configuration for the systolic grid and its orchestrator.

    Example:
        >>> config = GridConfig(dim=16)
        >>> config.latency  # 31
        >>> config.max_reduction_depth  # 511
    """

    # =========================================================================
    # Grid Dimensions
    # =========================================================================
    dim: int = 16
    """Physical grid size N (the grid is N x N processing elements)."""

    # =========================================================================
    # Data Types (bit widths)
    # =========================================================================
    input_bits: int = 8
    """Bit width of input activations (INT8)."""

    weight_bits: int = 8
    """Bit width of stationary weights (INT8)."""

    acc_bits: int = 24
    """Bit width of the partial-sum accumulator."""

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def total_pes(self) -> int:
        """Total number of processing elements."""
        return self.dim * self.dim

    @property
    def product_bits(self) -> int:
        """Width of a single activation x weight product."""
        return self.input_bits + self.weight_bits

    @property
    def min_acc_bits(self) -> int:
        """Smallest accumulator that holds a full column of N products."""
        return self.product_bits + math.ceil(math.log2(self.dim))

    @property
    def max_reduction_depth(self) -> int:
        """
        Longest shared dimension K a job may use without accumulator overflow.

        Bounded by the most positive product (min x min) against the
        accumulator maximum and the most negative product against its minimum.
        """
        a_lo, a_hi = signed_range(self.input_bits)
        w_lo, w_hi = signed_range(self.weight_bits)
        acc_lo, acc_hi = signed_range(self.acc_bits)
        most_negative = min(a_lo * w_hi, a_hi * w_lo)
        depth = acc_hi // (a_lo * w_lo)
        if most_negative < 0:
            depth = min(depth, acc_lo // most_negative)
        return depth

    @property
    def latency(self) -> int:
        """Cycles from an input vector entering to its result leaving (2N - 1)."""
        return 2 * self.dim - 1

    def stream_cycles(self, length: int) -> int:
        """Cycles for a stream of ``length`` vectors to enter and fully drain."""
        return length + 2 * self.dim - 2

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.dim <= 0:
            raise ValueError("dim must be positive")
        if self.input_bits <= 0:
            raise ValueError("input_bits must be positive")
        if self.weight_bits <= 0:
            raise ValueError("weight_bits must be positive")
        if self.acc_bits < self.min_acc_bits:
            raise ArithmeticOverflow(
                f"acc_bits={self.acc_bits} cannot hold {self.dim} products of "
                f"{self.product_bits} bits (needs at least {self.min_acc_bits})"
            )


# Pre-defined configurations
DEFAULT_CONFIG = GridConfig()
"""Default configuration: 16x16 grid, INT8 operands, 24-bit accumulator."""

SMALL_CONFIG = GridConfig(dim=4)
"""Small grid for fast simulation and tests."""

LARGE_CONFIG = GridConfig(dim=32, acc_bits=32)
"""Large grid with a 32-bit accumulator."""
