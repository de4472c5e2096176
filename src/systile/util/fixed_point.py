"""
Fixed-point helpers shared by the behavioral model.

Registers in the grid are two's complement and wrap at their width, exactly as
the Amaranth signals of the RTL twin do.
"""

import numpy as np


def to_signed(value: int, bits: int) -> int:
    """Truncate ``value`` to ``bits`` and reinterpret it as two's complement."""
    mask = (1 << bits) - 1
    value = int(value) & mask
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value


def signed_range(bits: int) -> tuple[int, int]:
    """Inclusive (min, max) representable by a signed ``bits``-wide register."""
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def check_signed(matrix: np.ndarray, bits: int, name: str) -> np.ndarray:
    """
    Validate that every element of ``matrix`` fits in ``bits`` signed bits.

    Returns the matrix as int64 so later arithmetic cannot wrap in numpy.

    Raises:
        ValueError: If the matrix is not 2D or holds out-of-range values
    """
    matrix = np.asarray(matrix)
    if matrix.ndim != 2:
        raise ValueError(f"{name} must be a 2D matrix, got shape {matrix.shape}")
    lo, hi = signed_range(bits)
    if matrix.size and (matrix.min() < lo or matrix.max() > hi):
        raise ValueError(f"{name} values must fit in {bits}-bit signed range [{lo}, {hi}]")
    return matrix.astype(np.int64)
