"""
Memory-fetch collaborators - where the orchestrator gets operand values.

The core asks for one element at a time with tile-local coordinates:

    fetch(tile, operand, row, col) -> int | None

For IFMAP requests ``row`` is the local A row and ``col`` the local k index;
for WEIGHT requests ``row`` is the local k index and ``col`` the local W
column. A source returns the raw INT8 value, or None if the value is not
available yet (the orchestrator then stalls for a cycle and asks again).
Padded positions are never requested; sources know nothing about padding.
A global reset calls ``reset()`` so that no request is left half-waited.

Two fetch strategies are provided:
- MatrixSource: direct, register-file style access with no latency
- StagedSource: wraps another source behind a fixed number of buffer stages,
  the way DMA-fed operand buffers add latency in front of the array
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from ..tiling.planner import MatrixDescriptor, Operand, TileIndex
from ..util.fixed_point import check_signed

logger = logging.getLogger(__name__)


class MemoryFetch(Protocol):
    """Contract the orchestrator uses to read operands."""

    def fetch(self, tile: TileIndex, operand: Operand, row: int, col: int) -> int | None: ...

    def reset(self) -> None:
        """Drop any request still in flight."""
        ...


@dataclass
class MatrixSource:
    """
    Dense, zero-latency operand source backed by numpy matrices.

    Attributes:
        a: Activations, M x K
        w: Weights, K x N_total
        dim: Grid size N used to translate tile-local coordinates
        input_bits: Activation width the values must fit in
        weight_bits: Weight width the values must fit in
        fetches: Number of elements served so far

    Example:
        >>> src = MatrixSource(np.ones((4, 4)), np.eye(4), dim=4)
        >>> src.fetch(TileIndex(0, 0, 0), Operand.WEIGHT, 1, 1)
        1
    """

    a: np.ndarray
    w: np.ndarray
    dim: int
    input_bits: int = 8
    weight_bits: int = 8
    fetches: int = 0

    def __post_init__(self):
        self.a = check_signed(self.a, self.input_bits, "activations")
        self.w = check_signed(self.w, self.weight_bits, "weights")
        if self.a.shape[1] != self.w.shape[0]:
            raise ValueError(f"shared dimension mismatch: A is {self.a.shape}, W is {self.w.shape}")

    @property
    def descriptor(self) -> MatrixDescriptor:
        return MatrixDescriptor.for_operands(self.a, self.w)

    def global_index(self, tile: TileIndex, operand: Operand, row: int, col: int) -> tuple[int, int]:
        """Translate tile-local coordinates into a (row, col) of A or W."""
        n = self.dim
        if operand is Operand.IFMAP:
            return tile.tile_row * n + row, tile.tile_k * n + col
        return tile.tile_k * n + row, tile.tile_col * n + col

    def fetch(self, tile: TileIndex, operand: Operand, row: int, col: int) -> int:
        """
        Raises:
            IndexError: If asked for a position outside the real matrix
        """
        r, c = self.global_index(tile, operand, row, col)
        matrix = self.a if operand is Operand.IFMAP else self.w
        if not (0 <= r < matrix.shape[0] and 0 <= c < matrix.shape[1]):
            raise IndexError(f"{operand.value} fetch ({r}, {c}) outside matrix {matrix.shape}")
        self.fetches += 1
        return int(matrix[r, c])

    def reset(self) -> None:
        """Direct access keeps nothing in flight."""


@dataclass
class StagedSource:
    """
    Operand source with a fixed buffer latency in front of another source.

    Each distinct request waits ``stages`` retries (one per cycle) before the
    inner source is read and the value returned.

    Attributes:
        inner: Source that finally serves the data
        stages: Buffer stages between the inner source and the grid
        stalls: Number of requests answered with None so far
    """

    inner: MemoryFetch
    stages: int = 1
    stalls: int = 0
    _pending: dict = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if self.stages < 0:
            raise ValueError("stages must be non-negative")

    def fetch(self, tile: TileIndex, operand: Operand, row: int, col: int) -> int | None:
        key = (tile, operand, row, col)
        remaining = self._pending.get(key, self.stages)
        if remaining > 0:
            self._pending[key] = remaining - 1
            self.stalls += 1
            return None
        self._pending.pop(key, None)
        return self.inner.fetch(tile, operand, row, col)

    def reset(self) -> None:
        """Forget partially waited requests; the next fetch of any key waits all stages."""
        self._pending.clear()
        self.inner.reset()

    @property
    def descriptor(self) -> MatrixDescriptor:
        return self.inner.descriptor
