"""
Write-back collaborator - where finalized result vectors go.

The orchestrator hands over one N-wide vector of accumulator-width results per
valid output row of a finished tile, tagged with its tile position and local
row. Placing it in the right external location is the collaborator's job; the
core does not track where results land.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class ResultVector:
    """
    One finalized row of an output tile.

    Attributes:
        tile_row: Output tile row
        tile_col: Output tile column
        local_row: Row inside the tile (0..N-1)
        values: N accumulator-width results; padded columns hold zero
    """

    tile_row: int
    tile_col: int
    local_row: int
    values: np.ndarray


class WriteBack(Protocol):
    """Contract the orchestrator uses to retire results."""

    def write(self, result: ResultVector) -> None: ...


class ResultCollector:
    """
    Assembles result vectors into a dense M x N_total matrix.

    Columns that fall beyond N_total (tile padding) are dropped. Every element
    write is counted so callers can check that each output position was
    produced exactly once.

    Parameters:
        rows: M
        cols: N_total
        dim: Grid size N
    """

    def __init__(self, rows: int, cols: int, dim: int):
        self.rows = rows
        self.cols = cols
        self.dim = dim
        self.result = np.zeros((rows, cols), dtype=np.int64)
        self.coverage = np.zeros((rows, cols), dtype=np.int64)
        self.writes: list[ResultVector] = []

    def write(self, result: ResultVector) -> None:
        """
        Raises:
            ValueError: If the vector addresses a row outside the matrix or has
                the wrong width
        """
        values = np.asarray(result.values, dtype=np.int64)
        if values.shape != (self.dim,):
            raise ValueError(f"result vector must have {self.dim} elements, got {values.shape}")
        row = result.tile_row * self.dim + result.local_row
        if not 0 <= row < self.rows:
            raise ValueError(f"result row {row} outside 0..{self.rows - 1}")

        col0 = result.tile_col * self.dim
        width = max(0, min(self.dim, self.cols - col0))
        self.result[row, col0 : col0 + width] = values[:width]
        self.coverage[row, col0 : col0 + width] += 1
        self.writes.append(result)

    def matrix(self) -> np.ndarray:
        return self.result.copy()

    @property
    def complete(self) -> bool:
        """True when every output position has been written exactly once."""
        return bool((self.coverage == 1).all())
