"""
TilePlanner - Decomposes an M x K x N_total matmul into N x N grid tiles.

For C = A @ W with A of shape M x K and W of shape K x N_total, the tile space
is ceil(M/N) x ceil(N_total/N) x ceil(K/N). Tile (tr, tc, tk) covers

    A[tr*N : tr*N+N,  tk*N : tk*N+N]
    W[tk*N : tk*N+N,  tc*N : tc*N+N]
    C[tr*N : tr*N+N,  tc*N : tc*N+N]   (partial, summed over tk)

Tiles are visited row-major over (tile_row, tile_col, tile_k) with tile_k
innermost, so all k-tiles of one output tile are consecutive and their partial
sums can be chained through the grid.

Ragged edges are padded per axis. Any local position whose global index falls
beyond the real dimension reads as zero without touching the memory
collaborator.
"""

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ..errors import InvalidDimensions

logger = logging.getLogger(__name__)


class Operand(Enum):
    """Which matrix a fetch request refers to."""

    IFMAP = "ifmap"  # A, M x K activations
    WEIGHT = "weight"  # W, K x N_total weights


@dataclass(frozen=True)
class MatrixDescriptor:
    """
    Shape of one inference job: C[m x n] = A[m x k] @ W[k x n].

    Attributes:
        m: Rows of A and C
        k: Shared (reduction) dimension
        n: Columns of W and C (N_total)
    """

    m: int
    k: int
    n: int

    def validate(self) -> None:
        """
        Raises:
            InvalidDimensions: If any dimension is not a positive integer
        """
        for name in ("m", "k", "n"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise InvalidDimensions(f"dimension {name}={value!r} must be an integer >= 1")

    @classmethod
    def for_operands(cls, a: np.ndarray, w: np.ndarray) -> "MatrixDescriptor":
        """Build a descriptor from the two operand matrices."""
        if a.ndim != 2 or w.ndim != 2 or a.shape[1] != w.shape[0]:
            raise ValueError(f"cannot multiply shapes {a.shape} and {w.shape}")
        return cls(m=int(a.shape[0]), k=int(a.shape[1]), n=int(w.shape[1]))


@dataclass(frozen=True)
class TileIndex:
    """Zero-based position in the tile space."""

    tile_row: int
    tile_col: int
    tile_k: int


@dataclass(frozen=True)
class PaddingMask:
    """
    Per-axis padding flags for one tile; True means "beyond real data".

    Attributes:
        rows: Local A/C rows (checked against M)
        cols: Local W/C columns (checked against N_total)
        k: Local reduction positions (checked against K)
    """

    rows: tuple[bool, ...]
    cols: tuple[bool, ...]
    k: tuple[bool, ...]

    @property
    def valid_rows(self) -> int:
        return self.rows.count(False)

    @property
    def valid_cols(self) -> int:
        return self.cols.count(False)

    @property
    def valid_k(self) -> int:
        return self.k.count(False)

    @property
    def is_ragged(self) -> bool:
        return any(self.rows) or any(self.cols) or any(self.k)


class TilePlanner:
    """
    Tile sequencer and padding oracle for one job.

    The planner is both an iterable (every ``iter()`` restarts the sequence
    from the first tile) and a cursor (``current`` / ``advance`` /
    ``restart``) for the orchestrator's FSM.

    Parameters:
        descriptor: Job dimensions
        dim: Physical grid size N

    Raises:
        InvalidDimensions: If the descriptor has a zero dimension
    """

    def __init__(self, descriptor: MatrixDescriptor, dim: int):
        descriptor.validate()
        if dim < 1:
            raise ValueError("grid dimension must be positive")
        self.descriptor = descriptor
        self.dim = dim

        self.row_tiles = math.ceil(descriptor.m / dim)
        self.col_tiles = math.ceil(descriptor.n / dim)
        self.k_tiles = math.ceil(descriptor.k / dim)

        self._position = 0

    @property
    def total_tiles(self) -> int:
        return self.row_tiles * self.col_tiles * self.k_tiles

    # =========================================================================
    # Sequence
    # =========================================================================

    def tile_at(self, position: int) -> TileIndex:
        """Tile visited at ``position`` in the row-major, k-innermost order."""
        if not 0 <= position < self.total_tiles:
            raise IndexError(f"tile position {position} outside 0..{self.total_tiles - 1}")
        tile_k = position % self.k_tiles
        rest = position // self.k_tiles
        return TileIndex(tile_row=rest // self.col_tiles, tile_col=rest % self.col_tiles, tile_k=tile_k)

    def __iter__(self) -> Iterator[TileIndex]:
        for tile_row in range(self.row_tiles):
            for tile_col in range(self.col_tiles):
                for tile_k in range(self.k_tiles):
                    yield TileIndex(tile_row, tile_col, tile_k)

    def __len__(self) -> int:
        return self.total_tiles

    @property
    def current(self) -> TileIndex:
        return self.tile_at(self._position)

    @property
    def position(self) -> int:
        return self._position

    @property
    def exhausted(self) -> bool:
        return self._position >= self.total_tiles

    def advance(self) -> bool:
        """Move the cursor to the next tile; returns False once none remain."""
        if not self.exhausted:
            self._position += 1
        return not self.exhausted

    def restart(self) -> None:
        self._position = 0

    def is_last_k(self, tile: TileIndex) -> bool:
        """True if ``tile`` completes the reduction for its output tile."""
        return tile.tile_k == self.k_tiles - 1

    # =========================================================================
    # Padding
    # =========================================================================

    def padding_mask(self, tile: TileIndex) -> PaddingMask:
        """Per-axis padding flags for ``tile``, each axis masked independently."""
        n = self.dim
        desc = self.descriptor
        return PaddingMask(
            rows=tuple(tile.tile_row * n + i >= desc.m for i in range(n)),
            cols=tuple(tile.tile_col * n + j >= desc.n for j in range(n)),
            k=tuple(tile.tile_k * n + l >= desc.k for l in range(n)),  # noqa: E741
        )

    def ifmap_element(self, tile: TileIndex, row: int, k: int, source) -> int | None:
        """
        Activation A[tile_row*N + row, tile_k*N + k], or 0 when padded.

        Returns None if the memory collaborator has not produced the value yet.
        """
        n = self.dim
        if tile.tile_row * n + row >= self.descriptor.m or tile.tile_k * n + k >= self.descriptor.k:
            return 0
        return source.fetch(tile, Operand.IFMAP, row, k)

    def weight_element(self, tile: TileIndex, k: int, col: int, source) -> int | None:
        """
        Weight W[tile_k*N + k, tile_col*N + col], or 0 when padded.

        Returns None if the memory collaborator has not produced the value yet.
        """
        n = self.dim
        if tile.tile_k * n + k >= self.descriptor.k or tile.tile_col * n + col >= self.descriptor.n:
            return 0
        return source.fetch(tile, Operand.WEIGHT, k, col)

    def ifmap_row(self, tile: TileIndex, row: int, source) -> np.ndarray | None:
        """N-wide activation vector for local row ``row`` (element r feeds grid row r)."""
        values = [self.ifmap_element(tile, row, k, source) for k in range(self.dim)]
        return _gathered(values)

    def weight_row(self, tile: TileIndex, k: int, source) -> np.ndarray | None:
        """N-wide weight vector for grid row ``k`` of this tile."""
        values = [self.weight_element(tile, k, col, source) for col in range(self.dim)]
        return _gathered(values)


def _gathered(values: list) -> np.ndarray | None:
    # Callers request every element of the row before this stall check
    if any(v is None for v in values):
        return None
    return np.array(values, dtype=np.int64)
