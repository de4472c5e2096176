"""
Tiling of arbitrary matmuls onto the fixed-size grid.
"""

from .planner import MatrixDescriptor, Operand, PaddingMask, TileIndex, TilePlanner

__all__ = ["MatrixDescriptor", "Operand", "PaddingMask", "TileIndex", "TilePlanner"]
