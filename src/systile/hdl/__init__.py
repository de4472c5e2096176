"""
Amaranth HDL twin of the systolic grid.

This module contains:
- WSProcessingElement: Weight-stationary MAC cell
- WSGrid: N x N mesh with skew, deskew and valid tracking
"""

from .grid import WSGrid
from .pe import WSProcessingElement

__all__ = ["WSGrid", "WSProcessingElement"]
