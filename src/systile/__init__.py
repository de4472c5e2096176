"""
Systile - A cycle-accurate model of a tiled, weight-stationary systolic
matmul engine.

This package provides the behavioral model (processing elements, grid,
tile planner and orchestrator) together with an Amaranth HDL twin of the
grid that shares its timing.
"""

from .config import GridConfig
from .controller import FsmState, Orchestrator
from .core import SystolicGrid
from .errors import ArithmeticOverflow, InvalidDimensions, ProtocolViolation, SystileError
from .tiling import MatrixDescriptor, TileIndex, TilePlanner

__version__ = "0.1.0"
__all__ = [
    "ArithmeticOverflow",
    "FsmState",
    "GridConfig",
    "InvalidDimensions",
    "MatrixDescriptor",
    "Orchestrator",
    "ProtocolViolation",
    "SystileError",
    "SystolicGrid",
    "TileIndex",
    "TilePlanner",
    "__version__",
]
