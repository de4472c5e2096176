"""
Core systolic grid components.

This module contains the fundamental building blocks:
- ProcessingElement: Weight-stationary MAC cell
- SystolicGrid: N x N mesh of PEs with skew/deskew pipeline timing
"""

from .grid import DelayLine, GridOutput, GridPhase, StreamResult, SystolicGrid
from .pe import PEState, ProcessingElement

__all__ = [
    "DelayLine",
    "GridOutput",
    "GridPhase",
    "PEState",
    "ProcessingElement",
    "StreamResult",
    "SystolicGrid",
]
