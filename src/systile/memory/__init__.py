"""
Memory collaborators around the systile core.

This module contains:
- MatrixSource: Zero-latency operand source backed by numpy matrices
- StagedSource: Operand source behind fixed-latency buffer stages
- ResultCollector: Write-back target assembling the output matrix
"""

from .source import MatrixSource, MemoryFetch, StagedSource
from .writeback import ResultCollector, ResultVector, WriteBack

__all__ = [
    "MatrixSource",
    "MemoryFetch",
    "StagedSource",
    "ResultCollector",
    "ResultVector",
    "WriteBack",
]
