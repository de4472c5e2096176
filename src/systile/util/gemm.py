"""
End-to-end GEMM helpers.

``run_gemm`` wires a MatrixSource, an Orchestrator and a ResultCollector
together and runs one job to completion:

    result = run_gemm(A, W, GridConfig(dim=4))
    np.testing.assert_array_equal(result.matrix, reference_matmul(A, W))
"""

from dataclasses import dataclass

import numpy as np

from ..config import DEFAULT_CONFIG, GridConfig
from ..controller.orchestrator import JobStats, Orchestrator
from ..memory.source import MatrixSource, StagedSource
from ..memory.writeback import ResultCollector


@dataclass
class GemmResult:
    """Output matrix plus the job's cycle accounting."""

    matrix: np.ndarray
    stats: JobStats
    collector: ResultCollector


def reference_matmul(a: np.ndarray, w: np.ndarray) -> np.ndarray:
    """Dense reference product in int64 (no wrap-around)."""
    return np.asarray(a, dtype=np.int64) @ np.asarray(w, dtype=np.int64)


def run_gemm(
    a: np.ndarray,
    w: np.ndarray,
    config: GridConfig | None = None,
    *,
    stages: int = 0,
    max_cycles: int | None = None,
) -> GemmResult:
    """
    Compute ``a @ w`` on the cycle-accurate model.

    Args:
        a: M x K int8 activations
        w: K x N_total int8 weights
        config: Grid configuration (DEFAULT_CONFIG when None)
        stages: Buffer stages in front of the grid; 0 for direct access
        max_cycles: Optional guard passed to ``Orchestrator.run``

    Returns:
        GemmResult with the M x N_total product and job statistics.
    """
    config = config or DEFAULT_CONFIG
    source = MatrixSource(a, w, dim=config.dim, input_bits=config.input_bits, weight_bits=config.weight_bits)
    fetcher = StagedSource(source, stages=stages) if stages else source
    descriptor = source.descriptor

    collector = ResultCollector(descriptor.m, descriptor.n, config.dim)
    orchestrator = Orchestrator(config, fetcher, collector)
    orchestrator.start(descriptor)
    stats = orchestrator.run(max_cycles=max_cycles)
    return GemmResult(matrix=collector.matrix(), stats=stats, collector=collector)
