#!/usr/bin/env python3
"""
Tiled Matrix Multiply Walkthrough.

This example runs one C = A @ W job on the cycle-accurate model and shows how
the orchestrator breaks it into grid-sized tiles. It shows:

1. Problem Setup
   - Random INT8 operands whose shape does not divide the grid size

2. Tile Plan
   - Tile visiting order (row-major, k innermost)
   - Per-axis padding of the ragged edge tiles

3. Execution
   - Clock the orchestrator until the job is done
   - Report each tile as it finishes and where the cycles went

4. Verification
   - Compare against the NumPy reference

Usage:
    python 01_tiled_matmul.py [--dim N] [--m M] [--k K] [--n N] [--stages S]
"""

import argparse
import sys

import numpy as np

from systile import FsmState, GridConfig, Orchestrator
from systile.memory import MatrixSource, ResultCollector, StagedSource
from systile.util.gemm import reference_matmul


def print_plan(planner) -> None:
    print(f"   Tile space: {planner.row_tiles} x {planner.col_tiles} x {planner.k_tiles} = {planner.total_tiles} tiles")
    for tile in planner:
        mask = planner.padding_mask(tile)
        note = ""
        if mask.is_ragged:
            note = f"  padded -> rows {mask.valid_rows}, cols {mask.valid_cols}, k {mask.valid_k} valid"
        last = " (final k)" if planner.is_last_k(tile) else ""
        print(f"     ({tile.tile_row}, {tile.tile_col}, {tile.tile_k}){last}{note}")


def run_demo(dim: int, m: int, k: int, n: int, stages: int, seed: int) -> bool:
    print("=" * 70)
    print(f"Tiled matmul: C[{m}x{n}] = A[{m}x{k}] @ W[{k}x{n}] on a {dim}x{dim} grid")
    print("=" * 70)

    # -------------------------------------------------------------------------
    # 1. Problem Setup
    # -------------------------------------------------------------------------
    print("\n1. Problem Setup")
    print("-" * 40)

    rng = np.random.default_rng(seed)
    a = rng.integers(-128, 128, size=(m, k), dtype=np.int8)
    w = rng.integers(-128, 128, size=(k, n), dtype=np.int8)
    config = GridConfig(dim=dim)

    print(f"   Grid latency:        {config.latency} cycles")
    print(f"   Max reduction depth: {config.max_reduction_depth}")

    source = MatrixSource(a, w, dim=dim)
    fetcher = StagedSource(source, stages=stages) if stages else source
    collector = ResultCollector(m, n, dim)
    orch = Orchestrator(config, fetcher, collector)

    # -------------------------------------------------------------------------
    # 2. Tile Plan
    # -------------------------------------------------------------------------
    print("\n2. Tile Plan")
    print("-" * 40)

    orch.start(source.descriptor)
    print_plan(orch.job.planner)

    # -------------------------------------------------------------------------
    # 3. Execution
    # -------------------------------------------------------------------------
    print("\n3. Execution")
    print("-" * 40)

    while orch.busy:
        tile = orch.tile
        state = orch.tick()
        if state is FsmState.ADVANCE_TILE:
            print(f"     cycle {orch.cycle:5d}: tile ({tile.tile_row}, {tile.tile_col}, {tile.tile_k}) drained")

    stats = orch.last_stats
    print(f"\n   Total cycles:   {stats.cycles} (stall-free estimate {orch.expected_cycles(source.descriptor)})")
    print(f"   Load cycles:    {stats.load_cycles}")
    print(f"   Compute cycles: {stats.compute_cycles}")
    print(f"   Stall cycles:   {stats.stall_cycles}")
    print(f"   Rows written:   {stats.vectors_written}")

    # -------------------------------------------------------------------------
    # 4. Verification
    # -------------------------------------------------------------------------
    print("\n4. Verification")
    print("-" * 40)

    expected = reference_matmul(a, w)
    result = collector.matrix()
    if np.array_equal(result, expected) and collector.complete:
        print("   PASS: Result matches expected!")
        return True

    print("   FAIL: Result does not match expected!")
    print(f"   Difference:\n{result - expected}")
    return False


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Tiled Matrix Multiply Walkthrough",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--dim", type=int, default=4, help="Grid size N (default: 4)")
    parser.add_argument("--m", type=int, default=6, help="Rows of A (default: 6)")
    parser.add_argument("--k", type=int, default=9, help="Shared dimension (default: 9)")
    parser.add_argument("--n", type=int, default=5, help="Columns of W (default: 5)")
    parser.add_argument("--stages", type=int, default=0, help="Buffer stages in front of the grid (default: 0)")
    parser.add_argument("--seed", type=int, default=0, help="Operand seed (default: 0)")

    args = parser.parse_args()

    success = run_demo(args.dim, args.m, args.k, args.n, args.stages, args.seed)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
