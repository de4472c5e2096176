#!/usr/bin/env python3
"""
Job Timeline Plot.

Clocks one matmul job through the orchestrator and plots, per cycle:

- the orchestrator state (LOAD_WEIGHTS / COMPUTE / ADVANCE_TILE / DONE)
- how many PEs hold a real activation vector

The diagonal wavefront makes PE occupancy ramp up for N cycles, plateau and
ramp down while the grid drains, once per tile.

Usage:
    python 02_job_timeline.py [--dim N] [--m M] [--k K] [--n N] [--stages S]
                              [--output FILE] [--show]

Requirements:
    pip install matplotlib
"""

import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from systile import FsmState, GridConfig, Orchestrator
from systile.memory import MatrixSource, ResultCollector, StagedSource

STATE_COLORS = {
    FsmState.LOAD_WEIGHTS: "#4169E1",
    FsmState.COMPUTE: "#32CD32",
    FsmState.ADVANCE_TILE: "#DAA520",
    FsmState.DONE: "#DC143C",
}


def busy_pes(dim: int, rows: int, stream_cycle: int) -> int:
    """PEs working on one of ``rows`` streamed vectors during compute cycle ``stream_cycle`` (1-based)."""
    return sum(1 for r in range(dim) for c in range(dim) if 0 <= stream_cycle - 1 - r - c < rows)


def record_timeline(orch: Orchestrator) -> tuple[list, list]:
    """Tick ``orch`` to completion; returns per-cycle (states, busy PE counts)."""
    dim = orch.config.dim
    states = []
    busy = []
    while orch.busy:
        state = orch.state
        job = orch.job
        stalls = job.stats.stall_cycles
        phase_cycle = job.phase_cycle
        orch.tick()

        stalled = job.stats.stall_cycles > stalls
        states.append(state)
        if state is FsmState.COMPUTE and not stalled:
            busy.append(busy_pes(dim, job.stream_length, phase_cycle + 1))
        else:
            busy.append(0)
    return states, busy


def plot_timeline(states, busy, dim: int, title: str):
    fig, (ax_state, ax_busy) = plt.subplots(
        2, 1, figsize=(12, 5), sharex=True, gridspec_kw={"height_ratios": [1, 3]}
    )
    fig.suptitle(title, fontsize=13, fontweight="bold")

    for state, color in STATE_COLORS.items():
        spans = [(cycle, 1) for cycle, s in enumerate(states) if s is state]
        ax_state.broken_barh(spans, (0, 1), facecolors=color, label=state.name)
    ax_state.set_yticks([])
    ax_state.legend(loc="upper right", ncol=len(STATE_COLORS), fontsize=8)

    cycles = np.arange(len(busy))
    ax_busy.step(cycles, busy, where="post", color="#2E8B57")
    ax_busy.fill_between(cycles, busy, step="post", alpha=0.3, color="#2E8B57")
    ax_busy.set_ylim(0, dim * dim)
    ax_busy.set_ylabel("busy PEs")
    ax_busy.set_xlabel("cycle")

    fig.tight_layout()
    return fig


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Plot the orchestrator timeline of one matmul job",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dim", type=int, default=4, help="Grid size N (default: 4)")
    parser.add_argument("--m", type=int, default=6, help="Rows of A (default: 6)")
    parser.add_argument("--k", type=int, default=8, help="Shared dimension (default: 8)")
    parser.add_argument("--n", type=int, default=4, help="Columns of W (default: 4)")
    parser.add_argument("--stages", type=int, default=0, help="Buffer stages in front of the grid (default: 0)")
    parser.add_argument("--output", type=str, default="timeline.png", help="Output filename (default: timeline.png)")
    parser.add_argument("--show", action="store_true", help="Show the plot in a window instead of saving")

    args = parser.parse_args()

    rng = np.random.default_rng(0)
    a = rng.integers(-128, 128, size=(args.m, args.k), dtype=np.int8)
    w = rng.integers(-128, 128, size=(args.k, args.n), dtype=np.int8)

    config = GridConfig(dim=args.dim)
    source = MatrixSource(a, w, dim=args.dim)
    fetcher = StagedSource(source, stages=args.stages) if args.stages else source
    orch = Orchestrator(config, fetcher, ResultCollector(args.m, args.n, args.dim))
    orch.start(source.descriptor)

    states, busy = record_timeline(orch)
    stats = orch.last_stats
    print(f"{stats.tiles} tiles, {stats.cycles} cycles ({stats.stall_cycles} stalled)")

    title = f"M={args.m} K={args.k} N={args.n} on a {args.dim}x{args.dim} grid"
    fig = plot_timeline(states, busy, args.dim, title)

    if args.show:
        plt.show()
    else:
        output_path = Path(args.output)
        fig.savefig(output_path)
        print(f"Saved: {output_path}")


if __name__ == "__main__":
    main()
