"""
Command-line runner for the systile model.

Runs one matmul job on the cycle-accurate model, checks it against numpy and
prints the cycle accounting.

Usage:
    python -m systile --dim 16 --m 20 --k 20 --n 20 --ones
    python -m systile --dim 4 --m 9 --k 7 --n 5 --seed 3 --stages 2 -v
"""

import logging
import sys
from argparse import ArgumentParser, Namespace

import numpy as np

from .config import GridConfig
from .errors import SystileError
from .util.gemm import reference_matmul, run_gemm


def add_grid_args(parser: ArgumentParser) -> None:
    """
    Add grid configuration arguments to a parser.

    Adds these arguments:
        --dim N          Physical grid size
        --acc-bits BITS  Accumulator width
    """
    group = parser.add_argument_group("Grid Configuration")

    group.add_argument(
        "--dim",
        type=int,
        default=16,
        metavar="N",
        help="Physical grid size N (default: 16)",
    )

    group.add_argument(
        "--acc-bits",
        type=int,
        default=24,
        metavar="BITS",
        help="Accumulator width in bits (default: 24)",
    )


def add_gemm_args(parser: ArgumentParser) -> None:
    """
    Add GEMM dimension and operand arguments to a parser.

    Adds these arguments:
        --m M, --k K, --n N   Job dimensions
        --seed SEED           Seed for random int8 operands
        --ones                Use all-ones operands instead
    """
    group = parser.add_argument_group("GEMM Job")

    group.add_argument("--m", type=int, default=20, help="Rows of A and C (default: 20)")
    group.add_argument("--k", type=int, default=20, help="Shared dimension (default: 20)")
    group.add_argument("--n", type=int, default=20, help="Columns of W and C (default: 20)")
    group.add_argument("--seed", type=int, default=0, help="Random operand seed (default: 0)")
    group.add_argument("--ones", action="store_true", help="Use all-ones operands")


def add_memory_args(parser: ArgumentParser) -> None:
    """
    Add memory-fetch arguments to a parser.

    Adds these arguments:
        --stages CYCLES   Buffer stages in front of the grid (0 = direct)
    """
    group = parser.add_argument_group("Memory Configuration")

    group.add_argument(
        "--stages",
        type=int,
        default=0,
        metavar="CYCLES",
        help="Buffer stages between memory and the grid (default: 0, direct access)",
    )


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="systile", description="Cycle-accurate weight-stationary matmul model")
    add_grid_args(parser)
    add_gemm_args(parser)
    add_memory_args(parser)
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log FSM activity (-vv for debug)")
    return parser


def make_operands(args: Namespace) -> tuple[np.ndarray, np.ndarray]:
    if args.ones:
        return np.ones((args.m, args.k), dtype=np.int8), np.ones((args.k, args.n), dtype=np.int8)
    rng = np.random.default_rng(args.seed)
    a = rng.integers(-128, 128, size=(args.m, args.k), dtype=np.int8)
    w = rng.integers(-128, 128, size=(args.k, args.n), dtype=np.int8)
    return a, w


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = GridConfig(dim=args.dim, acc_bits=args.acc_bits)
        a, w = make_operands(args)
        result = run_gemm(a, w, config, stages=args.stages)
    except (SystileError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    stats = result.stats
    expected = reference_matmul(a, w)
    match = np.array_equal(result.matrix, expected)

    print(f"Grid:          {config.dim}x{config.dim}, {config.acc_bits}-bit accumulator")
    print(f"Job:           M={args.m} K={args.k} N={args.n}")
    print(f"Tiles:         {stats.tiles}")
    print(f"Total cycles:  {stats.cycles}")
    print(f"  load:        {stats.load_cycles}")
    print(f"  compute:     {stats.compute_cycles}")
    print(f"  stalled:     {stats.stall_cycles}")
    print(f"Rows written:  {stats.vectors_written}")
    print(f"Result:        {'PASS' if match else 'FAIL'}")
    return 0 if match else 1


if __name__ == "__main__":
    sys.exit(main())
