#!/usr/bin/env python3
"""Generate WSGrid and WSProcessingElement Verilog from systile."""

import argparse
import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from amaranth.back import verilog  # noqa: E402

from systile.config import GridConfig  # noqa: E402
from systile.hdl import WSGrid, WSProcessingElement  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Generate weight-stationary grid Verilog")
    parser.add_argument("--dim", type=int, default=4, help="Grid size N (default: 4)")
    parser.add_argument("--acc-bits", type=int, default=24, help="Accumulator width (default: 24)")
    args = parser.parse_args()

    gen_dir = project_root / "gen"
    gen_dir.mkdir(exist_ok=True)

    config = GridConfig(dim=args.dim, acc_bits=args.acc_bits)

    pe_path = gen_dir / "ws_pe.v"
    with open(pe_path, "w") as f:
        f.write(verilog.convert(WSProcessingElement(config), name="WSProcessingElement"))
    print(f"Generated {pe_path}")

    grid_path = gen_dir / f"ws_grid_{args.dim}x{args.dim}.v"
    with open(grid_path, "w") as f:
        f.write(verilog.convert(WSGrid(config), name=f"WSGrid_{args.dim}x{args.dim}"))
    print(f"Generated {grid_path}")


if __name__ == "__main__":
    main()
