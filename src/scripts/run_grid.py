#!/usr/bin/env python3
"""
Affinity Grid Runner

Builds a particle grid, advances it a fixed number of ticks and optionally
saves the final frame as a PNG. Parameters come from CLI flags, optionally
layered over a JSON/TOML parameter file.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from affinity_ca import GridConfig, ParticleGrid, render_frame, utils

logger = logging.getLogger("run_grid")


def build_config(args: argparse.Namespace) -> GridConfig:
    """Merge the params file (if any) with explicit CLI flags."""
    params = utils.load_params(args.params) if args.params else {}
    for key in ("size", "num_types", "density", "radius", "seed"):
        value = getattr(args, key)
        if value is not None:
            params[key] = value
    if args.affinity is not None:
        params["affinity"] = utils.parse_affinity(args.affinity)
    elif isinstance(params.get("affinity"), str):
        params["affinity"] = utils.parse_affinity(params["affinity"])
    return GridConfig.from_dict(params)


def save_frame(grid: ParticleGrid, path: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    plt.imsave(out, render_frame(grid))


def main():
    parser = argparse.ArgumentParser(
        description="Run an affinity particle grid",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--params", type=str, default=None, help="JSON or TOML parameter file")
    parser.add_argument("--size", type=int, default=None, help="grid side length")
    parser.add_argument("--num-types", dest="num_types", type=int, default=None, help="number of particle types")
    parser.add_argument("--density", type=float, default=None, help="initial occupancy fraction")
    parser.add_argument("--radius", type=int, default=None, help="movement scoring radius")
    parser.add_argument(
        "--affinity",
        type=str,
        default=None,
        help="comma-separated flat affinity matrix, (num_types+1)^2 values",
    )
    parser.add_argument("--seed", type=int, default=None, help="random seed (default: unseeded)")
    parser.add_argument("--steps", type=int, default=200, help="number of ticks to run")
    parser.add_argument("--log-every", type=int, default=50, help="log debug info every N ticks (0 = never)")
    parser.add_argument("--out", type=str, default=None, help="PNG path for the final frame")
    parser.add_argument("--log-level", type=str, default="INFO")

    args = parser.parse_args()
    utils.setup_logging(args.log_level)

    config = build_config(args)
    grid = ParticleGrid(config)
    logger.info(grid.debug_info())

    start_time = time.time()
    for tick in range(1, args.steps + 1):
        grid.step()
        if args.log_every and tick % args.log_every == 0:
            logger.info("tick %d: %s", tick, grid.debug_info())
    elapsed_time = time.time() - start_time

    if args.out is not None:
        save_frame(grid, args.out)

    print(f"\nRun completed: {args.steps} ticks in {elapsed_time:.2f} seconds")
    print(f"   {grid.debug_info()}")
    if args.out is not None:
        print(f"   Frame saved to: {args.out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
