"""
Numba kernels for the affinity automaton.

The lattice is a ``uint8`` array indexed ``grid[x, y]``; 0 is empty. All
neighbourhoods are clamped at the lattice edge (no wrap-around).

Two rules act on a sampled particle, in this order:
1.  **Replacement:** if the particle's copy-target type is present in its
    3x3 window, every cell of its replace-target type in that window is
    relabelled to the copy target.
2.  **Movement:** each empty neighbour is scored by the particle's affinity
    towards the occupants of a ``(2*radius+1)^2`` window around it; the
    particle jumps to a uniformly chosen best-scoring neighbour.

The scheduler samples from a snapshot of occupied coordinates and never
refreshes it within a step, so moved particles may be skipped and stale
entries are discarded lazily.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numba import njit

###############################################################################
# Constants
###############################################################################

# Scores are compared at float32 resolution.
SCORE_TOLERANCE = float(np.finfo(np.float32).eps)
INITIAL_BEST = -1_000_000.0
UPDATE_FRACTION = 0.2


###############################################################################
# Helpers
###############################################################################


@njit(cache=True)
def _clamp_window(c: int, half: int, size: int) -> Tuple[int, int]:
    """Inclusive [lo, hi] of a window of half-width ``half`` around ``c``."""
    lo = c - half
    if lo < 0:
        lo = 0
    hi = c + half
    if hi > size - 1:
        hi = size - 1
    return lo, hi


@njit(cache=True)
def count_particles(grid: np.ndarray) -> int:
    size = grid.shape[0]
    count = 0
    for x in range(size):
        for y in range(size):
            if grid[x, y] != 0:
                count += 1
    return count


###############################################################################
# Replacement rule
###############################################################################


@njit(cache=True)
def try_replace(
    grid: np.ndarray,
    copy_type: np.ndarray,
    replace_type: np.ndarray,
    x: int,
    y: int,
) -> int:
    """
    Applies the replacement rule at (x, y) and returns the number of cells
    relabelled.

    Both scans use the same clamped 3x3 window, centre included. Cells set to
    the copy type are not revisited, so nothing propagates within one call.
    """
    p_type = grid[x, y]
    if p_type == 0:
        return 0

    size = grid.shape[0]
    ct = copy_type[p_type]
    rt = replace_type[p_type]
    x0, x1 = _clamp_window(x, 1, size)
    y0, y1 = _clamp_window(y, 1, size)

    has_copy_neighbor = False
    for j in range(y0, y1 + 1):
        for i in range(x0, x1 + 1):
            if grid[i, j] == ct:
                has_copy_neighbor = True
                break
        if has_copy_neighbor:
            break

    if not has_copy_neighbor:
        return 0

    relabelled = 0
    for j in range(y0, y1 + 1):
        for i in range(x0, x1 + 1):
            if grid[i, j] == rt and rt != ct:
                grid[i, j] = ct
                relabelled += 1
    return relabelled


###############################################################################
# Movement rule
###############################################################################


@njit(cache=True)
def window_score(
    grid: np.ndarray,
    affinity: np.ndarray,
    p_type: int,
    i: int,
    j: int,
    radius: int,
) -> float:
    """
    Normalised affinity of ``p_type`` towards the window of half-width
    ``radius`` centred at (i, j). Empty cells count towards the window size
    but contribute no score.
    """
    size = grid.shape[0]
    rx0, rx1 = _clamp_window(i, radius, size)
    ry0, ry1 = _clamp_window(j, radius, size)

    score = 0
    for yy in range(ry0, ry1 + 1):
        for xx in range(rx0, rx1 + 1):
            ct = grid[xx, yy]
            if ct != 0:
                if affinity[p_type, ct] == 1:
                    score += 1
                else:
                    score -= 1

    cell_count = (rx1 - rx0 + 1) * (ry1 - ry0 + 1)
    return score / max(cell_count, 1)


@njit
def choose_destination(
    grid: np.ndarray,
    affinity: np.ndarray,
    radius: int,
    x: int,
    y: int,
    rng: np.random.Generator,
) -> Tuple[int, int]:
    """
    Picks where the particle at (x, y) should go: a uniformly random member
    of the best-scoring empty neighbours, or (x, y) itself if it is boxed in.
    """
    size = grid.shape[0]
    p_type = grid[x, y]
    x0, x1 = _clamp_window(x, 1, size)
    y0, y1 = _clamp_window(y, 1, size)

    tie_x = np.empty(9, dtype=np.int64)
    tie_y = np.empty(9, dtype=np.int64)
    tie_x[0] = x
    tie_y[0] = y
    n_ties = 1
    best = INITIAL_BEST

    for j in range(y0, y1 + 1):
        for i in range(x0, x1 + 1):
            if grid[i, j] != 0:
                continue
            norm = window_score(grid, affinity, p_type, i, j, radius)
            if norm > best:
                best = norm
                tie_x[0] = i
                tie_y[0] = j
                n_ties = 1
            elif abs(norm - best) < SCORE_TOLERANCE:
                tie_x[n_ties] = i
                tie_y[n_ties] = j
                n_ties += 1

    k = 0
    if n_ties > 1:
        k = rng.integers(0, n_ties)
    return tie_x[k], tie_y[k]


@njit
def move_particle(
    grid: np.ndarray,
    affinity: np.ndarray,
    radius: int,
    x: int,
    y: int,
    rng: np.random.Generator,
) -> bool:
    """Moves the particle at (x, y) into its chosen empty neighbour, if any."""
    p_type = grid[x, y]
    if p_type == 0:
        return False

    bx, by = choose_destination(grid, affinity, radius, x, y, rng)
    if bx == x and by == y:
        return False

    grid[bx, by] = p_type
    grid[x, y] = 0
    return True


###############################################################################
# Scheduler
###############################################################################


def updates_per_step(density: float, size: int) -> int:
    """Number of sampling iterations one step performs."""
    return int(np.floor(UPDATE_FRACTION * density * size * size))


@njit
def step_kernel(
    grid: np.ndarray,
    affinity: np.ndarray,
    copy_type: np.ndarray,
    replace_type: np.ndarray,
    radius: int,
    updates: int,
    rng: np.random.Generator,
) -> Tuple[int, int, int]:
    """
    Runs one tick in place.

    Occupied coordinates are snapshotted once (x-major). Each iteration draws
    a random snapshot entry; an entry whose cell has since emptied is
    swap-removed and the iteration is spent without applying any rule.

    Returns:
        (rules applied, cells relabelled, particles moved)
    """
    size = grid.shape[0]
    xs = np.empty(size * size, dtype=np.int64)
    ys = np.empty(size * size, dtype=np.int64)
    n = 0
    for x in range(size):
        for y in range(size):
            if grid[x, y] != 0:
                xs[n] = x
                ys[n] = y
                n += 1

    applied = 0
    relabelled = 0
    moved = 0
    if n == 0:
        return applied, relabelled, moved

    for _ in range(updates):
        if n == 0:
            break
        idx = rng.integers(0, n)
        x = xs[idx]
        y = ys[idx]

        if grid[x, y] == 0:
            n -= 1
            xs[idx] = xs[n]
            ys[idx] = ys[n]
            continue

        relabelled += try_replace(grid, copy_type, replace_type, x, y)
        if move_particle(grid, affinity, radius, x, y, rng):
            moved += 1
        applied += 1

    return applied, relabelled, moved


__all__ = [
    "SCORE_TOLERANCE",
    "count_particles",
    "try_replace",
    "window_score",
    "choose_destination",
    "move_particle",
    "updates_per_step",
    "step_kernel",
]
