"""
Type and rule tables for the affinity automaton.

Every table is indexed by particle type in ``0..num_types``; type 0 is the
empty cell and its rows are never consulted by the rules, but they are kept
so that a raw type ID can index the tables directly.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

EMPTY_COLOR = (0.1, 0.1, 0.1)
PALETTE_SATURATION = 0.8
PALETTE_VALUE = 1.0
# Type IDs live in a uint8 lattice.
MAX_TYPES = int(np.iinfo(np.uint8).max)


def populate_grid(size: int, num_types: int, density: float, rng: np.random.Generator) -> np.ndarray:
    """
    Fill a ``size x size`` lattice, each cell independently occupied with
    probability ``density`` by a uniformly chosen type in ``1..num_types``.
    """
    grid = np.zeros((size, size), dtype=np.uint8)
    if num_types < 1 or size == 0:
        return grid
    occupied = rng.random((size, size)) < density
    types = rng.integers(1, num_types, size=(size, size), endpoint=True)
    grid[occupied] = types[occupied]
    return grid


def random_affinity(num_types: int, rng: np.random.Generator) -> np.ndarray:
    """Fair coin flip per entry: +1 or -1."""
    n = num_types + 1
    return np.where(rng.random((n, n)) < 0.5, 1, -1).astype(np.int8)


def affinity_from_flat(values: Sequence[int], num_types: int) -> Optional[np.ndarray]:
    """
    Reshape a flat row-major array into the affinity matrix.

    Returns None if fewer than ``(num_types + 1) ** 2`` values are given.
    Extra values are ignored; each value wraps into the int8 range.
    """
    n = num_types + 1
    flat = np.asarray(values, dtype=object).ravel()
    if flat.size < n * n:
        return None
    # Reduce modulo 256 first so arbitrarily large ints wrap like an int8 cast.
    low_bytes = np.array([int(v) & 0xFF for v in flat[: n * n]], dtype=np.uint8)
    return low_bytes.view(np.int8).reshape(n, n)


def build_affinity(
    num_types: int,
    rng: np.random.Generator,
    values: Optional[Sequence[int]] = None,
) -> np.ndarray:
    if values is None:
        return random_affinity(num_types, rng)
    matrix = affinity_from_flat(values, num_types)
    if matrix is None:
        logger.info("Custom affinity array too small, using random")
        return random_affinity(num_types, rng)
    logger.info("Used custom affinity matrix")
    return matrix


def build_copy_targets(num_types: int, rng: np.random.Generator) -> np.ndarray:
    """
    For each type pick a different type to copy. When no other type exists
    the entry falls back to ``(t % num_types) + 1``, or 0 with no types.
    """
    copy_type = np.zeros(num_types + 1, dtype=np.uint8)
    for t in range(num_types + 1):
        choices = [c for c in range(1, num_types + 1) if c != t]
        if choices:
            copy_type[t] = rng.choice(choices)
        elif num_types > 0:
            copy_type[t] = (t % num_types) + 1
    return copy_type


def build_replace_targets(num_types: int, copy_type: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """
    For each type pick a victim type distinct from itself and from its copy
    target. Falls back to type 1 (0 with no types).
    """
    replace_type = np.zeros(num_types + 1, dtype=np.uint8)
    for t in range(num_types + 1):
        choices = [c for c in range(1, num_types + 1) if c != t and c != copy_type[t]]
        if choices:
            replace_type[t] = rng.choice(choices)
        else:
            replace_type[t] = 1 if num_types >= 1 else 0
    return replace_type


def hsv_to_rgb(h: float, s: float, v: float) -> tuple[float, float, float]:
    """Six-sector HSV to RGB conversion, all channels in [0, 1]."""
    h6 = h * 6.0
    i = int(np.floor(h6)) % 6
    f = h6 - np.floor(h6)
    p = v * (1.0 - s)
    q = v * (1.0 - f * s)
    t = v * (1.0 - (1.0 - f) * s)

    if i == 0:
        return v, t, p
    if i == 1:
        return q, v, p
    if i == 2:
        return p, v, t
    if i == 3:
        return p, q, v
    if i == 4:
        return t, p, v
    return v, p, q


def build_palette(num_types: int) -> np.ndarray:
    """
    Returns an (num_types + 1, 3) float array. Type 0 is dark gray, the rest
    are spread evenly around the hue circle.
    """
    colors = np.empty((num_types + 1, 3), dtype=np.float32)
    colors[0] = EMPTY_COLOR
    for t in range(1, num_types + 1):
        h = (t - 1) / num_types
        colors[t] = hsv_to_rgb(h, PALETTE_SATURATION, PALETTE_VALUE)
    return colors


def validate_targets(values: Sequence[int], num_types: int) -> Optional[np.ndarray]:
    """
    Convert a copy/replace sequence into a uint8 table of ``num_types + 1``
    entries.

    Returns None if any entry would point outside the type range: real types
    (indices ``1..num_types``) must map to ``1..num_types``, index 0 may map
    to any value in ``0..num_types``. Entries past ``num_types`` are dropped.
    """
    try:
        table = np.asarray(values, dtype=np.int64).ravel()[: num_types + 1]
    except OverflowError:
        return None
    if table.size < num_types + 1:
        return None
    if np.any(table < 0) or np.any(table > num_types):
        return None
    if np.any(table[1:] == 0):
        return None
    return table.astype(np.uint8)


__all__ = [
    "MAX_TYPES",
    "populate_grid",
    "random_affinity",
    "affinity_from_flat",
    "build_affinity",
    "build_copy_targets",
    "build_replace_targets",
    "hsv_to_rgb",
    "build_palette",
    "validate_targets",
]
