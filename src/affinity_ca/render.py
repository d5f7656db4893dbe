from __future__ import annotations

from typing import Optional

import numpy as np

from .engine import ParticleGrid


def render_frame(grid: ParticleGrid, colors: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Map the lattice through the palette.

    Returns a (size, size, 3) float32 image with row = y and column = x, the
    same layout as :meth:`ParticleGrid.export_grid`.
    """
    palette = grid.colors if colors is None else np.asarray(colors, dtype=np.float32)
    data = np.frombuffer(grid.export_grid(), dtype=np.uint8).reshape(grid.size, grid.size)
    # Types past the end of the palette are drawn with the empty colour.
    data = np.where(data < palette.shape[0], data, 0)
    return palette[data]
