"""
Affinity particle grid.

A square lattice of typed particles that drift towards neighbourhoods they
have positive affinity for and convert nearby particles according to a
per-type copy/replace rule. The host calls :meth:`ParticleGrid.step` once per
frame and reads the lattice back with :meth:`ParticleGrid.export_grid`.

Construction never fails: undersized affinity arrays fall back to a random
matrix, and degenerate sizes simply produce an inert grid. The two update
methods report problems through :class:`UpdateStatus` and leave the state
untouched when they refuse an update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Sequence

import numpy as np

from . import rules, tables, utils

logger = logging.getLogger(__name__)


class UpdateStatus(Enum):
    OK = "ok"
    SIZE_MISMATCH = "size_mismatch"
    INVALID_TYPE_ID = "invalid_type_id"

    def __bool__(self) -> bool:
        return self is UpdateStatus.OK


@dataclass(frozen=True)
class GridConfig:
    """Parameters fixed for the lifetime of a grid."""
    size: int = 128
    num_types: int = 4
    density: float = 0.3
    radius: int = 2
    affinity: Optional[Sequence[int]] = None
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GridConfig":
        """Create config from a parameter dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


class ParticleGrid:
    """
    The engine.

    Responsibilities:
    1. Build the lattice and rule tables from a :class:`GridConfig`.
    2. Own the random generator used by every stochastic decision.
    3. Hand the arrays to the Numba kernels in :mod:`affinity_ca.rules`.
    """

    def __init__(
        self,
        config: GridConfig | None = None,
        *,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or GridConfig()
        self.rng = rng if rng is not None else utils.make_rng(self.config.seed)

        size = max(int(self.config.size), 0)
        num_types = max(int(self.config.num_types), 0)
        if num_types > tables.MAX_TYPES:
            logger.warning(
                "num_types %d exceeds the uint8 type range, clamping to %d",
                num_types, tables.MAX_TYPES,
            )
            num_types = tables.MAX_TYPES
        self._size = size
        self._num_types = num_types
        self._radius = max(int(self.config.radius), 0)

        logger.info(
            "Creating ParticleGrid: %dx%d, %d types, density %.2f, radius %d",
            size, size, num_types, self.config.density, self._radius,
        )

        self._grid = tables.populate_grid(size, num_types, self.config.density, self.rng)
        self._affinity = tables.build_affinity(num_types, self.rng, self.config.affinity)
        self._copy_type = tables.build_copy_targets(num_types, self.rng)
        self._replace_type = tables.build_replace_targets(num_types, self._copy_type, self.rng)
        self._colors = tables.build_palette(num_types)
        self._updates = rules.updates_per_step(self.config.density, size)

    # ------------------------------------------------------------------ getters
    @property
    def size(self) -> int:
        return self._size

    @property
    def num_types(self) -> int:
        return self._num_types

    @property
    def density(self) -> float:
        return self.config.density

    @property
    def radius(self) -> int:
        return self._radius

    @property
    def grid(self) -> np.ndarray:
        """Copy of the lattice, indexed ``[x, y]``."""
        return self._grid.copy()

    @property
    def affinity(self) -> np.ndarray:
        return self._affinity.copy()

    @property
    def copy_targets(self) -> np.ndarray:
        return self._copy_type.copy()

    @property
    def replace_targets(self) -> np.ndarray:
        return self._replace_type.copy()

    @property
    def colors(self) -> np.ndarray:
        """(num_types + 1, 3) RGB palette in [0, 1]; row 0 is the empty colour."""
        return self._colors.copy()

    # ------------------------------------------------------------------ public
    def step(self, n: int = 1) -> None:
        """Advance the simulation by ``n`` ticks."""
        if self._updates == 0:
            return
        for _ in range(n):
            applied, relabelled, moved = rules.step_kernel(
                self._grid,
                self._affinity,
                self._copy_type,
                self._replace_type,
                self._radius,
                self._updates,
                self.rng,
            )
            logger.debug(
                "step: %d rule applications, %d relabelled, %d moved",
                applied, relabelled, moved,
            )

    def export_grid(self) -> bytes:
        """Row-major bytes, ``data[y * size + x]`` is the type at (x, y)."""
        return np.ascontiguousarray(self._grid.T).tobytes()

    def particle_count(self) -> int:
        return int(rules.count_particles(self._grid))

    def type_counts(self) -> np.ndarray:
        """Cells per type; index 0 counts empty cells."""
        return np.bincount(self._grid.ravel(), minlength=self._num_types + 1)

    def debug_info(self) -> str:
        return (
            f"Grid {self._size}x{self._size}, {self._num_types} types, "
            f"density {self.config.density:.2f}, radius {self._radius}, "
            f"particles: {self.particle_count()}"
        )

    # ------------------------------------------------------------------ updates
    def update_affinity(self, new_affinity: Sequence[int]) -> UpdateStatus:
        """Replace the whole affinity matrix from a flat row-major array."""
        matrix = tables.affinity_from_flat(new_affinity, self._num_types)
        if matrix is None:
            logger.warning(
                "Ignoring affinity update: need %d values", (self._num_types + 1) ** 2
            )
            return UpdateStatus.SIZE_MISMATCH
        self._affinity = matrix
        return UpdateStatus.OK

    def update_copy_replace(
        self, copy_types: Sequence[int], replace_types: Sequence[int]
    ) -> UpdateStatus:
        """
        Replace both copy and replace tables. Both sequences must be longer
        than ``num_types``; entries beyond that are ignored.
        """
        if len(copy_types) <= self._num_types or len(replace_types) <= self._num_types:
            logger.warning(
                "Ignoring copy/replace update: need more than %d entries each",
                self._num_types,
            )
            return UpdateStatus.SIZE_MISMATCH

        copy_table = tables.validate_targets(copy_types, self._num_types)
        replace_table = tables.validate_targets(replace_types, self._num_types)
        if copy_table is None or replace_table is None:
            logger.warning("Ignoring copy/replace update: type id out of range")
            return UpdateStatus.INVALID_TYPE_ID

        self._copy_type = copy_table
        self._replace_type = replace_table
        return UpdateStatus.OK

    def __repr__(self) -> str:
        return f"ParticleGrid({self.debug_info()})"


def create(
    size: int,
    num_types: int,
    density: float,
    radius: int,
    affinity: Optional[Sequence[int]] = None,
    seed: Optional[int] = None,
) -> ParticleGrid:
    """Convenience constructor mirroring the host-facing signature."""
    return ParticleGrid(
        GridConfig(
            size=size,
            num_types=num_types,
            density=density,
            radius=radius,
            affinity=affinity,
            seed=seed,
        )
    )


__all__ = ["GridConfig", "ParticleGrid", "UpdateStatus", "create"]
