"""
Affinity CA - stochastic particle-affinity cellular automaton

This package provides:
- ParticleGrid: the lattice engine (replacement + movement rules)
- GridConfig: construction parameters
- UpdateStatus: result of the table update operations
"""

from .engine import GridConfig, ParticleGrid, UpdateStatus, create
from .render import render_frame
from . import utils

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ParticleGrid",
    "GridConfig",
    "UpdateStatus",
    "create",
    # Rendering helpers
    "render_frame",
    # Utilities
    "utils",
    "__version__",
]
