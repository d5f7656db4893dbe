# src/affinity_ca/utils.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


logger = logging.getLogger(__name__)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Return a fresh generator; ``seed=None`` draws entropy from the OS."""
    return np.random.default_rng(seed)


def setup_logging(level: str = "INFO", fmt: str = "%(asctime)s - %(levelname)s - %(message)s") -> None:
    """
    Configure the root logger with a single console handler.

    Existing handlers are cleared so repeated calls from scripts do not
    duplicate output.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if root.hasHandlers():
        root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    logging.debug("Log level set to %s.", level.upper())


def parse_affinity(text: Optional[str]) -> Optional[List[int]]:
    """
    Parse a comma-separated affinity string such as ``"1,-1,1,..."``.

    Blank or malformed input returns None so the engine falls back to a
    random matrix.
    """
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    try:
        return [int(tok.strip(), 10) for tok in text.split(",")]
    except ValueError:
        logger.warning(
            "Invalid affinity string, using random matrix: %r", text[:40]
        )
        return None


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load grid parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
