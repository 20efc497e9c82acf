"""Raster IO helpers."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import rasterio

from .grid import GridSpec

__all__ = ["save_raster", "save_mask"]


def save_raster(path: Path | str, arr: np.ndarray, grid: GridSpec) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **grid.profile()) as dst:
        dst.write(arr.astype("float32"), 1)
    return path


def save_mask(path: Path | str, mask: np.ndarray, grid: GridSpec) -> Path:
    """Write a boolean mask as uint8 with 0 as no-data (only true pixels are kept)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **grid.profile(dtype="uint8", nodata=0)) as dst:
        dst.write(mask.astype("uint8"), 1)
    return path
