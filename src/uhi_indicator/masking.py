"""Vector/raster masking helpers."""

from __future__ import annotations

import numpy as np
from rasterio.features import rasterize
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from .grid import GridSpec

__all__ = ["geometry_mask", "clip_to_boundary"]


def geometry_mask(grid: GridSpec, geometry: BaseGeometry, *, all_touched: bool = False) -> np.ndarray:
    """True for pixels whose centre falls inside ``geometry``."""
    if geometry.is_empty:
        return np.zeros(grid.shape, dtype=bool)
    mask = rasterize(
        [mapping(geometry)],
        out_shape=grid.shape,
        transform=grid.transform,
        fill=0,
        default_value=1,
        all_touched=all_touched,
        dtype="uint8",
    )
    return mask.astype(bool)


def clip_to_boundary(arr: np.ndarray, inside: np.ndarray) -> np.ndarray:
    """NaN (float rasters) or False (masks) outside the boundary."""
    if arr.dtype == bool:
        return arr & inside
    out = arr.astype("float32", copy=True)
    out[~inside] = np.nan
    return out
