"""Analysis grid definition and reprojection onto it."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.transform import Affine, from_origin
from rasterio.warp import reproject
from rasterio.windows import Window, from_bounds
from rasterio.windows import transform as window_transform

__all__ = ["GridSpec", "assert_same_grid", "resample_to_grid", "pixel_area_weights"]


@dataclass(frozen=True)
class GridSpec:
    crs: CRS
    transform: Affine
    width: int
    height: int

    @classmethod
    def from_bounds(cls, bounds: tuple[float, float, float, float], crs, resolution: float) -> "GridSpec":
        """North-up grid covering ``bounds`` with square pixels of ``resolution``."""
        minx, miny, maxx, maxy = bounds
        width = max(1, math.ceil((maxx - minx) / resolution))
        height = max(1, math.ceil((maxy - miny) / resolution))
        return cls(CRS.from_user_input(crs), from_origin(minx, maxy, resolution, resolution), width, height)

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    @property
    def resolution(self) -> float:
        return abs(self.transform.a)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        t = self.transform
        return t.c, t.f + t.e * self.height, t.c + t.a * self.width, t.f

    def rescaled(self, scale: float) -> "GridSpec":
        """Same extent and origin, pixels of size ``scale``."""
        return GridSpec.from_bounds(self.bounds, self.crs, scale)

    def window(self, bounds: tuple[float, float, float, float]) -> Optional[Window]:
        """Whole-pixel window covering ``bounds``, clamped to the grid; None if they do not overlap."""
        win = from_bounds(*bounds, transform=self.transform)
        row0 = max(0, math.floor(win.row_off))
        col0 = max(0, math.floor(win.col_off))
        row1 = min(self.height, math.ceil(win.row_off + win.height))
        col1 = min(self.width, math.ceil(win.col_off + win.width))
        if row1 <= row0 or col1 <= col0:
            return None
        return Window(col0, row0, col1 - col0, row1 - row0)

    def subgrid(self, window: Window) -> "GridSpec":
        return GridSpec(self.crs, window_transform(window, self.transform), int(window.width), int(window.height))

    def profile(self, **overrides) -> dict:
        profile = {
            "driver": "GTiff",
            "crs": self.crs,
            "transform": self.transform,
            "width": self.width,
            "height": self.height,
            "count": 1,
            "dtype": "float32",
            "nodata": np.nan,
        }
        profile.update(overrides)
        return profile

    def matches(self, other: "GridSpec") -> bool:
        try:
            assert_same_grid(self.profile(), other.profile())
        except ValueError:
            return False
        return True


def assert_same_grid(reference_profile: dict, other_profile: dict, label: str = "raster") -> None:
    """Raise ValueError if CRS, transform, width, or height differ from reference.
    Allows small floating tolerance on transform.
    """
    ref = reference_profile
    oth = other_profile
    if CRS.from_user_input(ref["crs"]) != CRS.from_user_input(oth["crs"]):
        raise ValueError(f"{label} CRS does not match the analysis grid CRS.")
    if (ref.get("width"), ref.get("height")) != (oth.get("width"), oth.get("height")):
        raise ValueError(f"{label} dimensions do not match the analysis grid.")
    ref_t = ref["transform"]
    oth_t = oth["transform"]
    if not np.allclose(
        [ref_t.a, ref_t.b, ref_t.c, ref_t.d, ref_t.e, ref_t.f],
        [oth_t.a, oth_t.b, oth_t.c, oth_t.d, oth_t.e, oth_t.f],
        rtol=0,
        atol=1e-6,
    ):
        raise ValueError(f"{label} geotransform does not match the analysis grid.")


def resample_to_grid(
    arr: np.ndarray,
    src: GridSpec,
    dst: GridSpec,
    *,
    resampling: Resampling = Resampling.average,
) -> np.ndarray:
    """Warp a float array with NaN no-data from ``src`` onto ``dst``."""
    if src.matches(dst):
        return arr.astype("float32", copy=True)
    out = np.full(dst.shape, np.nan, dtype="float32")
    reproject(
        source=arr.astype("float32"),
        destination=out,
        src_transform=src.transform,
        src_crs=src.crs,
        src_nodata=np.nan,
        dst_transform=dst.transform,
        dst_crs=dst.crs,
        dst_nodata=np.nan,
        resampling=resampling,
    )
    return out


def pixel_area_weights(grid: GridSpec) -> np.ndarray:
    """Relative pixel areas; uniform on projected grids, cos(latitude) on geographic ones."""
    if not grid.crs.is_geographic:
        return np.full(grid.shape, abs(grid.transform.a * grid.transform.e), dtype="float64")
    rows = np.arange(grid.height) + 0.5
    lat = grid.transform.f + rows * grid.transform.e
    col = np.cos(np.deg2rad(lat)) * abs(grid.transform.a * grid.transform.e)
    return np.repeat(col[:, None], grid.width, axis=1)
