"""Region statistics: masked area-weighted means, UHI intensity, city means, histogram."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

import geopandas as gpd
import numpy as np
from rasterio.enums import Resampling
from shapely.geometry.base import BaseGeometry

from .boundary import city_buffer
from .config import CitySample
from .errors import AggregationLimitExceeded, UHIError, UndefinedRegionMean
from .grid import GridSpec, pixel_area_weights, resample_to_grid
from .masking import geometry_mask

__all__ = [
    "Statistic",
    "CityStatistic",
    "Histogram",
    "estimate_sample_count",
    "region_mean",
    "measure",
    "uhi_intensity",
    "uhi_raster",
    "city_statistic",
    "lst_histogram",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statistic:
    """A scalar that is either defined or carries the error kind that left it undefined."""

    value: Optional[float]
    pixel_count: int = 0
    error: Optional[str] = None

    @property
    def defined(self) -> bool:
        return self.value is not None

    @classmethod
    def undefined(cls, error: str) -> "Statistic":
        return cls(value=None, pixel_count=0, error=error)

    def __str__(self) -> str:
        if self.value is None:
            return f"undefined ({self.error})"
        return f"{self.value:.2f} °C"


@dataclass(frozen=True)
class CityStatistic:
    city: CitySample
    geometry: Optional[BaseGeometry]
    lst: Statistic


@dataclass(frozen=True)
class Histogram:
    edges: np.ndarray
    counts: np.ndarray


def estimate_sample_count(geometry: BaseGeometry, crs, scale: float) -> float:
    """Pixels a reduction over ``geometry`` at ``scale`` metres would visit (area / scale**2)."""
    series = gpd.GeoSeries([geometry], crs=crs)
    if series.crs.is_geographic:
        series = series.to_crs(series.estimate_utm_crs())
    return float(series.area.iloc[0]) / scale**2


def _region_values(
    raster: np.ndarray,
    grid: GridSpec,
    geometry: BaseGeometry,
    *,
    mask: Optional[np.ndarray],
    scale: float,
    max_pixels: float,
) -> tuple[np.ndarray, np.ndarray]:
    requested = estimate_sample_count(geometry, grid.crs, scale)
    if requested > max_pixels:
        raise AggregationLimitExceeded(requested, max_pixels)

    # Work only on the pixels under the geometry's bounding box.
    window = grid.window(geometry.bounds) if not geometry.is_empty else None
    if window is None:
        return np.empty(0, dtype="float64"), np.empty(0, dtype="float64")
    sub = grid.subgrid(window)
    rows, cols = window.toslices()

    values = raster[rows, cols].astype("float32", copy=True)
    if mask is not None:
        values[~mask[rows, cols]] = np.nan

    # ``scale`` is a ground distance; only geographic grids need a degree conversion.
    step = scale if not grid.crs.is_geographic else scale / 111320.0
    target = sub if math.isclose(step, sub.resolution, rel_tol=1e-9) else sub.rescaled(step)
    if target is not sub:
        values = resample_to_grid(values, sub, target, resampling=Resampling.average)

    selected = geometry_mask(target, geometry) & np.isfinite(values)
    return values[selected].astype("float64"), pixel_area_weights(target)[selected]


def region_mean(
    raster: np.ndarray,
    grid: GridSpec,
    geometry: BaseGeometry,
    *,
    mask: Optional[np.ndarray] = None,
    scale: float,
    max_pixels: float,
) -> Statistic:
    """Area-weighted mean of the valid (and masked-in) pixels whose centre lies in ``geometry``.

    Pixels are first averaged onto a ``scale`` grid anchored at the geometry's
    bounding box. A sample counts in full when its centre falls inside the
    geometry and not at all otherwise; partially covered samples are not
    weighted by their covered fraction.

    Raises:
        AggregationLimitExceeded: the geometry would need more than ``max_pixels`` samples.
        UndefinedRegionMean: no valid pixel remains.
    """
    values, weights = _region_values(raster, grid, geometry, mask=mask, scale=scale, max_pixels=max_pixels)
    if values.size == 0:
        raise UndefinedRegionMean("No valid pixels inside the geometry.")
    return Statistic(value=float(np.average(values, weights=weights)), pixel_count=int(values.size))


def measure(name: str, fn: Callable[..., Statistic], *args, **kwargs) -> Statistic:
    """Run a statistic, turning a per-statistic failure into an undefined value."""
    try:
        stat = fn(*args, **kwargs)
    except UHIError as exc:
        logger.warning("%s is undefined: %s", name, exc)
        return Statistic.undefined(type(exc).__name__)
    logger.info("%s: %.3f (%d pixels)", name, stat.value, stat.pixel_count)
    return stat


def uhi_intensity(urban: Statistic, rural: Statistic) -> Statistic:
    for operand in (urban, rural):
        if not operand.defined:
            return Statistic.undefined(operand.error)
    return Statistic(value=urban.value - rural.value, pixel_count=urban.pixel_count + rural.pixel_count)


def uhi_raster(lst: np.ndarray, urban: np.ndarray, rural_mean: Statistic) -> np.ndarray:
    """LST minus the rural mean on urban pixels; NaN elsewhere or when the rural mean is undefined."""
    out = np.full(lst.shape, np.nan, dtype="float32")
    if not rural_mean.defined:
        return out
    sel = urban & np.isfinite(lst)
    out[sel] = lst[sel] - rural_mean.value
    return out


def city_statistic(
    lst: np.ndarray,
    grid: GridSpec,
    city: CitySample,
    *,
    scale: float,
    max_pixels: float,
) -> CityStatistic:
    geometry = city_buffer(city, grid.crs)
    stat = measure(f"{city.name} mean LST", region_mean, lst, grid, geometry, scale=scale, max_pixels=max_pixels)
    return CityStatistic(city=city, geometry=geometry, lst=stat)


def lst_histogram(
    lst: np.ndarray,
    grid: GridSpec,
    geometry: BaseGeometry,
    *,
    scale: float,
    max_pixels: float,
    bin_width: float = 1.0,
) -> Optional[Histogram]:
    """Pixel-count histogram of LST over ``geometry`` sampled at ``scale``; None when undefined."""
    try:
        values, _ = _region_values(lst, grid, geometry, mask=None, scale=scale, max_pixels=max_pixels)
    except AggregationLimitExceeded as exc:
        logger.warning("LST histogram is undefined: %s", exc)
        return None
    if values.size == 0:
        logger.warning("LST histogram is undefined: no valid pixels")
        return None
    lo = math.floor(values.min() / bin_width) * bin_width
    hi = math.floor(values.max() / bin_width) * bin_width + bin_width
    n_bins = max(1, int(round((hi - lo) / bin_width)))
    counts, edges = np.histogram(values, bins=n_bins, range=(lo, hi))
    return Histogram(edges=edges, counts=counts)
