"""Band math: land-surface temperature, spectral indices and temporal composites."""

from __future__ import annotations

import logging
import warnings
from typing import Sequence

import numpy as np

from .l2 import ST_OFFSET, ST_SCALE

__all__ = [
    "lst_from_thermal",
    "normalized_difference",
    "ndvi",
    "ndbi",
    "mean_composite",
    "median_composite",
]

logger = logging.getLogger(__name__)

KELVIN_OFFSET = 273.15


def lst_from_thermal(thermal: np.ndarray, scale: float = ST_SCALE, offset: float = ST_OFFSET) -> np.ndarray:
    """Land-surface temperature in °C from scaled ST_B10 digital numbers."""
    return (thermal.astype("float32") * scale + offset - KELVIN_OFFSET).astype("float32")


def normalized_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """(a - b) / (a + b); NaN where an input is NaN or negative, or the denominator is zero."""
    a = a.astype("float32")
    b = b.astype("float32")
    num = a - b
    den = a + b
    finite = np.isfinite(a) & np.isfinite(b)
    # With both inputs >= 0 and a positive sum the ratio stays within [-1, 1].
    valid = finite & (a >= 0) & (b >= 0) & (den > 0)
    out = np.full(a.shape, np.nan, dtype="float32")
    np.divide(num, den, out=out, where=valid)
    dropped = int((finite & ~valid).sum())
    if dropped:
        logger.debug("%d pixel(s) with a negative input or zero denominator set to no-data", dropped)
    return out


def ndvi(nir: np.ndarray, red: np.ndarray) -> np.ndarray:
    return normalized_difference(nir, red)


def ndbi(swir1: np.ndarray, nir: np.ndarray) -> np.ndarray:
    return normalized_difference(swir1, nir)


def _stack(rasters: Sequence[np.ndarray]) -> np.ndarray:
    if len(rasters) == 0:
        raise ValueError("Cannot composite an empty sequence of rasters.")
    return np.stack([np.asarray(r, dtype="float32") for r in rasters])


def mean_composite(rasters: Sequence[np.ndarray]) -> np.ndarray:
    """Per-pixel mean across scenes, ignoring NaN; NaN where no scene is valid."""
    stack = _stack(rasters)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        return np.nanmean(stack, axis=0).astype("float32")


def median_composite(rasters: Sequence[np.ndarray]) -> np.ndarray:
    """Per-pixel median across scenes, ignoring NaN; NaN where no scene is valid."""
    stack = _stack(rasters)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        return np.nanmedian(stack, axis=0).astype("float32")
