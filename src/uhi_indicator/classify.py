"""Urban/rural land-cover masks from NDVI and NDBI."""

from __future__ import annotations

import numpy as np

from .config import ClassificationThresholds

__all__ = ["urban_mask", "rural_mask"]


def urban_mask(ndvi: np.ndarray, ndbi: np.ndarray, thresholds: ClassificationThresholds) -> np.ndarray:
    # NaN compares False, so no-data pixels stay unclassified.
    return (ndbi > thresholds.ndbi_urban_min) & (ndvi < thresholds.ndvi_urban_max)


def rural_mask(ndvi: np.ndarray, ndbi: np.ndarray, thresholds: ClassificationThresholds) -> np.ndarray:
    return (ndvi > thresholds.ndvi_rural_min) & (ndbi < thresholds.ndbi_rural_max)
