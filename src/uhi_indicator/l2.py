"""Landsat Collection 2 Level-2 band access on the analysis grid."""

from __future__ import annotations

import glob
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import rasterio
from rasterio.enums import Resampling
from rasterio.warp import reproject

from .grid import GridSpec, resample_to_grid

SR_SCALE = 0.0000275
SR_OFFSET = -0.2

ST_SCALE = 0.00341802
ST_OFFSET = 149.0  # Kelvin

L2_FILL = 0

RED_SUFFIX = "_SR_B4"
NIR_SUFFIX = "_SR_B5"
SWIR1_SUFFIX = "_SR_B6"
THERMAL_SUFFIX = "_ST_B10"
QA_SUFFIX = "_QA_PIXEL"

__all__ = [
    "SR_SCALE",
    "SR_OFFSET",
    "ST_SCALE",
    "ST_OFFSET",
    "SceneBands",
    "find_band",
    "read_band_to_grid",
    "load_scene_bands",
]

logger = logging.getLogger(__name__)


def _qa_bits(arr: np.ndarray, bit: int) -> np.ndarray:
    return ((arr >> bit) & 1).astype(bool)


def _build_clear_mask(qa: np.ndarray, keep_water: bool = False) -> np.ndarray:
    invalid = (
        _qa_bits(qa, 0)
        | _qa_bits(qa, 1)
        | _qa_bits(qa, 2)
        | _qa_bits(qa, 3)
        | _qa_bits(qa, 4)
        | _qa_bits(qa, 5)
    )
    if not keep_water:
        invalid = invalid | _qa_bits(qa, 7)
    return ~invalid


def find_band(folder: Path | str, suffix: str) -> Optional[str]:
    folder = Path(folder)
    pats = [folder / f"*{suffix}.TIF", folder / f"*{suffix}.tif"]
    for pat in pats:
        matches = sorted(glob.glob(str(pat)))
        if matches:
            return matches[0]
    return None


def _require_band(folder: Path | str, suffix: str) -> str:
    path = find_band(folder, suffix)
    if not path:
        raise FileNotFoundError(f"Could not find *{suffix}.TIF in {folder}.")
    return path


def read_band_to_grid(
    path: Path | str,
    grid: GridSpec,
    *,
    resampling: Resampling = Resampling.bilinear,
) -> np.ndarray:
    """Read band 1 as float32 on ``grid``; fill and nodata pixels become NaN."""
    with rasterio.open(path) as src:
        raw = src.read(1).astype("float32")
        invalid = raw == L2_FILL
        if src.nodata is not None and not np.isnan(src.nodata):
            invalid |= raw == src.nodata
        raw[invalid] = np.nan
        src_grid = GridSpec(src.crs, src.transform, src.width, src.height)
    return resample_to_grid(raw, src_grid, grid, resampling=resampling)


def _read_qa_to_grid(path: Path | str, grid: GridSpec) -> np.ndarray:
    with rasterio.open(path) as src:
        qa = src.read(1)
        src_grid = GridSpec(src.crs, src.transform, src.width, src.height)
        if src_grid.matches(grid):
            return qa.astype("uint16")
        out = np.ones(grid.shape, dtype="uint16")  # bit 0 (fill) outside the scene
        reproject(
            source=qa.astype("uint16"),
            destination=out,
            src_transform=src.transform,
            src_crs=src.crs,
            dst_transform=grid.transform,
            dst_crs=grid.crs,
            resampling=Resampling.nearest,
        )
    return out


@dataclass
class SceneBands:
    """One scene on the analysis grid; NaN marks pixels without a valid value."""

    thermal: np.ndarray
    red: np.ndarray
    nir: np.ndarray
    swir1: np.ndarray


def load_scene_bands(
    folder: Path | str,
    grid: GridSpec,
    *,
    mask_clouds: bool = False,
    keep_water: bool = True,
    reflectance_scaling: bool = False,
) -> SceneBands:
    red = read_band_to_grid(_require_band(folder, RED_SUFFIX), grid)
    nir = read_band_to_grid(_require_band(folder, NIR_SUFFIX), grid)
    swir1 = read_band_to_grid(_require_band(folder, SWIR1_SUFFIX), grid)
    thermal = read_band_to_grid(_require_band(folder, THERMAL_SUFFIX), grid)

    if reflectance_scaling:
        red = red * SR_SCALE + SR_OFFSET
        nir = nir * SR_SCALE + SR_OFFSET
        swir1 = swir1 * SR_SCALE + SR_OFFSET

    if mask_clouds:
        qa_path = _require_band(folder, QA_SUFFIX)
        clear = _build_clear_mask(_read_qa_to_grid(qa_path, grid), keep_water=keep_water)
        logger.debug("%s: %d of %d pixels clear", Path(folder).name, int(clear.sum()), clear.size)
        for band in (thermal, red, nir, swir1):
            band[~clear] = np.nan

    return SceneBands(thermal=thermal, red=red, nir=nir, swir1=swir1)
