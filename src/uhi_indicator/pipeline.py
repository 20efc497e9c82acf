"""High-level orchestration for the urban heat island workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry.base import BaseGeometry

from .boundary import analysis_grid, boundary_geometry, load_boundary
from .classify import rural_mask, urban_mask
from .config import UHIConfig
from .errors import EmptySceneSet
from .grid import GridSpec
from .indices import lst_from_thermal, mean_composite, median_composite, ndbi, ndvi
from .io import save_mask, save_raster
from .l2 import load_scene_bands
from .masking import clip_to_boundary, geometry_mask
from .scenes import Scene, select_scenes
from .stats import (
    CityStatistic,
    Histogram,
    Statistic,
    city_statistic,
    lst_histogram,
    measure,
    region_mean,
    uhi_intensity,
    uhi_raster,
)

__all__ = ["Composites", "UHIResult", "AnalysisOutputs", "build_composites", "compute_uhi", "run_analysis"]

logger = logging.getLogger(__name__)


@dataclass
class Composites:
    """Per-pixel composites on the analysis grid.

    ``lst`` is the mean of per-scene LST; the reflectance bands are medians.
    """

    lst: np.ndarray
    red: np.ndarray
    nir: np.ndarray
    swir1: np.ndarray
    scene_ids: Sequence[str] = ()


@dataclass
class UHIResult:
    scene_count: int
    urban_mean: Statistic
    rural_mean: Statistic
    intensity: Statistic
    cities: list[CityStatistic] = field(default_factory=list)
    grid: Optional[GridSpec] = None
    lst: Optional[np.ndarray] = None
    ndvi: Optional[np.ndarray] = None
    ndbi: Optional[np.ndarray] = None
    urban: Optional[np.ndarray] = None
    rural: Optional[np.ndarray] = None
    uhi: Optional[np.ndarray] = None
    histogram: Optional[Histogram] = None

    @classmethod
    def undefined(cls, error: str, cities: Sequence[CityStatistic] = ()) -> "UHIResult":
        stat = Statistic.undefined(error)
        return cls(scene_count=0, urban_mean=stat, rural_mean=stat, intensity=stat, cities=list(cities))


@dataclass
class AnalysisOutputs:
    out_dir: Path
    result: UHIResult
    provenance: Path
    statistics_table: Path
    cities_table: Path
    lst_raster: Optional[Path] = None
    urban_mask_raster: Optional[Path] = None
    rural_mask_raster: Optional[Path] = None
    uhi_raster: Optional[Path] = None
    ndvi_raster: Optional[Path] = None
    ndbi_raster: Optional[Path] = None
    cities_layer: Optional[Path] = None
    histogram_table: Optional[Path] = None


def build_composites(scenes: Sequence[Scene], grid: GridSpec, config: UHIConfig) -> Composites:
    if not scenes:
        raise EmptySceneSet("No scenes match the boundary, date window and cloud-cover filters.")
    lst, red, nir, swir1 = [], [], [], []
    for scene in scenes:
        bands = load_scene_bands(
            scene.folder,
            grid,
            mask_clouds=config.mask_clouds,
            keep_water=config.keep_water,
            reflectance_scaling=config.reflectance_scaling,
        )
        lst.append(lst_from_thermal(bands.thermal, config.st_scale, config.st_offset))
        red.append(bands.red)
        nir.append(bands.nir)
        swir1.append(bands.swir1)
        logger.debug("Loaded %s (%s, cloud %.1f%%)", scene.scene_id, scene.acquired, scene.cloud_cover)
    # TODO: confirm whether LST should be a median composite like the reflectance bands.
    return Composites(
        lst=mean_composite(lst),
        red=median_composite(red),
        nir=median_composite(nir),
        swir1=median_composite(swir1),
        scene_ids=[s.scene_id for s in scenes],
    )


def _city_statistics(lst, grid, config: UHIConfig) -> list[CityStatistic]:
    return [
        city_statistic(lst, grid, city, scale=config.scale, max_pixels=config.max_pixels)
        for city in config.cities
    ]


def compute_uhi(composites: Composites, grid: GridSpec, boundary: BaseGeometry, config: UHIConfig) -> UHIResult:
    """Classify, aggregate and derive the UHI products from composites on ``grid``.

    ``boundary`` must be expressed in ``grid.crs``.
    """
    inside = geometry_mask(grid, boundary)
    lst = clip_to_boundary(composites.lst, inside)
    ndvi_arr = clip_to_boundary(ndvi(composites.nir, composites.red), inside)
    ndbi_arr = clip_to_boundary(ndbi(composites.swir1, composites.nir), inside)

    urban = clip_to_boundary(urban_mask(ndvi_arr, ndbi_arr, config.thresholds), inside)
    rural = clip_to_boundary(rural_mask(ndvi_arr, ndbi_arr, config.thresholds), inside)
    logger.info("Classified %d urban and %d rural pixels", int(urban.sum()), int(rural.sum()))

    urban_mean = measure(
        "Urban mean LST", region_mean, lst, grid, boundary, mask=urban, scale=config.scale, max_pixels=config.max_pixels
    )
    rural_mean = measure(
        "Rural mean LST", region_mean, lst, grid, boundary, mask=rural, scale=config.scale, max_pixels=config.max_pixels
    )
    intensity = uhi_intensity(urban_mean, rural_mean)

    histogram = lst_histogram(
        lst,
        grid,
        boundary,
        scale=config.histogram_scale,
        max_pixels=config.max_pixels,
        bin_width=config.histogram_bin_width,
    )

    return UHIResult(
        scene_count=len(composites.scene_ids),
        urban_mean=urban_mean,
        rural_mean=rural_mean,
        intensity=intensity,
        cities=_city_statistics(lst, grid, config),
        grid=grid,
        lst=lst,
        ndvi=ndvi_arr,
        ndbi=ndbi_arr,
        urban=urban,
        rural=rural,
        uhi=uhi_raster(lst, urban, rural_mean),
        histogram=histogram,
    )


def _statistics_frame(result: UHIResult) -> pd.DataFrame:
    rows = [
        ("urban_mean_lst", result.urban_mean),
        ("rural_mean_lst", result.rural_mean),
        ("uhi_intensity", result.intensity),
    ]
    return pd.DataFrame(
        {
            "statistic": [name for name, _ in rows],
            "value": [s.value for _, s in rows],
            "pixel_count": [s.pixel_count for _, s in rows],
            "error": [s.error for _, s in rows],
        }
    )


def _cities_frame(result: UHIResult) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "city": [c.city.name for c in result.cities],
            "lon": [c.city.lon for c in result.cities],
            "lat": [c.city.lat for c in result.cities],
            "radius_m": [c.city.radius for c in result.cities],
            "lst_mean": [c.lst.value for c in result.cities],
            "pixel_count": [c.lst.pixel_count for c in result.cities],
            "error": [c.lst.error for c in result.cities],
        }
    )


def _provenance(config: UHIConfig, result: UHIResult) -> str:
    lines = [
        f"Analysis period: {config.start} to {config.end} (end exclusive)",
        f"Archives: {', '.join(str(a) for a in config.archives)}",
        f"Boundary: {config.boundary} (country={config.country}, regions={', '.join(config.regions) or 'all'})",
        f"Max cloud cover: {config.max_cloud_cover}%",
        f"Scenes used: {result.scene_count}",
        f"Thresholds: {config.thresholds.as_dict()}",
        f"Aggregation scale: {config.scale} m, max pixels: {config.max_pixels:g}",
        f"Grid resolution: {config.resolution}, CRS: {result.grid.crs if result.grid else config.crs}",
        f"Cloud masking: {config.mask_clouds}, reflectance scaling: {config.reflectance_scaling}",
        "LST composite: mean of scenes; NDVI/NDBI composite: median of scenes",
        "",
        f"Average urban LST: {result.urban_mean}",
        f"Average rural LST: {result.rural_mean}",
        f"UHI intensity: {result.intensity}",
    ]
    if result.intensity.defined:
        lines.append(f"Urban areas are {result.intensity.value:.2f} °C warmer than rural areas")
    lines.append("")
    lines.extend(f"{c.city.name} average LST: {c.lst}" for c in result.cities)
    return "\n".join(lines) + "\n"


def _write_outputs(config: UHIConfig, result: UHIResult) -> AnalysisOutputs:
    out_dir = config.out_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    statistics_table = out_dir / "uhi_statistics.csv"
    _statistics_frame(result).to_csv(statistics_table, index=False)
    cities_table = out_dir / "city_lst.csv"
    _cities_frame(result).to_csv(cities_table, index=False)
    provenance = out_dir / "_uhi_provenance.txt"
    provenance.write_text(_provenance(config, result), encoding="utf-8")

    outputs = AnalysisOutputs(
        out_dir=out_dir,
        result=result,
        provenance=provenance,
        statistics_table=statistics_table,
        cities_table=cities_table,
    )
    if result.grid is None:
        logger.warning("No rasters written: %s", result.intensity.error)
        return outputs

    grid = result.grid
    outputs.lst_raster = save_raster(out_dir / "lst_mean.tif", result.lst, grid)
    outputs.urban_mask_raster = save_mask(out_dir / "urban_mask.tif", result.urban, grid)
    outputs.rural_mask_raster = save_mask(out_dir / "rural_mask.tif", result.rural, grid)
    outputs.uhi_raster = save_raster(out_dir / "uhi_intensity.tif", result.uhi, grid)
    if config.write_indices_rasters:
        outputs.ndvi_raster = save_raster(out_dir / "ndvi.tif", result.ndvi, grid)
        outputs.ndbi_raster = save_raster(out_dir / "ndbi.tif", result.ndbi, grid)

    if result.cities:
        cities = gpd.GeoDataFrame(
            _cities_frame(result),
            geometry=[c.geometry for c in result.cities],
            crs=grid.crs,
        )
        outputs.cities_layer = out_dir / "city_buffers.gpkg"
        cities.to_file(outputs.cities_layer, driver="GPKG")

    if result.histogram is not None:
        hist = result.histogram
        outputs.histogram_table = out_dir / "lst_histogram.csv"
        pd.DataFrame(
            {"bin_start": hist.edges[:-1], "bin_end": hist.edges[1:], "count": hist.counts}
        ).to_csv(outputs.histogram_table, index=False)
    return outputs


def run_analysis(config: UHIConfig) -> AnalysisOutputs:
    boundary_gdf = load_boundary(
        config.boundary,
        layer=config.layer,
        country=config.country,
        regions=config.regions,
        admin0_field=config.admin0_field,
        admin1_field=config.admin1_field,
    )
    scenes = select_scenes(
        config.archives,
        boundary_gdf.geometry.iloc[0],
        boundary_gdf.crs,
        config.start,
        config.end,
        config.max_cloud_cover,
    )
    grid = analysis_grid(boundary_gdf, config.resolution, config.crs)
    boundary = boundary_geometry(boundary_gdf, grid.crs)

    try:
        composites = build_composites(scenes, grid, config)
    except EmptySceneSet as exc:
        logger.warning("%s All statistics are undefined.", exc)
        undefined = Statistic.undefined(type(exc).__name__)
        cities = [CityStatistic(c, None, undefined) for c in config.cities]
        result = UHIResult.undefined(type(exc).__name__, cities)
    else:
        result = compute_uhi(composites, grid, boundary, config)

    outputs = _write_outputs(config, result)
    logger.info("UHI intensity: %s; outputs written to %s", result.intensity, outputs.out_dir)
    return outputs
