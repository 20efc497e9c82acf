"""Boundary selection, analysis grid derivation and city buffers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import geopandas as gpd
from rasterio.crs import CRS
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

from .config import CitySample
from .grid import GridSpec

__all__ = ["load_boundary", "boundary_geometry", "analysis_grid", "city_buffer"]

logger = logging.getLogger(__name__)


def load_boundary(
    boundary_path: Path | str,
    *,
    layer: Optional[str] = None,
    country: Optional[str] = None,
    regions: Sequence[str] = (),
    admin0_field: str = "ADM0_NAME",
    admin1_field: str = "ADM1_NAME",
) -> gpd.GeoDataFrame:
    """Read an administrative boundary layer and dissolve the selected units into one feature."""
    if layer:
        boundary = gpd.read_file(boundary_path, layer=layer)
    else:
        boundary = gpd.read_file(boundary_path)
    if boundary.empty:
        raise ValueError(f"Boundary layer {boundary_path} is empty.")
    if boundary.crs is None:
        raise ValueError(f"Boundary layer {boundary_path} has no CRS.")

    if country is not None:
        if admin0_field not in boundary.columns:
            raise KeyError(f"Country field '{admin0_field}' not in boundary layer.")
        boundary = boundary[boundary[admin0_field] == country]
    if regions:
        if admin1_field not in boundary.columns:
            raise KeyError(f"Region field '{admin1_field}' not in boundary layer.")
        boundary = boundary[boundary[admin1_field].isin(list(regions))]

    boundary = boundary[boundary.geometry.notnull()].copy()
    if boundary.empty:
        raise ValueError(
            f"No boundary features in {boundary_path} match country={country!r} regions={list(regions)}."
        )
    logger.info("Boundary: %d feature(s) selected from %s", len(boundary), boundary_path)
    return gpd.GeoDataFrame(geometry=[boundary.geometry.union_all()], crs=boundary.crs)


def boundary_geometry(boundary: gpd.GeoDataFrame, crs) -> BaseGeometry:
    geom = boundary.to_crs(crs).geometry.union_all()
    if geom.is_empty:
        raise ValueError("Boundary has no geometry after reprojecting to the analysis CRS.")
    return geom


def analysis_grid(boundary: gpd.GeoDataFrame, resolution: float, crs=None) -> GridSpec:
    """Grid covering the boundary; the CRS defaults to the boundary's UTM zone."""
    if crs is None:
        crs = boundary.estimate_utm_crs()
    crs = CRS.from_user_input(crs)
    bounds = tuple(boundary.to_crs(crs).total_bounds)
    grid = GridSpec.from_bounds(bounds, crs, resolution)
    logger.info("Analysis grid: %dx%d pixels at %.1f in %s", grid.width, grid.height, resolution, crs)
    return grid


def city_buffer(city: CitySample, crs) -> BaseGeometry:
    """Metric buffer around a lon/lat point, returned in ``crs``."""
    point = gpd.GeoSeries([Point(city.lon, city.lat)], crs="EPSG:4326")
    local = point.to_crs(point.estimate_utm_crs())
    return local.buffer(city.radius).to_crs(crs).iloc[0]
