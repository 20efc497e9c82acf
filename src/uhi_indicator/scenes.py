"""Scene discovery and space/time/cloud filtering over local Landsat L2 archives."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import rasterio
from rasterio.crs import CRS
from rasterio.warp import transform_bounds
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from .l2 import THERMAL_SUFFIX, find_band

__all__ = ["Scene", "read_mtl", "discover_scenes", "select_scenes"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scene:
    scene_id: str
    folder: Path
    archive: str
    acquired: date
    cloud_cover: float
    crs: CRS
    bounds: tuple[float, float, float, float]

    def footprint(self, crs) -> BaseGeometry:
        return box(*transform_bounds(self.crs, crs, *self.bounds))


def _parse_mtl_txt(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key in ("GROUP", "END_GROUP"):
            continue
        values.setdefault(key, value.strip().strip('"'))
    return values


def _parse_mtl_json(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}

    def walk(node: dict) -> None:
        for key, value in node.items():
            if isinstance(value, dict):
                walk(value)
            else:
                values.setdefault(key, str(value))

    walk(json.loads(path.read_text(encoding="utf-8")))
    return values


def read_mtl(path: Path | str) -> tuple[str, date, float]:
    """Return (product id, acquisition date, cloud cover %) from an MTL file."""
    path = Path(path)
    values = _parse_mtl_json(path) if path.suffix.lower() == ".json" else _parse_mtl_txt(path)
    try:
        acquired = date.fromisoformat(values["DATE_ACQUIRED"])
        cloud_cover = float(values["CLOUD_COVER"])
    except KeyError as exc:
        raise KeyError(f"{path.name} lacks {exc.args[0]}.") from None
    scene_id = values.get("LANDSAT_PRODUCT_ID") or path.name.rsplit("_MTL", 1)[0]
    return scene_id, acquired, cloud_cover


def _mtl_files(archive: Path) -> Iterator[Path]:
    seen: set[Path] = set()
    for pattern in ("*_MTL.txt", "*_MTL.TXT", "*_MTL.json"):
        for mtl in sorted(archive.rglob(pattern)):
            if mtl.parent not in seen:
                seen.add(mtl.parent)
                yield mtl


def discover_scenes(archives: Iterable[Path | str]) -> list[Scene]:
    """Union of every scene folder found under the archive directories."""
    scenes = []
    for archive in archives:
        archive = Path(archive)
        if not archive.is_dir():
            raise FileNotFoundError(f"Scene archive {archive} is not a directory.")
        for mtl in _mtl_files(archive):
            thermal = find_band(mtl.parent, THERMAL_SUFFIX)
            if thermal is None:
                logger.warning("Skipping %s: no *%s band next to the MTL file", mtl.parent, THERMAL_SUFFIX)
                continue
            scene_id, acquired, cloud_cover = read_mtl(mtl)
            with rasterio.open(thermal) as src:
                crs, bounds = src.crs, tuple(src.bounds)
            scenes.append(Scene(scene_id, mtl.parent, archive.name, acquired, cloud_cover, crs, bounds))
    return scenes


def select_scenes(
    archives: Sequence[Path | str],
    boundary: BaseGeometry,
    boundary_crs,
    start: date,
    end: date,
    max_cloud_cover: float,
) -> list[Scene]:
    """Scenes intersecting ``boundary`` with ``start <= acquired < end`` and cloud cover below the cap."""
    selected = []
    candidates = discover_scenes(archives)
    for scene in candidates:
        if not start <= scene.acquired < end:
            logger.debug("%s: %s outside date window", scene.scene_id, scene.acquired)
        elif not scene.cloud_cover < max_cloud_cover:
            logger.debug("%s: cloud cover %.1f%% too high", scene.scene_id, scene.cloud_cover)
        elif not scene.footprint(boundary_crs).intersects(boundary):
            logger.debug("%s: footprint misses the boundary", scene.scene_id)
        else:
            selected.append(scene)
    selected.sort(key=lambda s: (s.acquired, s.scene_id))
    logger.info(
        "Selected %d of %d scenes (%s to %s, cloud cover < %.1f%%)",
        len(selected),
        len(candidates),
        start,
        end,
        max_cloud_cover,
    )
    return selected
