from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import Point, box

UTM_49S = "EPSG:32749"
RES = 30.0
ORIGIN_X = 500000.0
ORIGIN_Y = 9200120.0
SHAPE = (4, 4)

# Raw DN reflectances: columns 0-1 built-up, columns 2-3 vegetated.
URBAN_BANDS = {"red": 9000, "nir": 10000, "swir1": 14000}
RURAL_BANDS = {"red": 4000, "nir": 12000, "swir1": 8000}


def st_to_celsius(dn: float) -> float:
    return dn * 0.00341802 + 149.0 - 273.15


def split_columns(urban_value, rural_value, shape=SHAPE) -> np.ndarray:
    arr = np.empty(shape, dtype="uint16")
    half = shape[1] // 2
    arr[:, :half] = urban_value
    arr[:, half:] = rural_value
    return arr


def write_band(path: Path, arr: np.ndarray, *, crs=UTM_49S, origin=(ORIGIN_X, ORIGIN_Y), res=RES) -> None:
    profile = {
        "driver": "GTiff",
        "height": arr.shape[0],
        "width": arr.shape[1],
        "count": 1,
        "dtype": arr.dtype.name,
        "crs": crs,
        "transform": from_origin(origin[0], origin[1], res, res),
        "nodata": 0,
    }
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(arr, 1)


@pytest.fixture
def make_scene(tmp_path):
    """Write a Landsat C2 L2 scene folder under ``tmp_path/<archive>/<scene_id>``."""

    def _make(
        archive: str,
        scene_id: str,
        acquired: date,
        cloud_cover: float,
        *,
        urban_st: int = 46000,
        rural_st: int = 44000,
        thermal: np.ndarray | None = None,
        red: np.ndarray | None = None,
        qa: np.ndarray | None = None,
        origin=(ORIGIN_X, ORIGIN_Y),
        mtl_format: str = "txt",
    ) -> Path:
        folder = tmp_path / archive / scene_id
        folder.mkdir(parents=True)
        bands = {
            "_ST_B10": thermal if thermal is not None else split_columns(urban_st, rural_st),
            "_SR_B4": red if red is not None else split_columns(URBAN_BANDS["red"], RURAL_BANDS["red"]),
            "_SR_B5": split_columns(URBAN_BANDS["nir"], RURAL_BANDS["nir"]),
            "_SR_B6": split_columns(URBAN_BANDS["swir1"], RURAL_BANDS["swir1"]),
            "_QA_PIXEL": qa if qa is not None else np.full(SHAPE, 21824, dtype="uint16"),
        }
        for suffix, arr in bands.items():
            write_band(folder / f"{scene_id}{suffix}.TIF", arr.astype("uint16"), origin=origin)

        if mtl_format == "json":
            meta = {
                "LANDSAT_METADATA_FILE": {
                    "PRODUCT_CONTENTS": {"LANDSAT_PRODUCT_ID": scene_id},
                    "IMAGE_ATTRIBUTES": {"CLOUD_COVER": str(cloud_cover), "DATE_ACQUIRED": acquired.isoformat()},
                }
            }
            (folder / f"{scene_id}_MTL.json").write_text(json.dumps(meta), encoding="utf-8")
        else:
            (folder / f"{scene_id}_MTL.txt").write_text(
                "GROUP = LANDSAT_METADATA_FILE\n"
                "  GROUP = PRODUCT_CONTENTS\n"
                f'    LANDSAT_PRODUCT_ID = "{scene_id}"\n'
                "  END_GROUP = PRODUCT_CONTENTS\n"
                "  GROUP = IMAGE_ATTRIBUTES\n"
                f"    CLOUD_COVER = {cloud_cover}\n"
                f"    DATE_ACQUIRED = {acquired.isoformat()}\n"
                "  END_GROUP = IMAGE_ATTRIBUTES\n"
                "END_GROUP = LANDSAT_METADATA_FILE\n"
                "END\n",
                encoding="utf-8",
            )
        return folder

    return _make


@pytest.fixture
def boundary_file(tmp_path) -> Path:
    """Two provinces: one covering the synthetic scene grid exactly, one far away."""
    gdf = gpd.GeoDataFrame(
        {
            "ADM0_NAME": ["Indonesia", "Indonesia"],
            "ADM1_NAME": ["Jawa Barat", "Bali"],
        },
        geometry=[
            box(ORIGIN_X, ORIGIN_Y - SHAPE[0] * RES, ORIGIN_X + SHAPE[1] * RES, ORIGIN_Y),
            box(800000, 9000000, 810000, 9010000),
        ],
        crs=UTM_49S,
    )
    path = tmp_path / "admin1.geojson"
    gdf.to_file(path, driver="GeoJSON")
    return path


@pytest.fixture
def grid_centre_lonlat() -> tuple[float, float]:
    """Lon/lat of the corner shared by the four central pixels of the synthetic grid."""
    pt = gpd.GeoSeries([Point(ORIGIN_X + 60, ORIGIN_Y - 60)], crs=UTM_49S).to_crs("EPSG:4326").iloc[0]
    return pt.x, pt.y
