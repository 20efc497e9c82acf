"""Command-line interface for the UHI indicator package."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from .config import JAVA_CITIES, JAVA_PROVINCES, CitySample, ClassificationThresholds, UHIConfig
from .l2 import ST_OFFSET, ST_SCALE
from .pipeline import run_analysis


def _city(values: Sequence[str]) -> CitySample:
    name, lon, lat, *rest = values
    try:
        radius = float(rest[0]) if rest else 10000.0
        return CitySample(name, float(lon), float(lat), radius)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Bad --city {' '.join(values)}: {exc}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Urban heat island indicator from Landsat 8/9 Collection 2 Level-2 scenes."
    )
    parser.add_argument(
        "--archive",
        dest="archives",
        action="append",
        required=True,
        help="Folder of Landsat L2 scene folders; repeat to union several archives (e.g. LC08 and LC09).",
    )
    parser.add_argument("--boundary", required=True, help="Administrative boundary file (GPKG/GeoJSON/shp).")
    parser.add_argument("--layer", default=None, help="Optional layer name inside GPKG.")
    parser.add_argument(
        "--country",
        default="Indonesia",
        help="Value of the country field to select (default: %(default)s). Pass '' to keep all countries.",
    )
    parser.add_argument(
        "--region",
        dest="regions",
        action="append",
        default=None,
        help="Region name to select; repeat for several (default: the six provinces of Java).",
    )
    parser.add_argument("--all_regions", action="store_true", help="Keep every region of the selected country.")
    parser.add_argument("--admin0_field", default="ADM0_NAME", help="Country field (default: %(default)s).")
    parser.add_argument("--admin1_field", default="ADM1_NAME", help="Region field (default: %(default)s).")
    parser.add_argument("--out_dir", default="results_uhi", help="Output folder.")
    parser.add_argument("--start", default="2024-06-01", help="First acquisition date, inclusive (default: %(default)s).")
    parser.add_argument("--end", default="2024-09-30", help="Last acquisition date, exclusive (default: %(default)s).")
    parser.add_argument(
        "--max_cloud_cover",
        type=float,
        default=20.0,
        help="Keep scenes with CLOUD_COVER strictly below this percentage (default: %(default)s).",
    )
    parser.add_argument("--ndbi_urban_min", type=float, default=0.1, help="Urban: NDBI above (default: %(default)s).")
    parser.add_argument("--ndvi_urban_max", type=float, default=0.2, help="Urban: NDVI below (default: %(default)s).")
    parser.add_argument("--ndvi_rural_min", type=float, default=0.3, help="Rural: NDVI above (default: %(default)s).")
    parser.add_argument("--ndbi_rural_max", type=float, default=-0.1, help="Rural: NDBI below (default: %(default)s).")
    parser.add_argument(
        "--scale",
        type=float,
        default=100.0,
        help="Ground sampling distance in metres for region means (default: %(default)s).",
    )
    parser.add_argument(
        "--max_pixels",
        type=float,
        default=1e13,
        help="Fail a region mean that would sample more pixels than this (default: %(default)g).",
    )
    parser.add_argument(
        "--resolution",
        type=float,
        default=30.0,
        help="Analysis grid pixel size in CRS units (default: %(default)s).",
    )
    parser.add_argument("--crs", default=None, help="Analysis grid CRS (default: UTM zone of the boundary).")
    parser.add_argument(
        "--city",
        dest="cities",
        action="append",
        nargs="+",
        metavar="NAME LON LAT [RADIUS]",
        default=None,
        help="City sample (radius in metres, default 10000); repeat for several. Default: five Java cities.",
    )
    parser.add_argument("--no_cities", action="store_true", help="Skip city statistics.")
    parser.add_argument("--st_scale", type=float, default=ST_SCALE, help="ST_B10 scale factor (default: %(default)s).")
    parser.add_argument("--st_offset", type=float, default=ST_OFFSET, help="ST_B10 offset in K (default: %(default)s).")
    parser.add_argument(
        "--reflectance_scaling",
        action="store_true",
        help="Apply the Collection 2 surface reflectance scale/offset before NDVI/NDBI.",
    )
    parser.add_argument(
        "--mask_clouds",
        action="store_true",
        help="Mask fill, cloud, cirrus, shadow and snow pixels using QA_PIXEL.",
    )
    parser.add_argument(
        "--mask_water",
        action="store_true",
        help="With --mask_clouds, also mask QA water pixels.",
    )
    parser.add_argument("--histogram_scale", type=float, default=1000.0, help="Histogram sampling scale in metres.")
    parser.add_argument("--histogram_bin_width", type=float, default=1.0, help="Histogram bin width in °C.")
    parser.add_argument("--skip_indices_rasters", action="store_true", help="Do not write NDVI/NDBI rasters.")
    parser.add_argument(
        "--log_level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default INFO).",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> UHIConfig:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_cities:
        cities: Sequence[CitySample] = ()
    elif args.cities:
        for values in args.cities:
            if len(values) not in (3, 4):
                parser.error(f"--city takes NAME LON LAT [RADIUS], got {' '.join(values)}")
        try:
            cities = [_city(values) for values in args.cities]
        except argparse.ArgumentTypeError as exc:
            parser.error(str(exc))
    else:
        cities = JAVA_CITIES

    try:
        thresholds = ClassificationThresholds(
            ndbi_urban_min=args.ndbi_urban_min,
            ndvi_urban_max=args.ndvi_urban_max,
            ndvi_rural_min=args.ndvi_rural_min,
            ndbi_rural_max=args.ndbi_rural_max,
        )
        config = UHIConfig(
            archives=args.archives,
            boundary=args.boundary,
            out_dir=args.out_dir,
            layer=args.layer,
            country=args.country or None,
            regions=() if args.all_regions else (args.regions or JAVA_PROVINCES),
            admin0_field=args.admin0_field,
            admin1_field=args.admin1_field,
            start=args.start,
            end=args.end,
            max_cloud_cover=args.max_cloud_cover,
            thresholds=thresholds,
            scale=args.scale,
            max_pixels=args.max_pixels,
            resolution=args.resolution,
            crs=args.crs,
            cities=cities,
            st_scale=args.st_scale,
            st_offset=args.st_offset,
            reflectance_scaling=args.reflectance_scaling,
            mask_clouds=args.mask_clouds,
            keep_water=not args.mask_water,
            histogram_scale=args.histogram_scale,
            histogram_bin_width=args.histogram_bin_width,
            write_indices_rasters=not args.skip_indices_rasters,
            log_level=args.log_level,
        )
    except ValueError as exc:
        parser.error(str(exc))
    return config


def main(argv: Sequence[str] | None = None) -> None:
    config = parse_args(argv)
    log_level = getattr(logging, config.log_level)
    logging.basicConfig(level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    run_analysis(config)


if __name__ == "__main__":  # pragma: no cover
    main()
