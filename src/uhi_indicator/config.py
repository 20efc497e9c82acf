"""Configuration dataclasses for running the UHI analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from .l2 import ST_OFFSET, ST_SCALE

__all__ = [
    "ClassificationThresholds",
    "CitySample",
    "UHIConfig",
    "JAVA_PROVINCES",
    "JAVA_CITIES",
]

JAVA_PROVINCES: tuple[str, ...] = (
    "Jawa Barat",
    "Jawa Tengah",
    "Jawa Timur",
    "Banten",
    "Jakarta Raya",
    "Yogyakarta",
)


@dataclass(frozen=True)
class CitySample:
    name: str
    lon: float
    lat: float
    radius: float = 10000.0  # metres

    def __post_init__(self) -> None:
        if self.radius <= 0:
            raise ValueError(f"City '{self.name}' needs a positive buffer radius, got {self.radius}.")


JAVA_CITIES: tuple[CitySample, ...] = (
    CitySample("Jakarta", 106.8456, -6.2088),
    CitySample("Surabaya", 112.7521, -7.2575),
    CitySample("Bandung", 107.6191, -6.9175),
    CitySample("Semarang", 110.4203, -6.9932),
    CitySample("Yogyakarta", 110.3695, -7.7956),
)


@dataclass(slots=True)
class ClassificationThresholds:
    """NDVI/NDBI cut-offs for the urban and rural masks.

    Urban pixels satisfy ``NDBI > ndbi_urban_min and NDVI < ndvi_urban_max``;
    rural pixels satisfy ``NDVI > ndvi_rural_min and NDBI < ndbi_rural_max``.
    """

    ndbi_urban_min: float = 0.1
    ndvi_urban_max: float = 0.2
    ndvi_rural_min: float = 0.3
    ndbi_rural_max: float = -0.1

    def __post_init__(self) -> None:
        if not self.disjoint:
            raise ValueError(
                "Classification thresholds let a pixel be both urban and rural: "
                f"NDVI in ({self.ndvi_rural_min}, {self.ndvi_urban_max}) and "
                f"NDBI in ({self.ndbi_urban_min}, {self.ndbi_rural_max})."
            )

    @property
    def disjoint(self) -> bool:
        # Both predicates hold only inside the open box
        # ndvi_rural_min < NDVI < ndvi_urban_max, ndbi_urban_min < NDBI < ndbi_rural_max.
        return not (
            self.ndvi_rural_min < self.ndvi_urban_max and self.ndbi_urban_min < self.ndbi_rural_max
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "ndbiUrbanMin": self.ndbi_urban_min,
            "ndviUrbanMax": self.ndvi_urban_max,
            "ndviRuralMin": self.ndvi_rural_min,
            "ndbiRuralMax": self.ndbi_rural_max,
        }


def _as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass(slots=True)
class UHIConfig:
    archives: Sequence[Path]
    boundary: Path
    out_dir: Path = Path("results_uhi")
    layer: Optional[str] = None
    country: Optional[str] = "Indonesia"
    regions: Sequence[str] = JAVA_PROVINCES
    admin0_field: str = "ADM0_NAME"
    admin1_field: str = "ADM1_NAME"
    start: date = date(2024, 6, 1)
    end: date = date(2024, 9, 30)
    max_cloud_cover: float = 20.0
    thresholds: ClassificationThresholds = field(default_factory=ClassificationThresholds)
    scale: float = 100.0
    max_pixels: float = 1e13
    resolution: float = 30.0
    crs: Optional[str] = None
    cities: Sequence[CitySample] = JAVA_CITIES
    st_scale: float = ST_SCALE
    st_offset: float = ST_OFFSET
    reflectance_scaling: bool = False
    mask_clouds: bool = False
    keep_water: bool = True
    histogram_scale: float = 1000.0
    histogram_bin_width: float = 1.0
    write_indices_rasters: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.archives = [Path(p) for p in self.archives]
        self.boundary = Path(self.boundary)
        self.out_dir = Path(self.out_dir)
        self.regions = tuple(self.regions)
        self.cities = tuple(self.cities)
        self.start = _as_date(self.start)
        self.end = _as_date(self.end)
        if not self.archives:
            raise ValueError("At least one scene archive folder is required.")
        if self.start >= self.end:
            raise ValueError(f"Empty date window: start {self.start} is not before end {self.end}.")
        for name in ("scale", "resolution", "max_pixels", "histogram_scale", "histogram_bin_width"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}.")
