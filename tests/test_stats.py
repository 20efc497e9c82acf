import numpy as np
import pytest
from rasterio.crs import CRS
from rasterio.transform import from_origin
from shapely.geometry import box

from uhi_indicator import stats
from uhi_indicator.config import CitySample
from uhi_indicator.errors import AggregationLimitExceeded, UndefinedRegionMean
from uhi_indicator.grid import GridSpec, pixel_area_weights, resample_to_grid
from uhi_indicator.stats import (
    Statistic,
    city_statistic,
    estimate_sample_count,
    lst_histogram,
    measure,
    region_mean,
    uhi_intensity,
    uhi_raster,
)

UTM = CRS.from_epsg(32749)


@pytest.fixture
def four_pixels():
    grid = GridSpec(UTM, from_origin(0, 20, 10, 10), 2, 2)
    lst = np.array([[30.0, 34.0], [24.0, 26.0]], dtype="float32")
    urban = np.array([[True, True], [False, False]])
    rural = ~urban
    return grid, lst, urban, rural, box(0, 0, 20, 20)


def test_uhi_intensity_on_four_pixels(four_pixels):
    grid, lst, urban, rural, region = four_pixels
    urban_mean = region_mean(lst, grid, region, mask=urban, scale=10, max_pixels=1e6)
    rural_mean = region_mean(lst, grid, region, mask=rural, scale=10, max_pixels=1e6)
    assert urban_mean.value == pytest.approx(32.0)
    assert rural_mean.value == pytest.approx(25.0)
    assert urban_mean.pixel_count == 2
    assert uhi_intensity(urban_mean, rural_mean).value == pytest.approx(7.0)


def test_region_mean_is_idempotent(four_pixels):
    grid, lst, urban, _, region = four_pixels
    first = region_mean(lst, grid, region, mask=urban, scale=10, max_pixels=1e6)
    second = region_mean(lst.copy(), grid, region, mask=urban.copy(), scale=10, max_pixels=1e6)
    assert first == second


def test_region_mean_resamples_to_coarser_scale(four_pixels):
    grid, lst, _, _, region = four_pixels
    stat = region_mean(lst, grid, region, scale=20, max_pixels=1e6)
    assert stat.pixel_count == 1
    assert stat.value == pytest.approx(28.5)


def test_sample_cap_fails_instead_of_truncating():
    grid = GridSpec(UTM, from_origin(0, 10000, 5000, 5000), 2, 2)
    lst = np.full(grid.shape, 30.0, dtype="float32")
    region = box(0, 0, 10000, 10000)
    assert estimate_sample_count(region, grid.crs, 1) == pytest.approx(1e8)
    with pytest.raises(AggregationLimitExceeded) as excinfo:
        region_mean(lst, grid, region, scale=1, max_pixels=1e6)
    assert excinfo.value.requested == pytest.approx(1e8)
    # The same request succeeds once the cap allows it.
    assert region_mean(lst, grid, region, scale=5000, max_pixels=1e6).value == pytest.approx(30.0)


def test_region_mean_only_resamples_the_geometry_window(monkeypatch):
    grid = GridSpec(UTM, from_origin(0, 2000, 1, 1), 2000, 2000)
    lst = np.full(grid.shape, 30.0, dtype="float32")
    lst[-10:, :10] = 40.0
    seen = []

    def record(arr, src, dst, **kwargs):
        seen.append((arr.shape, dst.shape))
        return resample_to_grid(arr, src, dst, **kwargs)

    monkeypatch.setattr(stats, "resample_to_grid", record)
    stat = region_mean(lst, grid, box(0, 0, 10, 10), scale=2, max_pixels=100)
    assert stat.value == pytest.approx(40.0)
    assert stat.pixel_count == 25
    assert seen == [((10, 10), (5, 5))]


def test_region_mean_counts_pixels_by_centre(four_pixels):
    grid, lst, _, _, _ = four_pixels
    # Covers the left column fully and a quarter of the right column, short of its centres.
    stat = region_mean(lst, grid, box(0, 0, 12.5, 20), scale=10, max_pixels=1e6)
    assert stat.pixel_count == 2
    assert stat.value == pytest.approx(27.0)


def test_geometry_outside_grid_is_undefined(four_pixels):
    grid, lst, _, _, _ = four_pixels
    with pytest.raises(UndefinedRegionMean):
        region_mean(lst, grid, box(100, 100, 120, 120), scale=10, max_pixels=1e6)


def test_empty_mask_is_undefined(four_pixels):
    grid, lst, _, _, region = four_pixels
    with pytest.raises(UndefinedRegionMean):
        region_mean(lst, grid, region, mask=np.zeros(grid.shape, dtype=bool), scale=10, max_pixels=1e6)


def test_measure_reports_undefined_kind(four_pixels):
    grid, lst, _, _, region = four_pixels
    none = np.zeros(grid.shape, dtype=bool)
    stat = measure("rural", region_mean, lst, grid, region, mask=none, scale=10, max_pixels=1e6)
    assert not stat.defined
    assert stat.value is None
    assert stat.error == "UndefinedRegionMean"
    capped = measure("urban", region_mean, lst, grid, region, scale=0.001, max_pixels=10)
    assert capped.error == "AggregationLimitExceeded"


def test_undefined_operand_propagates_to_intensity():
    urban = Statistic(value=32.0, pixel_count=2)
    rural = Statistic.undefined("UndefinedRegionMean")
    intensity = uhi_intensity(urban, rural)
    assert intensity.value is None
    assert intensity.error == "UndefinedRegionMean"
    assert str(intensity) == "undefined (UndefinedRegionMean)"
    assert uhi_intensity(rural, urban).value is None


def test_uhi_raster(four_pixels):
    _, lst, urban, _, _ = four_pixels
    out = uhi_raster(lst, urban, Statistic(value=25.0, pixel_count=2))
    assert out[0].tolist() == [5.0, 9.0]
    assert np.isnan(out[1]).all()
    assert np.isnan(uhi_raster(lst, urban, Statistic.undefined("UndefinedRegionMean"))).all()


def test_city_outside_valid_data_is_undefined(four_pixels):
    grid, lst, _, _, _ = four_pixels
    city = city_statistic(lst, grid, CitySample("Jakarta", 106.8456, -6.2088), scale=10, max_pixels=1e13)
    assert city.lst.value is None
    assert city.lst.error == "UndefinedRegionMean"
    assert city.geometry.area == pytest.approx(np.pi * 10000**2, rel=0.01)


def test_histogram_counts_valid_pixels(four_pixels):
    grid, lst, _, _, region = four_pixels
    lst = lst.copy()
    lst[1, 1] = np.nan
    hist = lst_histogram(lst, grid, region, scale=10, max_pixels=1e6, bin_width=5.0)
    assert hist.counts.sum() == 3
    assert hist.edges[0] == pytest.approx(20.0)
    assert hist.edges[-1] == pytest.approx(35.0)
    assert lst_histogram(np.full(grid.shape, np.nan, dtype="float32"), grid, region, scale=10, max_pixels=1e6) is None


def test_geographic_pixel_weights_shrink_towards_the_pole():
    grid = GridSpec(CRS.from_epsg(4326), from_origin(110, 60, 1, 30), 1, 2)
    weights = pixel_area_weights(grid)
    assert weights[0, 0] < weights[1, 0]
