"""
Shared fixtures for the daily insolation tests.

Provides a linear clear-sky oracle, an in-memory snapshot provider and
helpers that lay out GeoTIFF snapshots the way the importer does.
"""
import fnmatch
import logging
from datetime import date

import numpy as np
import pytest
from rasterio.transform import from_origin

from daily_solar.config import DEFAULT_PATTERN, SNAPSHOT_SUFFIX
from daily_solar.data.raster import write_grid
from daily_solar.data.snapshots import SnapshotStore
from daily_solar.solar.clear_sky import ClearSkyOracle
from daily_solar.solar.models import DayWindow

# Configure test logging
logging.basicConfig(level=logging.DEBUG)

DAY = date(2024, 6, 15)
SHAPE = (4, 4)


class LinearOracle(ClearSkyOracle):
    """Clear-sky oracle with Gi growing linearly from sunrise, `rate` per hour"""

    def __init__(self, sunrise=360, sunset=1080, rate=100.0, shape=SHAPE):
        self.sunrise = sunrise
        self.sunset = sunset
        self.rate = rate
        self.shape = shape
        self.calls = []
        self.window_calls = 0

    def sun_window(self, day):
        self.window_calls += 1
        return DayWindow(self.sunrise, self.sunset)

    def cumulative_irradiance(self, day, hour, minute):
        self.calls.append((day, hour, minute))
        elapsed = max(0, hour * 60 + minute - self.sunrise)
        return np.full(self.shape, elapsed * self.rate / 60.0)


class MemorySnapshots:
    """Snapshot provider over a dict, same interface as SnapshotStore"""

    def __init__(self):
        self.grids = {}

    def add(self, day, key, grid):
        self.grids[(day, key)] = np.asarray(grid, dtype=np.float64)

    def exists(self, day, key):
        return (day, key) in self.grids

    def read_snapshot(self, day, key):
        return self.grids[(day, key)].copy()

    def list_snapshots(self, day, pattern=DEFAULT_PATTERN):
        return sorted(
            key for (d, key) in self.grids
            if d == day and fnmatch.fnmatch(f"{key}{SNAPSHOT_SUFFIX}", pattern)
        )


@pytest.fixture
def meta():
    """Raster metadata of a small 500 m grid"""
    height, width = SHAPE
    return {
        "driver": "GTiff",
        "dtype": "float32",
        "nodata": None,
        "width": width,
        "height": height,
        "count": 1,
        "crs": "EPSG:3310",
        "transform": from_origin(0.0, height * 500.0, 500.0, 500.0),
    }


@pytest.fixture
def oracle():
    return LinearOracle()


@pytest.fixture
def memory_snapshots():
    return MemorySnapshots()


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path / "goes18")


@pytest.fixture
def write_snapshot(meta):
    """Write one brightness grid into a SnapshotStore"""
    def _write(store, day, key, grid):
        return write_grid(store.path(day, key), np.asarray(grid, dtype=np.float64), meta)
    return _write
