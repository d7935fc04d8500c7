"""
Clear-sky irradiance oracle.

The radiative transfer model is an external calculator. This module
defines what the daily integration needs from it:

- ``sun_window(day)``: earliest sunrise and latest sunset over the domain
- ``cumulative_irradiance(day, hour, minute)``: clear-sky irradiance
  accumulated since sunrise, per pixel, in Wh/m^2

``HeliosatOracle`` answers both by running the compiled calculator on
the elevation and Linke turbidity grids and reading back its GeoTIFFs.
"""
import logging
import subprocess
import tempfile
from datetime import date
from pathlib import Path

import numpy as np

from ..config import (
    CLEAR_SKY_BIN,
    ELEVATION_FILE,
    LINKE_DIR,
    TIMEZONE
)
from ..data.raster import read_grid
from .models import DayWindow

logger = logging.getLogger(__name__)

# Nearest available climatology day for each day of the month
_LINKE_CLOSEST = (None,
                  1, 1, 1, 1, 7, 7,
                  7, 7, 7, 7, 15, 15, 15, 15,
                  15, 15, 15, 21, 21, 21,
                  21, 21, 21, 21, 28, 28, 28,
                  28, 28, 28, 28)


class ClearSkyOracleError(RuntimeError):
    """The clear-sky model could not be evaluated. Fatal for the run."""


def linke_turbidity_path(day: date, linke_dir=LINKE_DIR) -> Path:
    """Linke turbidity grid for the climatology day closest to ``day``"""
    return Path(linke_dir) / f"{day.month:02d}-{_LINKE_CLOSEST[day.day]:02d}.tif"


class ClearSkyOracle:
    """Interface of the clear-sky model"""

    def sun_window(self, day: date) -> DayWindow:
        raise NotImplementedError

    def cumulative_irradiance(self, day: date, hour: int, minute: int) -> np.ndarray:
        raise NotImplementedError


class HeliosatOracle(ClearSkyOracle):
    """Clear-sky oracle backed by the external calculator binary"""

    def __init__(self, elevation=ELEVATION_FILE, linke_dir=LINKE_DIR,
                 timezone=TIMEZONE, binary=CLEAR_SKY_BIN):
        self.elevation = Path(elevation)
        self.linke_dir = Path(linke_dir)
        self.timezone = timezone
        self.binary = Path(binary)

    def _base_command(self, day):
        return [
            str(self.binary),
            "--elevation", str(self.elevation),
            "--linke", str(linke_turbidity_path(day, self.linke_dir)),
            "--year", str(day.year),
            "--month", str(day.month),
            "--day", str(day.day),
            "--timezone", str(self.timezone)
        ]

    def _run(self, cmd):
        if not self.binary.exists():
            raise ClearSkyOracleError(f"Binary not found: {self.binary}")

        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise ClearSkyOracleError(
                f"Clear-sky calculator failed ({e.returncode}): {(e.stderr or '').strip()}"
            ) from e
        except OSError as e:
            raise ClearSkyOracleError(f"Could not launch {self.binary}: {e}") from e

    def _read_output(self, path):
        try:
            grid, _ = read_grid(path)
        except FileNotFoundError as e:
            raise ClearSkyOracleError(f"Clear-sky calculator wrote no output: {path}") from e
        return grid

    def sun_window(self, day):
        with tempfile.TemporaryDirectory(prefix="sun_window_") as tmp:
            sunrise_file = Path(tmp) / "sretr.tif"
            sunset_file = Path(tmp) / "ssetr.tif"
            cmd = self._base_command(day) + [
                "--sunrise", str(sunrise_file),
                "--sunset", str(sunset_file)
            ]
            self._run(cmd)
            sunrise = self._read_output(sunrise_file)
            sunset = self._read_output(sunset_file)

        if not (np.isfinite(sunrise).any() and np.isfinite(sunset).any()):
            raise ClearSkyOracleError(f"No sunrise/sunset over the domain on {day}")

        window = DayWindow(int(np.nanmin(sunrise)), int(np.nanmax(sunset)))
        logger.info(f"Sun window {day}: {window.sunrise} to {window.sunset} (minutes)")
        return window

    def cumulative_irradiance(self, day, hour, minute):
        with tempfile.TemporaryDirectory(prefix="clear_sky_") as tmp:
            total_file = Path(tmp) / f"{hour:02d}{minute:02d}-Gi.tif"
            cmd = self._base_command(day) + [
                "--hour", str(hour),
                "--minute", str(minute),
                "--total", str(total_file)
            ]
            self._run(cmd)
            return self._read_output(total_file)
