"""
GeoTIFF adapter for brightness snapshots and derived grids.

Grids are handled as float64 numpy arrays where nodata pixels are NaN.
Writes go through a temporary file in the target directory and are
moved into place, so a reader sees either the old grid or the new one.
"""
import logging
import os
import tempfile
from pathlib import Path

import numpy as np
import rasterio

from ..config import COMPRESSION, PREDICTOR, TILED, BLOCKSIZE

logger = logging.getLogger(__name__)


def read_grid(path):
    """
    Read the first band of a raster

    Args:
        path: GeoTIFF path

    Returns:
        (grid, meta) with nodata converted to NaN
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster not found: {path}")

    with rasterio.open(path) as src:
        grid = src.read(1, masked=True).astype(np.float64).filled(np.nan)
        meta = src.meta.copy()
    return grid, meta


def read_meta(path):
    """Read the georeferencing metadata of a raster without its pixels"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster not found: {path}")
    with rasterio.open(path) as src:
        return src.meta.copy()


def write_grid(path, grid, meta, units=None, description=None, history=None):
    """
    Write a single band float32 GeoTIFF

    Args:
        path: Output path
        grid: 2-D array, NaN marks nodata
        meta: rasterio metadata of the grid this one is aligned with
        units: Optional units tag
        description: Optional band description
        history: Optional history tag (e.g. the slots used)
    """
    path = Path(path)
    grid = np.asarray(grid, dtype=np.float32)
    height, width = grid.shape

    out_meta = meta.copy()
    out_meta.update({
        "driver": "GTiff",
        "dtype": "float32",
        "count": 1,
        "height": height,
        "width": width,
        "nodata": np.nan,
        "compress": COMPRESSION,
        "predictor": PREDICTOR,
    })
    # Tiling only pays off on grids larger than a block
    if TILED and height >= BLOCKSIZE and width >= BLOCKSIZE:
        out_meta.update({
            "tiled": True,
            "blockxsize": BLOCKSIZE,
            "blockysize": BLOCKSIZE
        })

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tif")
    os.close(fd)
    try:
        with rasterio.open(tmp_name, "w", **out_meta) as dest:
            dest.write(grid, 1)
            tags = {}
            if units:
                tags["units"] = units
            if history:
                tags["history"] = history
            if tags:
                dest.update_tags(**tags)
            if description:
                dest.set_band_description(1, description)
        os.replace(tmp_name, path)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f"Wrote {path} ({width} x {height})")
    return path


def read_tags(path):
    """Dataset level tags of a raster"""
    with rasterio.open(path) as src:
        return src.tags()
