"""
Cloud index from GOES visible brightness.

For one slot the clear-sky index K is derived from three references:
- B: the current brightness of the pixel
- P: the albedo floor, darkest brightness of that slot over recent days
- X: the ceiling, brightest plausible cloud top in the current image

with ``d = (X - B) / (X - P)`` mapped onto K by a piecewise function.
All functions here work on whole grids; NaN marks a null pixel.
"""
import logging
from typing import Iterable

import numpy as np
from scipy.ndimage import uniform_filter

from ..config import K_MAX, K_LOW_THRESHOLD, SMOOTHING_SIZE

logger = logging.getLogger(__name__)

# Low index branch: K = A * d^2 + B + C
LOW_BRANCH_A = 1.667
LOW_BRANCH_B = 0.333
LOW_BRANCH_C = 0.0667


def albedo_floor(grids: Iterable[np.ndarray]) -> np.ndarray:
    """
    Per-pixel minimum over a set of brightness grids.

    A pixel that is null in one grid takes the minimum of the others;
    it is null only if it is null everywhere.
    """
    stack = [np.asarray(g, dtype=np.float64) for g in grids]
    if not stack:
        raise ValueError("Albedo floor needs at least one brightness grid")
    return np.fmin.reduce(np.stack(stack), axis=0)


def smoothed_grid(grid: np.ndarray, size: int = SMOOTHING_SIZE) -> np.ndarray:
    """
    Moving average over a size x size window, ignoring null pixels.

    Windows are clipped at the grid edge. A pixel stays null only when
    its whole window is null.
    """
    grid = np.asarray(grid, dtype=np.float64)
    valid = np.isfinite(grid)
    sums = uniform_filter(np.where(valid, grid, 0.0), size=size, mode="constant", cval=0.0)
    counts = uniform_filter(valid.astype(np.float64), size=size, mode="constant", cval=0.0)

    # counts are fractions of the window; below half a pixel means empty
    has_data = counts > 0.5 / (size * size)
    return np.where(has_data, sums / np.where(has_data, counts, 1.0), np.nan)


def ceiling(grid: np.ndarray, size: int = SMOOTHING_SIZE) -> float:
    """
    Brightest cloud top of an image, as a single scalar.

    The maximum is taken after smoothing so isolated sun glints do not
    set the reference.
    """
    smoothed = smoothed_grid(grid, size)
    if not np.isfinite(smoothed).any():
        raise ValueError("Cannot compute a ceiling on a grid without valid pixels")
    return float(np.nanmax(smoothed))


def clear_sky_index(brightness, ceiling_value, floor) -> np.ndarray:
    """
    Clear-sky index K per pixel.

        d = (X - B) / (X - P)
        K = min(d, 1.09)                           if d > 0.2
        K = min(0.2, 1.667 d^2 + 0.333 + 0.0667)   otherwise
        K = 1                                      where X == P

    Args:
        brightness: Current brightness grid B
        ceiling_value: Ceiling scalar X
        floor: Albedo floor grid P

    Returns:
        K grid, NaN where B or P is null
    """
    b = np.asarray(brightness, dtype=np.float64)
    p = np.asarray(floor, dtype=np.float64)
    x = float(ceiling_value)

    with np.errstate(all="ignore"):
        span = x - p
        d = (x - b) / span
        low = np.minimum(K_LOW_THRESHOLD, LOW_BRANCH_A * d ** 2 + LOW_BRANCH_B + LOW_BRANCH_C)
        k = np.where(d > K_LOW_THRESHOLD, np.minimum(d, K_MAX), low)

    k = np.where(span == 0, 1.0, k)
    k = np.where(np.isnan(b) | np.isnan(p), np.nan, k)
    return k
