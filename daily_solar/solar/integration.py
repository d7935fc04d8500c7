"""
Incremental integration of cloud corrected insolation.

``DailyIntegrator`` computes, for one day, every per-slot artifact of
the Heliosat chain and memoizes each one in the artifact cache:

    Gi  clear-sky irradiance accumulated up to the slot (oracle)
    P   albedo floor over the lookback window
    X   ceiling scalar of the slot's image
    K   clear-sky index
    G   cloud corrected insolation accumulated up to the slot

G is a trapezoidal sum: the mean K of two consecutive slots weights
the clear-sky increment between them. Each G records the slots it was
summed over; a daytime image that arrives late changes that chain and
the G of every later slot is recomputed.
"""
import logging
from datetime import date, timedelta
from typing import Callable, Optional

import numpy as np

from ..config import LOOKBACK_DAYS, SMOOTHING_SIZE
from ..data.artifacts import ArtifactCache, ArtifactKind
from . import cloud_index
from .clear_sky import ClearSkyOracle
from .slots import Slot, day_key

logger = logging.getLogger(__name__)


def first_insolation(gi: np.ndarray, k: np.ndarray) -> np.ndarray:
    """G of the first daytime slot"""
    return gi * k


def accumulate_insolation(g_prev, k_prev, gi_prev, k, gi) -> np.ndarray:
    """G of a slot from the previous slot's G, K and Gi"""
    return g_prev + (k_prev + k) / 2 * (gi - gi_prev)


class DailyIntegrator:
    """
    Memoized Heliosat artifacts for one day.

    An artifact already in the cache is reused. With ``force`` every
    artifact is recomputed the first time it is asked for in this run
    and reused afterwards.
    """

    def __init__(self, day: date, oracle: ClearSkyOracle, snapshots, cache: ArtifactCache,
                 lookback_days: int = LOOKBACK_DAYS, force: bool = False,
                 smoothing_size: int = SMOOTHING_SIZE):
        if lookback_days < 0:
            raise ValueError(f"lookback_days must be >= 0, got {lookback_days}")
        self.day = day
        self.oracle = oracle
        self.snapshots = snapshots
        self.cache = cache
        self.lookback_days = lookback_days
        self.force = force
        self.smoothing_size = smoothing_size
        self._refreshed = set()
        self._chains = {}

    def _memoize(self, key: Optional[str], kind: ArtifactKind, compute: Callable,
                 stale: bool = False):
        cell = (key, kind)
        cached = self.cache.exists(self.day, key, kind) and not stale
        if cached and (not self.force or cell in self._refreshed):
            return self.cache.get(self.day, key, kind)

        logger.debug(f"Computing {kind.value} {key or day_key(self.day)}")
        value = compute()
        self.cache.put(self.day, key, kind, value)
        self._refreshed.add(cell)
        # Read back so a fresh value and a cached one are the same bytes
        return self.cache.get(self.day, key, kind)

    def day_window(self):
        """Sunrise and sunset of the day, asked once from the oracle"""
        return self._memoize(None, ArtifactKind.SUN_WINDOW,
                             lambda: self.oracle.sun_window(self.day))

    def clear_sky(self, key: str) -> np.ndarray:
        """Gi, clear-sky irradiance accumulated up to the slot"""
        slot = Slot.from_key(key)

        def compute():
            return np.asarray(
                self.oracle.cumulative_irradiance(self.day, slot.hour, slot.minute),
                dtype=np.float64
            )

        return self._memoize(key, ArtifactKind.GI, compute)

    def albedo_floor(self, key: str) -> np.ndarray:
        """P, darkest brightness of this slot over the lookback window"""

        def compute():
            history = []
            for offset in range(self.lookback_days, -1, -1):
                past = self.day - timedelta(days=offset)
                if self.snapshots.exists(past, key):
                    history.append(self.snapshots.read_snapshot(past, key))
            if not history:
                raise FileNotFoundError(f"No {key} snapshot in the {self.lookback_days + 1} days to {day_key(self.day)}")
            if len(history) == 1:
                logger.warning(f"No albedo history for {key}, using the current image as floor")
            else:
                logger.debug(f"Albedo floor {key} from {len(history)} days")
            return cloud_index.albedo_floor(history)

        return self._memoize(key, ArtifactKind.P, compute)

    def ceiling(self, key: str) -> float:
        """X, smoothed maximum brightness of the slot's image"""

        def compute():
            value = cloud_index.ceiling(self.snapshots.read_snapshot(self.day, key),
                                        self.smoothing_size)
            logger.debug(f"max({key}_5x5)={value}")
            return value

        return self._memoize(key, ArtifactKind.CEILING, compute)

    def clear_sky_index(self, key: str) -> np.ndarray:
        """K of the slot"""

        def compute():
            x = self.ceiling(key)
            p = self.albedo_floor(key)
            b = self.snapshots.read_snapshot(self.day, key)
            return cloud_index.clear_sky_index(b, x, p)

        return self._memoize(key, ArtifactKind.K, compute)

    def insolation(self, key: str) -> np.ndarray:
        """G of a slot that has already been integrated"""
        g = self.cache.get(self.day, key, ArtifactKind.G)
        if g is None:
            raise LookupError(f"Slot {key} of {day_key(self.day)} has not been integrated")
        return g

    def integrate(self, key: str, previous: Optional[str] = None) -> np.ndarray:
        """
        G of a slot.

        Args:
            key: Slot to integrate
            previous: Preceding daytime slot, already integrated.
                None for the first slot after sunrise.

        Returns:
            Cloud corrected insolation accumulated up to the slot
        """

        def compute():
            gi = self.clear_sky(key)
            k = self.clear_sky_index(key)
            if previous is None:
                return first_insolation(gi, k)
            return accumulate_insolation(
                self.insolation(previous),
                self.clear_sky_index(previous),
                self.clear_sky(previous),
                k,
                gi
            )

        chain = self._chain(key, previous)
        recorded = self.cache.get(self.day, key, ArtifactKind.G_CHAIN)
        stale = recorded != chain and self.cache.exists(self.day, key, ArtifactKind.G)
        if stale:
            logger.info(f"G {key} was summed over {recorded or 'unknown slots'}, now {chain}")

        g = self._memoize(key, ArtifactKind.G, compute, stale=stale)
        if recorded != chain:
            self.cache.put(self.day, key, ArtifactKind.G_CHAIN, chain)
        self._chains[key] = chain
        return g

    def _chain(self, key: str, previous: Optional[str]) -> str:
        """Comma separated daytime slots G of `key` is summed over"""
        if previous is None:
            return key
        base = (self._chains.get(previous)
                or self.cache.get(self.day, previous, ArtifactKind.G_CHAIN)
                or previous)
        return f"{base},{key}"

    def has_valid_pixels(self, key: str) -> bool:
        """Whether the slot's image has at least one non-null pixel"""
        if not self.force and self.cache.exists(self.day, key, ArtifactKind.CEILING):
            return True
        return bool(np.isfinite(self.snapshots.read_snapshot(self.day, key)).any())
