"""
Daily finalization.

Walks the day's snapshots in time order through three states:

    BEFORE_SUNRISE -> DAYTIME -> FINALIZED

Daytime slots are integrated one after the other. The first snapshot
at or after sunset closes the day: the last daytime slot's G is carried
to that time with its own K and the DailyTotal is stored. Later
snapshots are not looked at.

A day without a post-sunset snapshot stays open; running again once
the image has arrived finishes it from the cached artifacts. A daytime
image without a single valid pixel counts as missing.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from ..config import DEFAULT_INTERVAL, DEFAULT_PATTERN, MJ_PER_WH_M2
from ..data.artifacts import ArtifactKind
from .integration import DailyIntegrator
from .models import DailyTotal, DayWindow
from .slots import day_key, expected_slot_keys, minute_of_day

logger = logging.getLogger(__name__)


class DayState(Enum):
    BEFORE_SUNRISE = "BEFORE_SUNRISE"
    DAYTIME = "DAYTIME"
    FINALIZED = "FINALIZED"


@dataclass
class FinalizeResult:
    """Outcome of one pass over the day's snapshots"""
    state: DayState
    total: Optional[DailyTotal] = None
    slots: List[str] = field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.state is DayState.FINALIZED


def close_day(gi_end, gi_prev, k_prev, g_prev, slots=None) -> DailyTotal:
    """
    Daily totals from the first post-sunset slot.

        Rso  = Gi(end) * 0.0036
        Rs   = (G(prev) + K(prev) * (Gi(end) - Gi(prev))) * 0.0036
        Kday = Rs / Rso

    Args:
        gi_end: Gi of the post-sunset slot, Wh/m^2
        gi_prev, k_prev, g_prev: Gi, K and G of the last daytime slot
        slots: Slot keys used

    Returns:
        DailyTotal in MJ/m^2 day, Kday null where Rso is 0
    """
    rso = gi_end * MJ_PER_WH_M2
    rs = (g_prev + k_prev * (gi_end - gi_prev)) * MJ_PER_WH_M2
    with np.errstate(divide="ignore", invalid="ignore"):
        kday = np.where(rso != 0, rs / rso, np.nan)
    return DailyTotal(rso=rso, rs=rs, kday=kday, slots=list(slots or []))


class DailyFinalizer:
    """Drives the slot loop of one day and produces its DailyTotal"""

    def __init__(self, integrator: DailyIntegrator, pattern: str = DEFAULT_PATTERN,
                 interval: int = DEFAULT_INTERVAL, prefetch_workers: int = 1):
        self.integrator = integrator
        self.pattern = pattern
        self.interval = interval
        self.prefetch_workers = prefetch_workers

    @property
    def day(self):
        return self.integrator.day

    def report_missing(self, window: DayWindow, present: List[str]) -> List[str]:
        """Expected slots with no snapshot yet"""
        expected = expected_slot_keys(window.sunrise, window.sunset, self.interval)
        present = set(present)
        missing = [key for key in expected if key not in present]
        if missing:
            logger.info(f"{len(missing)}/{len(expected)} expected images missing: {' '.join(missing)}")
        return missing

    def _loop_slots(self, window, keys):
        """Slots the loop will touch: daytime ones and the first one after sunset"""
        touched = []
        for key in keys:
            minute = minute_of_day(key)
            if minute <= window.sunrise:
                continue
            touched.append(key)
            if minute >= window.sunset:
                break
        return touched

    def prefetch(self, window: DayWindow, keys: List[str]) -> None:
        """Evaluate Gi for all loop slots concurrently"""
        touched = self._loop_slots(window, keys)
        logger.info(f"Prefetching clear-sky irradiance for {len(touched)} slots "
                    f"with {self.prefetch_workers} workers")
        with ThreadPoolExecutor(self.prefetch_workers) as ex:
            futures = [ex.submit(self.integrator.clear_sky, key) for key in touched]
            for f in futures:
                f.result()

    def run(self) -> FinalizeResult:
        """
        Integrate the day as far as the snapshots allow.

        Returns:
            FinalizeResult, FINALIZED with the DailyTotal once the day is closed
        """
        integrator = self.integrator
        cache = integrator.cache
        day = self.day

        if cache.exists(day, None, ArtifactKind.DAILY_TOTAL) and not integrator.force:
            total = cache.get(day, None, ArtifactKind.DAILY_TOTAL)
            logger.info(f"{day_key(day)} already finalized")
            return FinalizeResult(DayState.FINALIZED, total, list(total.slots))

        window = integrator.day_window()
        keys = integrator.snapshots.list_snapshots(day, self.pattern)
        logger.info(f"{day_key(day)}: {len(keys)} snapshots, sun from {window.sunrise} to {window.sunset}")
        self.report_missing(window, keys)

        if self.prefetch_workers > 1:
            self.prefetch(window, keys)

        state = DayState.BEFORE_SUNRISE
        previous = None
        used = []

        for key in keys:
            minute = minute_of_day(key)

            if minute <= window.sunrise:
                logger.debug(f"{key} before sunrise, skipped")
                continue

            if minute < window.sunset:
                if not integrator.has_valid_pixels(key):
                    logger.warning(f"{key} has no valid pixels, treated as missing")
                    continue
                integrator.integrate(key, previous)
                logger.info(f"{'sunrise' if previous is None else 'add'} {key}")
                state = DayState.DAYTIME
                previous = key
                used.append(key)
                continue

            if previous is None:
                logger.warning(f"{key} is after sunset but no daytime slot precedes it, "
                               f"{day_key(day)} cannot be closed")
                break

            used.append(key)
            total = close_day(
                integrator.clear_sky(key),
                integrator.clear_sky(previous),
                integrator.clear_sky_index(previous),
                integrator.insolation(previous),
                slots=used
            )
            cache.put(day, None, ArtifactKind.DAILY_TOTAL, total)
            total = cache.get(day, None, ArtifactKind.DAILY_TOTAL)
            logger.info(f"sunset@{key}: {day_key(day)} finalized from {len(used)} slots")
            return FinalizeResult(DayState.FINALIZED, total, used)

        logger.info(f"{day_key(day)} not finalized yet ({state.value}, {len(used)} slots)")
        return FinalizeResult(state, None, used)
