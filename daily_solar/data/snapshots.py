"""
Store of imported GOES brightness snapshots.

Snapshots are read-only inputs laid out one directory per day:

    <root>/<YYYYMMDD>/<HHMM>PST-B2.tif

Fetching and reprojecting the satellite images into that layout is
done upstream.
"""
import logging
from datetime import date
from pathlib import Path
from typing import List

from .raster import read_grid, read_meta
from ..config import SNAPSHOT_DIR, SNAPSHOT_SUFFIX, DEFAULT_PATTERN
from ..solar.slots import Slot, day_key

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Brightness grids indexed by (day, slot key)"""

    def __init__(self, root=SNAPSHOT_DIR, suffix=SNAPSHOT_SUFFIX):
        self.root = Path(root)
        self.suffix = suffix

    def path(self, day: date, key: str) -> Path:
        return self.root / day_key(day) / f"{key}{self.suffix}.tif"

    def exists(self, day: date, key: str) -> bool:
        return self.path(day, key).exists()

    def list_snapshots(self, day: date, pattern: str = DEFAULT_PATTERN) -> List[str]:
        """
        Slot keys of the snapshots present for a day, in time order.

        Args:
            day: Day to list
            pattern: Shell pattern the snapshot name must match

        Returns:
            Sorted list of slot keys
        """
        day_dir = self.root / day_key(day)
        if not day_dir.exists():
            logger.debug(f"No snapshot directory for {day_key(day)}")
            return []

        keys = set()
        for path in day_dir.glob(f"{pattern}.tif"):
            try:
                keys.add(Slot.from_key(path.stem).key)
            except ValueError:
                logger.warning(f"Ignoring snapshot with unexpected name: {path.name}")
        return sorted(keys)

    def read_snapshot(self, day: date, key: str):
        """Brightness grid of one slot, NaN where the pixel is invalid"""
        grid, _ = read_grid(self.path(day, key))
        return grid

    def profile(self, day: date, key: str):
        """Raster metadata of a snapshot, used to write derived grids on the same grid"""
        return read_meta(self.path(day, key))
