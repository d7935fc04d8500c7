"""
Cache of derived per-slot artifacts.

Every intermediate of the daily run (Gi, P, ceiling, K, G and the slots
each G was summed over), the day's sun window and the final DailyTotal
are memoized under (day, slot key, kind). Present means reuse, absent means compute.

Two backends:
- ``MemoryArtifactCache``: a dict, for tests and one-off runs
- ``RasterArtifactCache``: GeoTIFF grids plus a JSON session store for
  scalars, one directory per day, so a later run can resume
"""
import json
import logging
import os
import tempfile
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import numpy as np

from .raster import read_grid, write_grid
from ..config import WORK_DIR, SNAPSHOT_SUFFIX
from ..solar.models import DailyTotal, DayWindow
from ..solar.slots import day_key

logger = logging.getLogger(__name__)


class ArtifactKind(Enum):
    GI = "Gi"
    P = "P"
    CEILING = "ceilingScalar"
    K = "K"
    G = "G"
    G_CHAIN = "Gchain"
    SUN_WINDOW = "sunWindow"
    DAILY_TOTAL = "DailyTotal"


GRID_KINDS = (ArtifactKind.GI, ArtifactKind.P, ArtifactKind.K, ArtifactKind.G)

# Removed once the day is finalized, unless intermediates are saved
INTERMEDIATE_KINDS = (ArtifactKind.GI, ArtifactKind.K, ArtifactKind.G)


class ArtifactCache:
    """Interface of the (day, slot key, kind) -> value store"""

    def get(self, day: date, key: Optional[str], kind: ArtifactKind) -> Any:
        raise NotImplementedError

    def put(self, day: date, key: Optional[str], kind: ArtifactKind, value: Any) -> None:
        raise NotImplementedError

    def exists(self, day: date, key: Optional[str], kind: ArtifactKind) -> bool:
        raise NotImplementedError

    def purge(self, day: date, kinds: Iterable[ArtifactKind] = INTERMEDIATE_KINDS) -> int:
        raise NotImplementedError


class MemoryArtifactCache(ArtifactCache):
    """Dict backed cache. Stored grids are read-only copies."""

    def __init__(self):
        self._store: Dict[tuple, Any] = {}

    @staticmethod
    def _freeze(value):
        if isinstance(value, np.ndarray):
            value = np.array(value, dtype=np.float64, copy=True)
            value.setflags(write=False)
        return value

    def get(self, day, key, kind):
        return self._store.get((day, key, kind))

    def put(self, day, key, kind, value):
        if kind is ArtifactKind.DAILY_TOTAL:
            value = DailyTotal(
                rso=self._freeze(value.rso),
                rs=self._freeze(value.rs),
                kday=self._freeze(value.kday),
                slots=list(value.slots)
            )
        self._store[(day, key, kind)] = self._freeze(value)

    def exists(self, day, key, kind):
        return (day, key, kind) in self._store

    def purge(self, day, kinds=INTERMEDIATE_KINDS):
        kinds = set(kinds)
        doomed = [k for k in self._store if k[0] == day and k[2] in kinds]
        for k in doomed:
            del self._store[k]
        return len(doomed)

    def __len__(self):
        return len(self._store)


class RasterArtifactCache(ArtifactCache):
    """
    On-disk cache, one directory per day:

        <root>/<YYYYMMDD>/<HHMM>PST-<kind>.tif   grids (Gi, P, K, G)
        <root>/<YYYYMMDD>/Rso.tif, Rs.tif, K.tif  daily total
        <root>/<YYYYMMDD>/session.json            sun window, ceilings, G chains, slots used
    """

    SESSION_FILE = "session.json"
    TOTAL_FILES = {"rso": "Rso.tif", "rs": "Rs.tif", "kday": "K.tif"}

    def __init__(self, root=WORK_DIR, meta=None):
        self.root = Path(root)
        self.meta = meta

    def day_dir(self, day: date) -> Path:
        return self.root / day_key(day)

    def grid_path(self, day: date, key: str, kind: ArtifactKind) -> Path:
        return self.day_dir(day) / f"{key}PST-{kind.value}.tif"

    # Session store

    def _session_path(self, day):
        return self.day_dir(day) / self.SESSION_FILE

    def load_session(self, day: date) -> Dict[str, Any]:
        path = self._session_path(day)
        if not path.exists():
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _update_session(self, day, **values):
        session = self.load_session(day)
        session.update(values)
        path = self._session_path(day)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".session.", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(session, f, indent=2)
            os.replace(tmp_name, path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    @staticmethod
    def _ceiling_name(key):
        return f"{key}{SNAPSHOT_SUFFIX}_5x5"

    @staticmethod
    def _chain_name(key):
        return f"{key}PST-G_using"

    def _require_meta(self):
        if self.meta is None:
            raise RuntimeError("RasterArtifactCache needs grid metadata before writing grids")
        return self.meta

    # ArtifactCache

    def exists(self, day, key, kind):
        if kind in GRID_KINDS:
            return self.grid_path(day, key, kind).exists()
        if kind is ArtifactKind.CEILING:
            return self._ceiling_name(key) in self.load_session(day)
        if kind is ArtifactKind.G_CHAIN:
            return self._chain_name(key) in self.load_session(day)
        if kind is ArtifactKind.SUN_WINDOW:
            session = self.load_session(day)
            return "sunrise" in session and "sunset" in session
        if kind is ArtifactKind.DAILY_TOTAL:
            return all((self.day_dir(day) / name).exists() for name in self.TOTAL_FILES.values())
        raise ValueError(f"Unknown artifact kind: {kind}")

    def get(self, day, key, kind):
        if not self.exists(day, key, kind):
            return None
        if kind in GRID_KINDS:
            grid, _ = read_grid(self.grid_path(day, key, kind))
            return grid
        session = self.load_session(day)
        if kind is ArtifactKind.CEILING:
            return float(session[self._ceiling_name(key)])
        if kind is ArtifactKind.G_CHAIN:
            return session[self._chain_name(key)]
        if kind is ArtifactKind.SUN_WINDOW:
            return DayWindow(int(session["sunrise"]), int(session["sunset"]))
        grids = {
            field: read_grid(self.day_dir(day) / name)[0]
            for field, name in self.TOTAL_FILES.items()
        }
        return DailyTotal(slots=list(session.get("b2_used", [])), **grids)

    def put(self, day, key, kind, value):
        if kind in GRID_KINDS:
            write_grid(self.grid_path(day, key, kind), value, self._require_meta())
        elif kind is ArtifactKind.CEILING:
            self._update_session(day, **{self._ceiling_name(key): float(value)})
        elif kind is ArtifactKind.G_CHAIN:
            self._update_session(day, **{self._chain_name(key): str(value)})
        elif kind is ArtifactKind.SUN_WINDOW:
            self._update_session(day, sunrise=int(value.sunrise), sunset=int(value.sunset))
        elif kind is ArtifactKind.DAILY_TOTAL:
            meta = self._require_meta()
            history = f"using({','.join(value.slots)})"
            day_dir = self.day_dir(day)
            write_grid(day_dir / self.TOTAL_FILES["rso"], value.rso, meta,
                       units="MJ/m^2 day", history=history)
            write_grid(day_dir / self.TOTAL_FILES["rs"], value.rs, meta,
                       units="MJ/m^2 day", history=history)
            self._update_session(day, b2_used=list(value.slots))
            # K last: its presence completes the total
            write_grid(day_dir / self.TOTAL_FILES["kday"], value.kday, meta,
                       units="unitless", description="Clear Sky Index", history=history)
        else:
            raise ValueError(f"Unknown artifact kind: {kind}")
        logger.debug(f"Stored {kind.value} for {day_key(day)} {key or ''}".rstrip())

    def purge(self, day, kinds=INTERMEDIATE_KINDS):
        removed = 0
        day_dir = self.day_dir(day)
        if not day_dir.exists():
            return 0
        for kind in kinds:
            if kind not in GRID_KINDS:
                raise ValueError(f"Only grid artifacts can be purged, got {kind.value}")
            for path in day_dir.glob(f"[0-9][0-9][0-9][0-9]PST-{kind.value}.tif"):
                path.unlink()
                removed += 1
        logger.info(f"Removed {removed} intermediate grids from {day_dir}")
        return removed
