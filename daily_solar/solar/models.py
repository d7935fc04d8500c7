"""
Value types shared by the oracle, the artifact cache and the finalizer.
"""
from dataclasses import dataclass, field
from typing import List

import numpy as np


@dataclass(frozen=True)
class DayWindow:
    """Earliest sunrise and latest sunset over the domain, minutes of the local day."""
    sunrise: int
    sunset: int

    def __post_init__(self):
        if self.sunset <= self.sunrise:
            raise ValueError(f"Sunset ({self.sunset}) must be after sunrise ({self.sunrise})")


@dataclass
class DailyTotal:
    """
    Finalized insolation for one day.

    Attributes:
        rso: Clear-sky total, MJ/m^2 day
        rs: Cloud corrected total, MJ/m^2 day
        kday: Daily clear-sky index rs / rso, unitless
        slots: Slot keys that contributed, ending with the post-sunset slot
    """
    rso: np.ndarray
    rs: np.ndarray
    kday: np.ndarray
    slots: List[str] = field(default_factory=list)

    def summary(self) -> dict:
        """Domain means of the three grids, ignoring null pixels"""
        valid = np.isfinite(self.kday)
        if not valid.any():
            return {"rso_mean": np.nan, "rs_mean": np.nan, "kday_mean": np.nan, "valid_pixels": 0}
        return {
            "rso_mean": float(np.nanmean(self.rso[valid])),
            "rs_mean": float(np.nanmean(self.rs[valid])),
            "kday_mean": float(np.nanmean(self.kday[valid])),
            "valid_pixels": int(valid.sum()),
        }
