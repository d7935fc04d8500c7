"""
Observation slots and day keys.

A slot is one time of day at which a GOES image is taken. Its key is
the ``HHMM`` prefix of the snapshot name (``0721PST-B2`` -> ``0721``).
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import List

from ..config import DEFAULT_INTERVAL, SLOT_OFFSET_MINUTES, SNAPSHOT_SUFFIX

logger = logging.getLogger(__name__)

DAY_PATTERN = re.compile(r"^20[012][0-9][01][0-9][0-3][0-9]$")


@dataclass(frozen=True, order=True)
class Slot:
    """One observation time of day, ordered by minute of day."""
    hour: int
    minute: int

    @classmethod
    def from_key(cls, key: str) -> "Slot":
        if len(key) < 4 or not key[:4].isdigit():
            raise ValueError(f"Not a slot key: {key!r}")
        hour, minute = int(key[0:2]), int(key[2:4])
        if hour > 23 or minute > 59:
            raise ValueError(f"Not a slot key: {key!r}")
        return cls(hour, minute)

    @classmethod
    def from_minute(cls, minute_of_day: int) -> "Slot":
        return cls(minute_of_day // 60, minute_of_day % 60)

    @property
    def key(self) -> str:
        return slot_key(self.hour, self.minute)

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute

    @property
    def snapshot_name(self) -> str:
        return f"{self.key}{SNAPSHOT_SUFFIX}"


def slot_key(hour: int, minute: int) -> str:
    return f"{hour:02d}{minute:02d}"


def minute_of_day(key: str) -> int:
    return Slot.from_key(key).minute_of_day


def validate_day(text: str) -> date:
    """
    Parse a ``YYYYMMDD`` day key

    Raises:
        ValueError: If the key is not a valid date in 2000-2029
    """
    if not DAY_PATTERN.match(text or ""):
        raise ValueError(f"Day {text!r} not valid date format (YYYYMMDD)")
    try:
        return datetime.strptime(text, "%Y%m%d").date()
    except ValueError as e:
        raise ValueError(f"Day {text!r} is not a calendar date: {e}") from e


def day_key(day: date) -> str:
    return day.strftime("%Y%m%d")


def expected_slot_keys(sunrise: int, sunset: int, interval: int = DEFAULT_INTERVAL) -> List[str]:
    """
    Slot keys at which images are expected between sunrise and sunset.

    Slots are spaced ``interval`` minutes apart starting from the first
    interval boundary at or after sunrise, shifted by the satellite's
    one minute scan offset. The list ends with the first slot past
    sunset, so the day can always be closed.

    Args:
        sunrise: Sunrise, minute of day
        sunset: Sunset, minute of day
        interval: Minutes between images

    Returns:
        Ordered slot keys
    """
    if interval <= 0:
        raise ValueError(f"Interval must be positive, got {interval}")

    start = -(-sunrise // interval) * interval + SLOT_OFFSET_MINUTES
    keys = []
    current = start
    while current < 24 * 60:
        keys.append(Slot.from_minute(current).key)
        if current > sunset:
            break
        current += interval
    return keys
