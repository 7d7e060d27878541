from collections.abc import Sequence
from datetime import timedelta
from enum import Enum
from typing import Dict, List

import numpy as np
import pandas as pd

from .models import CHANNELS, SENSORS, Reading


class TimeRange(Enum):
    ALL = "all"
    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"

    @property
    def span(self) -> timedelta | None:
        return {
            "all": None,
            "1h": timedelta(hours=1),
            "24h": timedelta(hours=24),
            "7d": timedelta(days=7),
            "30d": timedelta(days=30),
        }[self.value]


def filter_window(readings: Sequence[Reading], time_range: TimeRange) -> List[Reading]:
    """Keep readings within ``time_range`` of the newest reading.

    The cutoff is relative to the last reading, not the wall clock, so a
    device that stopped reporting still shows its final stretch.
    """
    window = list(readings)
    span = time_range.span
    if not window or span is None:
        return window
    last_ts = window[-1].parsed_ts()
    if last_ts is None:
        return window
    cutoff = last_ts - span
    return [r for r in window if (ts := r.parsed_ts()) is not None and ts >= cutoff]


def _values(window: Sequence[Reading], key: str) -> np.ndarray:
    vals = [v for r in window if (v := r.value(key)) is not None]
    return np.asarray(vals, dtype=float)


def summarize(window: Sequence[Reading], key: str) -> Dict[str, float] | None:
    """min, max, avg and latest non-null value for one channel."""
    vals = _values(window, key)
    if vals.size == 0:
        return None
    return {
        "min": float(np.min(vals)),
        "max": float(np.max(vals)),
        "avg": float(np.mean(vals)),
        "latest": float(vals[-1]),
    }


def summarize_all(window: Sequence[Reading]) -> Dict[str, Dict[str, float] | None]:
    return {s.key: summarize(window, s.key) for s in SENSORS}


def readings_frame(window: Sequence[Reading]) -> pd.DataFrame:
    """DataFrame with a tz-aware ``time`` column plus one column per channel."""
    columns = ["ts", "time", *CHANNELS]
    if not window:
        return pd.DataFrame(columns=columns)
    rows = [{"ts": r.ts, "time": r.parsed_ts(), **{k: r.value(k) for k in CHANNELS}} for r in window]
    df = pd.DataFrame(rows, columns=columns)
    df["time"] = pd.to_datetime(df["time"], utc=True)
    return df
