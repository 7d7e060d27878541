from collections.abc import Sequence
from enum import StrEnum
from typing import Final

import numpy as np

from .models import ForecastPoint, Reading

# Relative change beyond which a channel counts as moving
TREND_THRESHOLD: Final[float] = 0.1
# Forecast looks at the most recent entries only
FORECAST_WINDOW: Final[int] = 20
FORECAST_MIN_POINTS: Final[int] = 3


class TrendLabel(StrEnum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"

    @property
    def symbol(self) -> str:
        return {"rising": "↗", "falling": "↘", "stable": "→"}[self.value]

    def display(self) -> str:
        return f"{self.symbol} {self.value}"


def relative_change(window: Sequence[Reading], key: str) -> float | None:
    """(last - first) / max(|first|, 1) over the window endpoints, or None."""
    if len(window) < 2:
        return None
    first = window[0].value(key)
    last = window[-1].value(key)
    if first is None or last is None:
        return None
    return (last - first) / max(abs(first), 1.0)


def trend(window: Sequence[Reading], key: str) -> TrendLabel:
    rel = relative_change(window, key)
    if rel is None:
        return TrendLabel.STABLE
    if rel > TREND_THRESHOLD:
        return TrendLabel.RISING
    if rel < -TREND_THRESHOLD:
        return TrendLabel.FALLING
    return TrendLabel.STABLE


def forecast(
    window: Sequence[Reading],
    key: str,
    rng: np.random.Generator | None = None,
) -> list[ForecastPoint]:
    """Linear drift plus noise over the last FORECAST_WINDOW readings.

    Placeholder for a trained model. Returns an empty list when fewer than
    FORECAST_MIN_POINTS numeric values are available. Without ``rng`` the
    noise is drawn from an unseeded generator, so output is not reproducible.
    """
    if len(window) < FORECAST_MIN_POINTS:
        return []
    base = window[-FORECAST_WINDOW:]
    numeric = [(r.ts, v) for r in base if (v := r.value(key)) is not None]
    if len(numeric) < FORECAST_MIN_POINTS:
        return []

    gen = rng if rng is not None else np.random.default_rng()
    n = len(numeric)
    steps = n - 1
    slope = (numeric[-1][1] - numeric[0][1]) / max(steps, 1)
    spread = (abs(slope) or 1.0) * 0.5

    points: list[ForecastPoint] = []
    for idx, (ts, val) in enumerate(numeric):
        noise = (float(gen.random()) - 0.5) * spread
        drift = slope * (idx / n)
        points.append(ForecastPoint(ts=ts, actual=val, predicted=val + drift + noise))
    return points
