import json
import logging
from typing import Any, Final

from .models import ThresholdSet, to_float
from .store import KeyValueStore

STORAGE_KEY: Final[str] = "iot-thresholds"

logger = logging.getLogger(__name__)


def merge_overrides(overrides: Any) -> ThresholdSet:
    """Overlay numeric overrides on the defaults; anything else is ignored."""
    merged = ThresholdSet().model_dump()
    if not isinstance(overrides, dict):
        return ThresholdSet.model_validate(merged)
    for key in ThresholdSet.keys():
        if key not in overrides:
            continue
        value = to_float(overrides[key])
        if value is None:
            logger.debug("Ignoring non-numeric threshold override %s=%r", key, overrides[key])
            continue
        merged[key] = value
    return ThresholdSet.model_validate(merged)


class ThresholdStore:
    """Load/save boundary for the user's threshold preferences."""

    def __init__(self, kv: KeyValueStore, key: str = STORAGE_KEY) -> None:
        self.kv = kv
        self.key = key

    def load(self) -> ThresholdSet:
        """Return stored overrides merged over defaults; never raises."""
        try:
            raw = self.kv.get(self.key)
        except Exception:
            logger.debug("Threshold store read failed; using defaults", exc_info=True)
            return ThresholdSet()
        if raw is None:
            return ThresholdSet()
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Stored thresholds are not valid JSON; using defaults")
            return ThresholdSet()
        return merge_overrides(parsed)

    def save(self, thresholds: ThresholdSet) -> None:
        """Persist the full set. Best effort: failures are logged, not raised."""
        try:
            self.kv.set(self.key, json.dumps(thresholds.model_dump()))
        except Exception:
            logger.debug("Threshold store write failed", exc_info=True)

    def update(self, thresholds: ThresholdSet, key: str, value: float) -> ThresholdSet:
        """Apply one editor change in place and persist the full set."""
        if key not in ThresholdSet.keys():
            raise KeyError(key)
        setattr(thresholds, key, float(value))
        self.save(thresholds)
        return thresholds
