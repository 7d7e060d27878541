import json

import pytest

from iot_dashboard.models import ThresholdSet
from iot_dashboard.store import MemoryKeyValueStore
from iot_dashboard.thresholds import STORAGE_KEY, ThresholdStore, merge_overrides


class _BrokenStore:
    def get(self, key: str) -> str | None:
        raise OSError("disk unavailable")

    def set(self, key: str, value: str) -> None:
        raise OSError("disk unavailable")


def test_defaults_when_nothing_saved() -> None:
    store = ThresholdStore(MemoryKeyValueStore())

    loaded = store.load()

    assert loaded == ThresholdSet()
    assert loaded.tempHighDanger == 95
    assert loaded.uvExtreme == 8
    assert len(ThresholdSet.keys()) == 16


def test_save_then_load_round_trip() -> None:
    kv = MemoryKeyValueStore()
    store = ThresholdStore(kv)
    thresholds = ThresholdSet(tempHighWarning=80, co2High=1000)

    store.save(thresholds)
    loaded = store.load()

    assert loaded.tempHighWarning == 80
    assert loaded.co2High == 1000
    assert loaded == thresholds
    assert json.loads(kv.get(STORAGE_KEY) or "{}")["co2High"] == 1000


def test_partial_blob_falls_back_per_key() -> None:
    kv = MemoryKeyValueStore({STORAGE_KEY: json.dumps({"humLowDanger": 10, "unknownKey": 5})})

    loaded = ThresholdStore(kv).load()

    assert loaded.humLowDanger == 10
    assert loaded.humLowWarning == 30
    assert not hasattr(loaded, "unknownKey")


@pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", "null", '"text"'])
def test_malformed_blob_returns_defaults(raw: str) -> None:
    kv = MemoryKeyValueStore({STORAGE_KEY: raw})

    assert ThresholdStore(kv).load() == ThresholdSet()


def test_non_numeric_override_is_ignored() -> None:
    merged = merge_overrides({"luxLow": "dim", "uvHigh": "5"})

    assert merged.luxLow == 100
    assert merged.uvHigh == 5


def test_backend_failures_do_not_raise() -> None:
    store = ThresholdStore(_BrokenStore())

    assert store.load() == ThresholdSet()
    store.save(ThresholdSet())


def test_update_persists_full_set() -> None:
    kv = MemoryKeyValueStore()
    store = ThresholdStore(kv)
    thresholds = store.load()

    store.update(thresholds, "aqiUnhealthy", 120)

    assert thresholds.aqiUnhealthy == 120
    saved = json.loads(kv.get(STORAGE_KEY) or "{}")
    assert set(saved) == set(ThresholdSet.keys())
    assert saved["aqiUnhealthy"] == 120


def test_update_unknown_key_raises() -> None:
    store = ThresholdStore(MemoryKeyValueStore())

    with pytest.raises(KeyError):
        store.update(ThresholdSet(), "tempMedium", 50)
