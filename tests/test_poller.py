import threading
import time
from typing import Any

from iot_dashboard.client import FetchError
from iot_dashboard.models import Reading, ThresholdSet
from iot_dashboard.poller import SESSION_KEY, DashboardState, Poller, session_poller, stop_session_poller


def _make_reading(ts: str = "2025-01-01T00:00:00Z", **channels: Any) -> Reading:
    return Reading.model_validate({"ts": ts, **channels})


def _series(key: str, values: list[Any], start_minute: int = 0) -> list[Reading]:
    """One reading per minute with ``key`` set to each value in turn."""
    return [
        _make_reading(f"2025-01-01T00:{start_minute + i:02d}:00Z", **{key: v})
        for i, v in enumerate(values)
    ]


def test_initial_state_is_loading_and_empty() -> None:
    state = Poller(fetch=lambda: []).state

    assert state.loading is True
    assert state.latest == Reading.empty()
    assert state.alerts(ThresholdSet()) == []


def test_poll_once_publishes_latest_and_forecast() -> None:
    readings = _series("temperature", [70, 72, 74, 96])
    poller = Poller(fetch=lambda: readings)

    state = poller.poll_once()

    assert state.loading is False
    assert state.error is None
    assert state.latest.temperature == 96
    assert len(state.history) == 4
    assert len(state.forecast) == 4
    assert [a.key for a in state.alerts(ThresholdSet())] == ["temp-heat"]


def test_empty_result_resets_latest() -> None:
    results = [_series("humidity", [10, 12, 15]), []]
    poller = Poller(fetch=lambda: results.pop(0))

    poller.poll_once()
    state = poller.poll_once()

    assert state.latest == Reading.empty()
    assert state.history == ()
    assert state.forecast == ()
    assert state.alerts(ThresholdSet()) == []


def test_failure_keeps_last_known_good() -> None:
    calls = {"n": 0}

    def fetch() -> list[Reading]:
        calls["n"] += 1
        if calls["n"] == 2:
            raise FetchError("API error: 500", status_code=500)
        return [_make_reading(co2=float(calls["n"]))]

    poller = Poller(fetch=fetch)
    poller.poll_once()
    failed = poller.poll_once()

    assert failed.error == "API error: 500"
    assert failed.latest.co2 == 1.0

    recovered = poller.poll_once()
    assert recovered.error is None
    assert recovered.latest.co2 == 3.0


def test_callback_errors_do_not_break_polling() -> None:
    def boom(_state: DashboardState) -> None:
        raise RuntimeError("render failed")

    poller = Poller(fetch=lambda: [_make_reading(temperature=70)], on_update=boom)

    assert poller.poll_once().latest.temperature == 70


def test_timer_fires_repeatedly_and_stops() -> None:
    calls: list[float] = []
    fired = threading.Event()

    def fetch() -> list[Reading]:
        calls.append(time.monotonic())
        if len(calls) >= 3:
            fired.set()
        return []

    with Poller(fetch=fetch, interval_secs=0.02) as poller:
        assert fired.wait(timeout=5)
        assert poller.running

    assert not poller.running
    count = len(calls)
    time.sleep(0.1)
    assert len(calls) <= count + 1


def test_slow_fetch_does_not_block_next_tick() -> None:
    release = threading.Event()
    started: list[int] = []
    two_in_flight = threading.Event()

    def fetch() -> list[Reading]:
        started.append(1)
        if len(started) >= 2:
            two_in_flight.set()
        release.wait(timeout=5)
        return []

    poller = Poller(fetch=fetch, interval_secs=0.02).start()
    try:
        # Second request starts while the first is still waiting
        assert two_in_flight.wait(timeout=5)
    finally:
        poller.stop()
        release.set()
        poller.stop(wait=True)


def test_state_records_update_time() -> None:
    poller = Poller(fetch=lambda: [_make_reading(temperature=70)])

    assert poller.state.updated_at is None
    before = time.time()
    state = poller.poll_once()

    assert state.updated_at is not None
    assert state.updated_at >= before


def test_session_poller_is_reused_within_a_session() -> None:
    slots: dict[str, object] = {}
    created: list[Poller] = []

    def factory() -> Poller:
        poller = Poller(fetch=lambda: [], interval_secs=0.02)
        created.append(poller)
        return poller

    try:
        first = session_poller(slots, factory)
        second = session_poller(slots, factory)

        assert first is second
        assert len(created) == 1
        assert slots[SESSION_KEY] is first
        assert first.running
    finally:
        stop_session_poller(slots)


def test_leaving_dashboard_stops_session_poller() -> None:
    slots: dict[str, object] = {}
    calls: list[int] = []

    def fetch() -> list[Reading]:
        calls.append(1)
        return []

    poller = session_poller(slots, lambda: Poller(fetch=fetch, interval_secs=0.02))
    assert poller.running

    stop_session_poller(slots)

    assert not poller.running
    assert SESSION_KEY not in slots
    count = len(calls)
    time.sleep(0.1)
    # At most one in-flight fetch may still land
    assert len(calls) <= count + 1


def test_stop_session_poller_without_poller() -> None:
    slots: dict[str, object] = {}

    stop_session_poller(slots)

    assert slots == {}


def test_returning_to_dashboard_starts_a_new_poller() -> None:
    slots: dict[str, object] = {}

    def factory() -> Poller:
        return Poller(fetch=lambda: [], interval_secs=0.02)

    first = session_poller(slots, factory)
    stop_session_poller(slots)
    second = session_poller(slots, factory)
    try:
        assert second is not first
        assert second.running
        assert not first.running
    finally:
        stop_session_poller(slots)


def test_idle_poller_stops_itself() -> None:
    poller = Poller(fetch=lambda: [], interval_secs=0.02, idle_timeout_secs=0.05).start()
    try:
        deadline = time.monotonic() + 5
        while poller.running and time.monotonic() < deadline:
            time.sleep(0.01)

        assert not poller.running
    finally:
        poller.stop()


def test_read_state_keeps_poller_alive() -> None:
    poller = Poller(fetch=lambda: [], interval_secs=0.02, idle_timeout_secs=0.2).start()
    try:
        end = time.monotonic() + 0.5
        while time.monotonic() < end:
            _ = poller.state
            time.sleep(0.02)

        assert poller.running
    finally:
        poller.stop()


def test_session_poller_restarts_an_idle_poller() -> None:
    slots: dict[str, object] = {}
    poller = Poller(fetch=lambda: [], interval_secs=0.02, idle_timeout_secs=0.05)
    slots[SESSION_KEY] = poller
    poller.start()
    deadline = time.monotonic() + 5
    while poller.running and time.monotonic() < deadline:
        time.sleep(0.01)
    assert not poller.running

    try:
        assert session_poller(slots, lambda: Poller(fetch=lambda: [])) is poller
        assert poller.running
    finally:
        stop_session_poller(slots)
