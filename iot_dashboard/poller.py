import logging
import threading
import time
from collections.abc import Callable, MutableMapping, Sequence
from dataclasses import dataclass, field, replace

from .alerts import evaluate
from .models import Alert, ForecastPoint, Reading, ThresholdSet
from .trends import forecast

FORECAST_CHANNEL = "temperature"
SESSION_KEY = "dashboard_poller"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardState:
    """Snapshot of what the dashboard shows; replaced whole on every poll."""

    latest: Reading = field(default_factory=Reading.empty)
    history: tuple[Reading, ...] = ()
    forecast: tuple[ForecastPoint, ...] = ()
    loading: bool = True
    error: str | None = None
    updated_at: float | None = None

    def alerts(self, thresholds: ThresholdSet) -> list[Alert]:
        return evaluate(self.latest, thresholds)

    def with_readings(self, readings: Sequence[Reading]) -> "DashboardState":
        now = time.time()
        if not readings:
            return DashboardState(loading=False, updated_at=now)
        return DashboardState(
            latest=readings[-1],
            history=tuple(readings),
            forecast=tuple(forecast(readings, FORECAST_CHANNEL)),
            loading=False,
            error=None,
            updated_at=now,
        )

    def with_error(self, message: str) -> "DashboardState":
        # Keep last-known-good readings
        return replace(self, loading=False, error=message, updated_at=time.time())


class Poller:
    """Runs ``fetch`` immediately and then every ``interval_secs``.

    Each tick starts its own worker thread and the timer never waits for it,
    so a slow response can overlap the next request; whichever finishes last
    sets the state. There is no retry: a failure is recorded and the next tick
    fetches again.

    With ``idle_timeout_secs`` set, the timer exits on its own once ``state``
    has not been read for that long, e.g. after the viewing tab was closed.
    """

    def __init__(
        self,
        fetch: Callable[[], Sequence[Reading]],
        interval_secs: float = 4.0,
        on_update: Callable[[DashboardState], None] | None = None,
        idle_timeout_secs: float | None = None,
    ) -> None:
        self._fetch = fetch
        self.interval_secs = max(0.01, float(interval_secs))
        self._on_update = on_update
        self.idle_timeout_secs = idle_timeout_secs
        self._last_read = time.monotonic()
        self._state = DashboardState()
        self._stop = threading.Event()
        self._timer: threading.Thread | None = None
        self._workers: list[threading.Thread] = []

    @property
    def state(self) -> DashboardState:
        self._last_read = time.monotonic()
        return self._state

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.is_alive()

    def poll_once(self) -> DashboardState:
        """Fetch synchronously and publish the resulting state."""
        try:
            readings = self._fetch()
        except Exception as exc:
            logger.warning("Telemetry poll failed: %s", exc)
            new_state = self._state.with_error(str(exc))
        else:
            new_state = self._state.with_readings(readings)
            logger.debug("Telemetry poll returned %s readings", len(readings))
        self._state = new_state
        if self._on_update is not None:
            try:
                self._on_update(new_state)
            except Exception:
                # Callback errors must not affect polling
                logger.debug("on_update callback error", exc_info=True)
        return new_state

    def _spawn(self) -> None:
        worker = threading.Thread(target=self.poll_once, name="telemetry-poll", daemon=True)
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(worker)
        worker.start()

    def _idle(self) -> bool:
        if self.idle_timeout_secs is None:
            return False
        return time.monotonic() - self._last_read > self.idle_timeout_secs

    def _run(self) -> None:
        self._spawn()
        while not self._stop.wait(self.interval_secs):
            if self._idle():
                logger.info("Poller idle for %ss, stopping", self.idle_timeout_secs)
                return
            self._spawn()

    def start(self) -> "Poller":
        if self.running:
            return self
        self._stop.clear()
        self._last_read = time.monotonic()
        logger.info("Poller starting: interval=%ss", self.interval_secs)
        self._timer = threading.Thread(target=self._run, name="telemetry-timer", daemon=True)
        self._timer.start()
        return self

    def stop(self, wait: bool = False) -> None:
        """Cancel the interval. In-flight fetches finish on their own unless ``wait``."""
        self._stop.set()
        if self._timer is not None:
            self._timer.join()
            self._timer = None
        if wait:
            for worker in self._workers:
                worker.join()
            self._workers = []

    def __enter__(self) -> "Poller":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def session_poller(
    slots: MutableMapping[str, object],
    factory: Callable[[], Poller],
    key: str = SESSION_KEY,
) -> Poller:
    """Return the poller kept in ``slots``, creating and starting one if needed.

    ``slots`` is usually ``st.session_state``, so each browser session owns
    at most one running poller.
    """
    poller = slots.get(key)
    if not isinstance(poller, Poller):
        poller = factory()
        slots[key] = poller
    return poller.start()


def stop_session_poller(slots: MutableMapping[str, object], key: str = SESSION_KEY) -> None:
    """Stop and forget the poller kept in ``slots``, if any."""
    poller = slots.pop(key, None)
    if isinstance(poller, Poller):
        poller.stop()
        logger.info("Dashboard poller stopped")
