import logging
import threading

from .client import TelemetryClient
from .config import load_settings
from .poller import DashboardState, Poller
from .store import make_store
from .thresholds import ThresholdStore


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _log_alerts(state: DashboardState, thresholds_store: ThresholdStore) -> None:
    if state.error:
        logging.warning("Poll error: %s", state.error)
        return
    # Reload each time so edits made from the dashboard apply here too
    alerts = state.alerts(thresholds_store.load())
    if not alerts:
        logging.info("All readings normal (%s readings)", len(state.history))
        return
    for alert in alerts:
        log = logging.warning if alert.level != "info" else logging.info
        log("[%s] %s: %s (%s)", alert.level.upper(), alert.title, alert.message, alert.value_label)


def main() -> None:
    settings = load_settings()
    _setup_logging(settings.log_level)

    client = TelemetryClient(settings.telemetry_url, timeout=settings.request_timeout_secs)
    thresholds_store = ThresholdStore(make_store(settings))

    logging.info("Watching device %s at %s", settings.device_id, settings.telemetry_url)
    poller = Poller(
        fetch=lambda: client.fetch(settings.device_id, settings.dashboard_limit),
        interval_secs=settings.poll_interval_secs,
        on_update=lambda state: _log_alerts(state, thresholds_store),
    )
    try:
        with poller:
            threading.Event().wait()
    except KeyboardInterrupt:
        logging.info("Stopping watcher")


if __name__ == "__main__":
    main()
