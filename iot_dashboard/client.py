import logging
from datetime import UTC, datetime
from typing import Any

import requests
from pydantic import ValidationError

from .models import Reading

logger = logging.getLogger(__name__)

_EPOCH_MIN = datetime.min.replace(tzinfo=UTC)


class FetchError(Exception):
    """Telemetry request failed: non-2xx status or transport error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def normalize_readings(payload: Any) -> list[Reading]:
    """Coerce an API payload into readings sorted oldest first.

    A non-list payload yields no readings; entries that are not objects are
    dropped. Unparsable timestamps sort first, ties keep arrival order.
    """
    if not isinstance(payload, list):
        return []
    readings: list[Reading] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            readings.append(Reading.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed reading: %r", item)
    readings.sort(key=lambda r: r.parsed_ts() or _EPOCH_MIN)
    return readings


class TelemetryClient:
    """Reads recent readings for one device from the telemetry endpoint.

    No timeout is applied unless one is given, matching the transport default.
    """

    def __init__(self, base_url: str, timeout: float | None = None, session: requests.Session | None = None) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session

    def _get(self, params: dict[str, Any]) -> requests.Response:
        if self._session is not None:
            return self._session.get(self.base_url, params=params, timeout=self.timeout)
        return requests.get(self.base_url, params=params, timeout=self.timeout)

    def fetch(self, device_id: str, limit: int) -> list[Reading]:
        params = {"deviceId": device_id, "limit": int(limit)}
        try:
            resp = self._get(params)
        except requests.RequestException as exc:
            raise FetchError(str(exc)) from exc

        if not (200 <= resp.status_code < 300):
            raise FetchError(f"API error: {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from telemetry API: {exc}", status_code=resp.status_code) from exc

        readings = normalize_readings(payload)
        logger.debug("Fetched %s readings for %s", len(readings), device_id)
        return readings
