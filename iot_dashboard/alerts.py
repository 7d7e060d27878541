"""Threshold alerting for the latest reading.

Each channel has a severity ladder checked from the most severe boundary down;
the first boundary strictly crossed produces the channel's only alert.
"""

import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Final

from .models import CHANNELS, SENSORS_BY_KEY, Alert, AlertLevel, Reading, ThresholdSet, to_float


@dataclass(frozen=True)
class AlertRule:
    key: str
    channel: str
    level: AlertLevel
    threshold: str  # ThresholdSet field name
    compare: Callable[[float, float], bool]
    title: str
    message: str


_ABOVE = operator.gt
_BELOW = operator.lt

_CATEGORY: Final[dict[str, str]] = {
    "temperature": "Temperature",
    "humidity": "Humidity",
    "airQuality": "Air Quality",
    "co2": "CO₂",
    "luminosity": "Luminosity",
    "uvIndex": "UV Index",
}

RULES: Final[tuple[AlertRule, ...]] = (
    # Temperature
    AlertRule("temp-heat", "temperature", AlertLevel.DANGER, "tempHighDanger", _ABOVE,
              "Heat wave detected", "Temperature is dangerously high."),
    AlertRule("temp-low", "temperature", AlertLevel.DANGER, "tempLowDanger", _BELOW,
              "Low temperature", "Temperature is too low."),
    AlertRule("temp-high", "temperature", AlertLevel.WARNING, "tempHighWarning", _ABOVE,
              "High temperature", "Temperature is above normal."),
    # Humidity
    AlertRule("hum-very-low", "humidity", AlertLevel.DANGER, "humLowDanger", _BELOW,
              "Very low humidity", "Air is extremely dry."),
    AlertRule("hum-high", "humidity", AlertLevel.DANGER, "humHighDanger", _ABOVE,
              "High humidity", "Humidity may cause mold."),
    AlertRule("hum-low", "humidity", AlertLevel.WARNING, "humLowWarning", _BELOW,
              "Low humidity", "Air is dry."),
    AlertRule("hum-elevated", "humidity", AlertLevel.WARNING, "humHighWarning", _ABOVE,
              "Elevated humidity", "Humidity is above the comfortable range."),
    # Air quality
    AlertRule("aqi-hazardous", "airQuality", AlertLevel.DANGER, "aqiHazardous", _ABOVE,
              "Hazardous air quality", "Extremely poor air."),
    AlertRule("aqi-very-unhealthy", "airQuality", AlertLevel.DANGER, "aqiVeryUnhealthy", _ABOVE,
              "Very unhealthy air quality", "Avoid exposure."),
    AlertRule("aqi-unhealthy", "airQuality", AlertLevel.WARNING, "aqiUnhealthy", _ABOVE,
              "Unhealthy air quality", "Air quality may affect health."),
    # CO2
    AlertRule("co2-danger", "co2", AlertLevel.DANGER, "co2Dangerous", _ABOVE,
              "Dangerous CO₂ level", "Ventilate immediately."),
    AlertRule("co2-high", "co2", AlertLevel.WARNING, "co2High", _ABOVE,
              "High CO₂ level", "Air is stuffy."),
    AlertRule("co2-elevated", "co2", AlertLevel.INFO, "co2Elevated", _ABOVE,
              "Elevated CO₂ level", "Consider opening a window."),
    # Light
    AlertRule("lux-low", "luminosity", AlertLevel.INFO, "luxLow", _BELOW,
              "Low light level", "Environment is dim."),
    # UV
    AlertRule("uv-extreme", "uvIndex", AlertLevel.DANGER, "uvExtreme", _ABOVE,
              "Extreme UV", "Avoid sun exposure."),
    AlertRule("uv-high", "uvIndex", AlertLevel.WARNING, "uvHigh", _ABOVE,
              "High UV", "Wear sun protection."),
)


def _rules_for(channel: str) -> list[AlertRule]:
    return [r for r in RULES if r.channel == channel]


def _channel_value(latest: Reading | Mapping[str, Any], channel: str) -> float | None:
    if isinstance(latest, Reading):
        return latest.value(channel)
    return to_float(latest.get(channel))


def _make_alert(rule: AlertRule, value: float) -> Alert:
    meta = SENSORS_BY_KEY[rule.channel]
    return Alert(
        key=rule.key,
        level=rule.level,
        category=_CATEGORY[rule.channel],
        emoji=meta.emoji,
        title=rule.title,
        message=rule.message,
        value_label=meta.value_label(value),
    )


def evaluate(latest: Reading | Mapping[str, Any] | None, thresholds: ThresholdSet | None = None) -> list[Alert]:
    """Return the active alerts for ``latest``, at most one per channel.

    Channels that are null or non-numeric are skipped. Alerts come back in
    channel declaration order.
    """
    if latest is None:
        return []
    limits = thresholds if thresholds is not None else ThresholdSet()

    alerts: list[Alert] = []
    for channel in CHANNELS:
        value = _channel_value(latest, channel)
        if value is None:
            continue
        for rule in _rules_for(channel):
            if rule.compare(value, getattr(limits, rule.threshold)):
                alerts.append(_make_alert(rule, value))
                break
    return alerts
