import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Channel = Literal["temperature", "humidity", "airQuality", "co2", "luminosity", "uvIndex"]

# Channel declaration order; alerts, cards and exports all follow it.
CHANNELS: Final[tuple[Channel, ...]] = (
    "temperature",
    "humidity",
    "airQuality",
    "co2",
    "luminosity",
    "uvIndex",
)


def to_float(value: Any) -> float | None:
    """Coerce a raw channel value to float; None for null, non-numeric or NaN."""
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out):
        return None
    return out


def parse_ts(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


class Reading(BaseModel):
    """One timestamped sample. Field names match the telemetry API."""

    model_config = ConfigDict(extra="ignore")

    ts: str | None = None
    temperature: float | None = None
    humidity: float | None = None
    airQuality: float | None = None
    co2: float | None = None
    luminosity: float | None = None
    uvIndex: float | None = None

    @field_validator(*CHANNELS, mode="before")
    @classmethod
    def _offline_when_not_numeric(cls, value: Any) -> float | None:
        return to_float(value)

    @field_validator("ts", mode="before")
    @classmethod
    def _ts_as_str(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @classmethod
    def empty(cls) -> "Reading":
        return cls()

    def parsed_ts(self) -> datetime | None:
        return parse_ts(self.ts)

    def value(self, key: str) -> float | None:
        if key not in CHANNELS:
            raise KeyError(key)
        return getattr(self, key)


class ThresholdSet(BaseModel):
    """Inclusive numeric limits; a reading must strictly cross one to alert."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    tempHighWarning: float = 85
    tempHighDanger: float = 95
    tempLowDanger: float = 40
    humLowDanger: float = 20
    humLowWarning: float = 30
    humHighWarning: float = 60
    humHighDanger: float = 75
    aqiUnhealthy: float = 150
    aqiVeryUnhealthy: float = 200
    aqiHazardous: float = 300
    co2Elevated: float = 800
    co2High: float = 1200
    co2Dangerous: float = 5000
    luxLow: float = 100
    uvHigh: float = 6
    uvExtreme: float = 8

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)


class AlertLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


class Alert(BaseModel):
    key: str
    level: AlertLevel
    category: str
    emoji: str = ""
    title: str
    message: str
    value_label: str | None = None


class ForecastPoint(BaseModel):
    ts: str | None
    actual: float
    predicted: float


@dataclass(frozen=True)
class SensorMeta:
    key: Channel
    label: str
    emoji: str
    unit: str
    decimals: int = 1

    def format(self, value: float | None, decimals: int | None = None) -> str:
        places = self.decimals if decimals is None else decimals
        if value is None:
            return "--"
        return f"{value:.{places}f}"

    def value_label(self, value: float) -> str:
        text = self.format(value)
        return f"{text} {self.unit}" if self.unit else text


SENSORS: Final[tuple[SensorMeta, ...]] = (
    SensorMeta("temperature", "Temperature", "🌡️", "°F"),
    SensorMeta("humidity", "Humidity", "💧", "%"),
    SensorMeta("airQuality", "Air Quality", "🌫️", "AQI", decimals=0),
    SensorMeta("co2", "CO₂", "🫁", "ppm"),
    SensorMeta("luminosity", "Luminosity", "💡", "lx", decimals=0),
    SensorMeta("uvIndex", "UV Index", "☀️", ""),
)

SENSORS_BY_KEY: Final[dict[str, SensorMeta]] = {s.key: s for s in SENSORS}
