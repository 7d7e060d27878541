import os
from enum import StrEnum
from typing import Final

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class LogLevel(StrEnum):
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"


class ThresholdBackend(StrEnum):
    MEMORY = "memory"
    FILE = "file"
    SQLITE = "sqlite"
    DYNAMODB = "dynamodb"


class Settings(BaseModel):
    telemetry_url: str = Field(validation_alias="TELEMETRY_URL")
    device_id: str = Field(default="Rpi_grp2", validation_alias="DEVICE_ID")

    dashboard_limit: int = Field(default=30, gt=0, validation_alias="DASHBOARD_LIMIT")
    analytics_limit: int = Field(default=200, gt=0, validation_alias="ANALYTICS_LIMIT")
    poll_interval_ms: int = Field(default=4000, gt=0, validation_alias="POLL_INTERVAL_MS")
    # None keeps the transport default (requests waits indefinitely)
    request_timeout_secs: float | None = Field(default=None, validation_alias="REQUEST_TIMEOUT_SECS")

    log_level: LogLevel = Field(default=LogLevel.INFO, validation_alias="LOG_LEVEL")

    # Threshold preference persistence
    threshold_backend: ThresholdBackend = Field(default=ThresholdBackend.FILE, validation_alias="THRESHOLD_BACKEND")
    threshold_file_path: str = Field(default="./thresholds.json", validation_alias="THRESHOLD_FILE_PATH")
    threshold_db_path: str = Field(default="./preferences.db", validation_alias="THRESHOLD_DB_PATH")
    threshold_table: str | None = Field(default=None, validation_alias="THRESHOLD_TABLE")

    @property
    def poll_interval_secs(self) -> float:
        return self.poll_interval_ms / 1000.0


ENV_KEYS: Final[tuple[str, ...]] = (
    "TELEMETRY_URL",
    "DEVICE_ID",
    "DASHBOARD_LIMIT",
    "ANALYTICS_LIMIT",
    "POLL_INTERVAL_MS",
    "REQUEST_TIMEOUT_SECS",
    "LOG_LEVEL",
    "THRESHOLD_BACKEND",
    "THRESHOLD_FILE_PATH",
    "THRESHOLD_DB_PATH",
    "THRESHOLD_TABLE",
)


def load_settings() -> Settings:
    # Load .env if present (does nothing if file missing)
    load_dotenv()
    data: dict[str, str] = {}
    for key in ENV_KEYS:
        if key in os.environ:
            data[key] = os.environ[key]

    # Accept lower-case level and backend names
    for key in ("LOG_LEVEL",):
        if key in data:
            data[key] = data[key].upper()
    if "THRESHOLD_BACKEND" in data:
        data["THRESHOLD_BACKEND"] = data["THRESHOLD_BACKEND"].lower()

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        missing = [k for k in ("TELEMETRY_URL",) if k not in data]
        if missing:
            raise RuntimeError(f"Missing required configuration: {', '.join(missing)}") from e
        raise

    if settings.threshold_backend == ThresholdBackend.DYNAMODB and not settings.threshold_table:
        raise RuntimeError("Missing required configuration: THRESHOLD_TABLE")
    return settings
