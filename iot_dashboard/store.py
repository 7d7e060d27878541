"""Key/value backends for local preferences (threshold overrides)."""

import contextlib
import json
import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Protocol

import boto3

from .config import Settings, ThresholdBackend


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """All keys kept in one JSON object file; writes go through a temp file."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except json.JSONDecodeError:
            # Corrupt file is replaced on the next write
            data = {}
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)


class SqliteKeyValueStore:
    """SQLite-backed key/value table.

    One row per key; writes are upserts stamped with ``updated_at``.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        # Streamlit reruns may touch the store from different script threads
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        with contextlib.suppress(Exception):
            self._conn.close()

    def get(self, key: str) -> str | None:
        cur = self._conn.cursor()
        cur.execute("SELECT value FROM preferences WHERE key = ?", (key,))
        row = cur.fetchone()
        return str(row[0]) if row else None

    def set(self, key: str, value: str) -> None:
        now = int(time.time())
        self._conn.execute(
            """
            INSERT INTO preferences(key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, now),
        )
        self._conn.commit()


class DynamoDbKeyValueStore:
    """Remote store: one DynamoDB item per key, partition key ``pk``."""

    def __init__(self, table_name: str, ddb: Any | None = None) -> None:
        self.table_name = table_name
        self._table = (ddb or boto3.resource("dynamodb")).Table(table_name)

    def get(self, key: str) -> str | None:
        resp = self._table.get_item(Key={"pk": key})
        item = resp.get("Item")
        if not item or "value" not in item:
            return None
        return str(item["value"])

    def set(self, key: str, value: str) -> None:
        self._table.put_item(Item={"pk": key, "value": value, "updated_at": int(time.time())})


def make_store(settings: Settings) -> KeyValueStore:
    backend = settings.threshold_backend
    if backend == ThresholdBackend.MEMORY:
        return MemoryKeyValueStore()
    if backend == ThresholdBackend.SQLITE:
        return SqliteKeyValueStore(settings.threshold_db_path)
    if backend == ThresholdBackend.DYNAMODB:
        if not settings.threshold_table:
            raise RuntimeError("THRESHOLD_TABLE is required for the dynamodb backend")
        return DynamoDbKeyValueStore(settings.threshold_table)
    return JsonFileKeyValueStore(settings.threshold_file_path)
