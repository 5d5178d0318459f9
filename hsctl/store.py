"""A small key-value table and the JSON column encoding used by the database."""

from __future__ import annotations

import ipaddress
import json
import sqlite3
from typing import Any, Union

DB_VERSION = "1"

_PING_TIMEOUT = 1.0


class ValueNotFoundError(LookupError):
    """Raised when a key is not present in the key-value table."""

    def __init__(self, key: str) -> None:
        super().__init__("not found")
        self.key = key


class KeyValueStore:
    """A key-value table kept in an SQLite database.

    Opening the store creates the table when needed and records the
    schema version under ``db_version``.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self._connection = sqlite3.connect(path, timeout=_PING_TIMEOUT)
        self._connection.execute("PRAGMA foreign_keys=ON")
        with self._connection:
            self._connection.execute(
                "CREATE TABLE IF NOT EXISTS kvs (key TEXT, value TEXT)"
            )
        self.set_value("db_version", DB_VERSION)

    def get_value(self, key: str) -> str:
        """Return the value stored for ``key``."""
        row = self._connection.execute(
            "SELECT value FROM kvs WHERE key = ? LIMIT 1", (key,)
        ).fetchone()
        if row is None:
            raise ValueNotFoundError(key)
        return row[0]

    def set_value(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any earlier value."""
        try:
            self.get_value(key)
        except ValueNotFoundError:
            exists = False
        else:
            exists = True

        with self._connection:
            if exists:
                self._connection.execute(
                    "UPDATE kvs SET value = ? WHERE key = ?", (value, key)
                )
            else:
                try:
                    self._connection.execute(
                        "INSERT INTO kvs (key, value) VALUES (?, ?)", (key, value)
                    )
                except sqlite3.Error as exc:
                    raise RuntimeError(
                        f"failed to create key value pair in the database: {exc}"
                    ) from exc

    def ping(self) -> None:
        """Check that the database still answers queries."""
        self._connection.execute("SELECT 1").fetchone()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def decode_json_column(value: Union[str, bytes, bytearray]) -> Any:
    """Decode a JSON-encoded column value read from the database."""
    if isinstance(value, (bytes, bytearray)):
        return json.loads(bytes(value).decode("utf-8"))
    if isinstance(value, str):
        return json.loads(value)
    raise TypeError(f"unexpected data type {type(value).__name__}")


def _json_default(value: Any) -> str:
    if isinstance(
        value,
        (
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
        ),
    ):
        return str(value)
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


def encode_json_column(value: Any) -> str:
    """Encode a value as compact JSON for storage in a column."""
    return json.dumps(value, separators=(",", ":"), default=_json_default)