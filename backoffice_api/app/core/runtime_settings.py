"""
Read-only snapshot of runtime settings.

Administrators change runtime switches through the ``settings``
endpoints (``SettingsService``).  Services never read the table
directly; each request receives a ``SettingsSnapshot`` built once by
the ``get_settings_snapshot`` dependency and passed explicitly to the
service call.
"""

import sqlite3
from types import MappingProxyType
from typing import Any, Mapping, Optional

from fastapi import Depends

from .db import get_db


# Keys consumed by services.
ADD_ONLY_ACTIVE_USERS_TO_GROUPS = "add.only.active.users.to.groups"


def deserialize_value(value: str, type_str: str) -> Any:
    """Deserialize a stored string back to a Python value based on type."""
    if type_str == "int":
        return int(value)
    if type_str == "float":
        return float(value)
    if type_str == "bool":
        return value not in {"0", "false", "False", ""}
    return value


class SettingsSnapshot:
    """Immutable view over the ``settings`` table at request start."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values = MappingProxyType(dict(values or {}))

    @classmethod
    def load(cls, conn: sqlite3.Connection) -> "SettingsSnapshot":
        rows = conn.execute("SELECT key, value, type FROM settings").fetchall()
        return cls({row["key"]: deserialize_value(row["value"], row["type"]) for row in rows})

    @property
    def values(self) -> Mapping[str, Any]:
        return self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes"}
        return bool(value)


def get_settings_snapshot(conn: sqlite3.Connection = Depends(get_db)) -> SettingsSnapshot:
    """FastAPI dependency producing the per-request snapshot."""
    return SettingsSnapshot.load(conn)
