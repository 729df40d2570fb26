"""
Service layer for runtime settings.

Settings are key/value/type rows in the ``settings`` table.  The type
(``string``, ``int``, ``float`` or ``bool``) tells how the stored
string is converted back.  Services read them through a
``SettingsSnapshot`` taken at request start; this module is the write
side used by the settings endpoints.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.runtime_settings import deserialize_value
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.services.audit_service import AuditTrail

logger = logging.getLogger(__name__)

SETTING_TYPES = ("string", "int", "float", "bool")


class SettingsService:
    """Service for managing runtime settings."""

    @classmethod
    async def list_settings(cls, conn: sqlite3.Connection) -> List[Dict[str, Any]]:
        rows = conn.execute("SELECT key, value, type FROM settings ORDER BY key").fetchall()
        return [{"key": row["key"], "value": deserialize_value(row["value"], row["type"]), "type": row["type"]} for row in rows]

    @classmethod
    async def get_setting(cls, conn: sqlite3.Connection, key: str) -> Optional[Dict[str, Any]]:
        row = conn.execute("SELECT key, value, type FROM settings WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return {"key": row["key"], "value": deserialize_value(row["value"], row["type"]), "type": row["type"]}

    @classmethod
    async def upsert_setting(
        cls, conn: sqlite3.Connection, key: str, value: Any, type_str: str, actor: AuthContext
    ) -> Dict[str, Any]:
        """Insert or update a setting and return it with its typed value."""
        trail = AuditTrail(conn, actor.user_id, "settings.upsert", "setting")
        try:
            serialized = cls._serialize(value, type_str)
            conn.execute(
                "INSERT INTO settings (key, value, type) VALUES (?, ?, ?)"
                " ON CONFLICT(key) DO UPDATE SET value = excluded.value, type = excluded.type",
                (key, serialized, type_str),
            )
            await trail.success({"key": key, "value": serialized, "type": type_str})
            logger.info("Setting %s updated", key)
            return {"key": key, "value": deserialize_value(serialized, type_str), "type": type_str}
        except ServiceError as exc:
            await trail.failure(exc)
            raise

    @classmethod
    async def delete_setting(cls, conn: sqlite3.Connection, key: str, actor: AuthContext) -> None:
        """Delete a setting.  Unknown keys are a not-found error."""
        trail = AuditTrail(conn, actor.user_id, "settings.delete", "setting")
        try:
            cursor = conn.execute("DELETE FROM settings WHERE key = ?", (key,))
            if cursor.rowcount == 0:
                raise ServiceError.not_found("Setting not found", {"key": key})
            await trail.success({"key": key})
        except ServiceError as exc:
            await trail.failure(exc)
            raise

    @staticmethod
    def _serialize(value: Any, type_str: str) -> str:
        if type_str not in SETTING_TYPES:
            raise ServiceError.validation(f"Unsupported setting type; allowed: {', '.join(SETTING_TYPES)}")
        try:
            if type_str == "int":
                return str(int(value))
            if type_str == "float":
                return str(float(value))
        except (TypeError, ValueError) as exc:
            raise ServiceError.validation(f"Value is not a valid {type_str}") from exc
        if type_str == "bool":
            if isinstance(value, str):
                return "1" if value.strip().lower() in {"1", "true", "yes"} else "0"
            return "1" if bool(value) else "0"
        return str(value)
