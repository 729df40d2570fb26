"""
Audit service for recording and querying back-office actions.

``AuditService`` writes records to the ``audit_logs`` table and reads
them back with filters and pagination.  Business services do not call
it directly; they open an ``AuditTrail`` for the operation they run and
report at fixed points: ``entry`` when the request is accepted,
``change`` once per category of change (added, removed, changed),
``success`` after commit and ``failure`` after rollback.

Audit rows are written on the caller's connection.  Rows written while
a transaction is open are rolled back together with it, so a
persisted ``change`` record always describes a committed change.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        conn: sqlite3.Connection,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        conn : sqlite3.Connection
            Connection of the running request.  If a transaction is
            open on it, the record becomes part of that transaction.
        user_id : Optional[int]
            ID of the user performing the action.
        action : str
            Dotted action name, e.g. ``groups.add_users.success``.
        object_type : str
            Type of object affected (``group``, ``product``, ...).
        object_id : Optional[int]
            Primary key of the affected object, if applicable.
        details : Optional[dict]
            Additional structured data about the action, stored as JSON.
        """
        details_json = json.dumps(details, default=str) if details else None
        conn.execute(
            """
            INSERT INTO audit_logs (user_id, action, object_type, object_id, details)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, action, object_type, object_id, details_json),
        )

    @classmethod
    async def list_logs(
        cls,
        conn: sqlite3.Connection,
        user_id: Optional[int] = None,
        object_type: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit records with optional filters and pagination.

        ``action`` matches either the full action name or its prefix
        (``products.pairs`` matches ``products.pairs.update.success``).
        Date filters accept ISO date strings and apply to the
        ``timestamp`` column.  Sorting is by ``id`` descending.
        """
        where_clauses: List[str] = []
        params: List[Any] = []
        if user_id is not None:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if object_type:
            where_clauses.append("object_type = ?")
            params.append(object_type)
        if action:
            where_clauses.append("(action = ? OR action LIKE ?)")
            params.extend([action, f"{action}.%"])
        if start_date:
            where_clauses.append("timestamp >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("timestamp <= ?")
            params.append(end_date)
        query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        rows = conn.execute(query, tuple(params)).fetchall()
        logs = []
        for row in rows:
            details_data = None
            if row["details"]:
                try:
                    details_data = json.loads(row["details"])
                except json.JSONDecodeError:
                    details_data = row["details"]
            logs.append(
                {
                    "id": row["id"],
                    "user_id": row["user_id"],
                    "action": row["action"],
                    "object_type": row["object_type"],
                    "object_id": row["object_id"],
                    "timestamp": row["timestamp"],
                    "details": details_data,
                }
            )
        return logs


class AuditTrail:
    """Audit sink bound to one service operation."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        user_id: Optional[int],
        operation: str,
        object_type: str,
        object_id: Optional[int] = None,
    ) -> None:
        self.conn = conn
        self.user_id = user_id
        self.operation = operation
        self.object_type = object_type
        self.object_id = object_id

    async def _emit(self, stage: str, details: Optional[dict], level: int = logging.INFO) -> None:
        action = f"{self.operation}.{stage}"
        logger.log(level, "%s %s=%s by user %s: %s", action, self.object_type, self.object_id, self.user_id, details or {})
        await AuditService.log(self.conn, self.user_id, action, self.object_type, self.object_id, details)

    async def entry(self, details: Optional[dict] = None) -> None:
        await self._emit("requested", details, logging.DEBUG)

    async def change(self, category: str, details: Optional[dict] = None) -> None:
        await self._emit(category, details)

    async def success(self, details: Optional[dict] = None) -> None:
        await self._emit("success", details)

    async def failure(self, error: Exception) -> None:
        details: Dict[str, Any] = {"error": getattr(error, "message", None) or str(error)}
        code = getattr(error, "code", None)
        if code is not None:
            details["code"] = getattr(code, "value", code)
        try:
            await self._emit("error", details, logging.WARNING)
        except sqlite3.Error:
            # The failure record is best effort; the original error must
            # still reach the caller.
            logger.exception("Could not record failure of %s", self.operation)
