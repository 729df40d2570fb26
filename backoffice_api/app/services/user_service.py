"""
Business logic for users.

Provides user search for item pickers, the paged user list, account
creation, the user editor (fetch, update), login and batch deletion.
Passwords are stored as PBKDF2 hashes produced by
``core.security.hash_password``.
"""

import logging
import math
import sqlite3
from typing import Any, Dict, List, Optional

from backoffice_api.app.core.config import settings
from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext, create_access_token, hash_password, verify_password
from backoffice_api.app.core.sql import OMIT, UpdateField, build_update
from backoffice_api.app.queries import org as org_queries
from backoffice_api.app.schemas.user import UserCreate, UserUpdate
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, require_ids, unique_ids

logger = logging.getLogger(__name__)

ACCOUNT_STATUSES = ("active", "disabled", "blocked", "requires_user_action")


def _display_name(row: sqlite3.Row) -> str:
    name = " ".join(part for part in (row["first_name"], row["last_name"]) if part)
    return name or row["username"]


def _search_condition(query: Optional[str]) -> tuple:
    """Return the WHERE condition and its parameters for ``query``."""
    if query is None or not query.strip():
        return "1 = 1", ()
    pattern = f"%{query.strip()}%"
    return org_queries.USER_SEARCH_CONDITION, (pattern, pattern, pattern, pattern)


def clamp_limit(limit: Optional[int]) -> int:
    """Clamp a requested page size into ``[1, search_max_limit]``."""
    if limit is None:
        return settings.search_default_limit
    return max(1, min(settings.search_max_limit, limit))


class UserService:
    """Service for searching, listing, creating and deleting users."""

    @classmethod
    async def search_users(cls, conn: sqlite3.Connection, query: Optional[str], limit: Optional[int] = None) -> Dict[str, Any]:
        """Case-insensitive substring search over username, email and names.

        ``total`` is the number of matching users before the limit is
        applied; at most ``limit`` items are returned.
        """
        limit = clamp_limit(limit)
        condition, params = _search_condition(query)
        total = conn.execute(org_queries.COUNT_USERS_MATCHING.format(condition=condition), params).fetchone()["total"]
        rows = conn.execute(org_queries.SEARCH_USERS.format(condition=condition), (*params, limit)).fetchall()
        items = [
            {"id": row["id"], "name": _display_name(row), "username": row["username"], "uuid": row["uuid"]}
            for row in rows
        ]
        logger.debug("User search %r returned %s of %s", query, len(items), total)
        return {"success": True, "items": items, "total": total}

    @classmethod
    async def list_users(
        cls,
        conn: sqlite3.Connection,
        page: int = 1,
        items_per_page: int = 20,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        condition, params = _search_condition(search)
        total = conn.execute(org_queries.COUNT_USERS_MATCHING.format(condition=condition), params).fetchone()["total"]
        rows = conn.execute(
            org_queries.SELECT_USERS_PAGE.format(condition=condition),
            (*params, items_per_page, (page - 1) * items_per_page),
        ).fetchall()
        users = [
            {
                "id": row["id"],
                "uuid": row["uuid"],
                "username": row["username"],
                "email": row["email"],
                "name": _display_name(row),
                "accountStatus": row["account_status"],
                "isStaff": bool(row["is_staff"]),
                "roleId": row["role_id"],
                "createdAt": row["created_at"],
            }
            for row in rows
        ]
        return {
            "success": True,
            "users": users,
            "pagination": {
                "totalItems": total,
                "totalPages": math.ceil(total / items_per_page) if total else 0,
                "currentPage": page,
                "itemsPerPage": items_per_page,
            },
        }

    @classmethod
    async def create_user(cls, conn: sqlite3.Connection, data: UserCreate, actor: AuthContext) -> Dict[str, Any]:
        """Create a user account.  Username and email are unique."""
        trail = AuditTrail(conn, actor.user_id, "users.create", "user")
        try:
            if actor.is_own_scope:
                raise ServiceError.permission("Access denied: creating users requires full organization access")
            with transaction(conn) as cursor:
                if cursor.execute("SELECT 1 FROM users WHERE username = ?", (data.username,)).fetchone():
                    raise ServiceError.unique("Username already exists")
                if data.email and cursor.execute("SELECT 1 FROM users WHERE email = ?", (data.email,)).fetchone():
                    raise ServiceError.unique("Email already exists")
                cursor.execute(
                    "INSERT INTO users (username, email, first_name, last_name, password, role_id,"
                    " is_staff, account_status, created_by) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        data.username,
                        data.email,
                        data.first_name,
                        data.last_name,
                        hash_password(data.password) if data.password else None,
                        data.role_id,
                        int(data.is_staff),
                        data.account_status,
                        actor.user_id,
                    ),
                )
                user_id = cursor.lastrowid
                trail.object_id = user_id
                await trail.change("added", {"username": data.username})
            await trail.success()
            row = conn.execute(org_queries.SELECT_USER_BY_ID, (user_id,)).fetchone()
            return {"success": True, "message": "User created successfully", "data": {"id": user_id, "uuid": row["uuid"]}}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except sqlite3.IntegrityError as exc:
            error = ServiceError.unique("User violates a uniqueness constraint", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def fetch_user(cls, conn: sqlite3.Connection, user_id: int) -> Dict[str, Any]:
        """Return a user with the groups they are an active member of."""
        row = conn.execute(org_queries.SELECT_USER_DETAILS, (user_id,)).fetchone()
        if not row:
            raise ServiceError.not_found("User not found", {"userId": user_id})
        groups = [dict(group) for group in conn.execute(org_queries.SELECT_USER_GROUPS, (user_id,)).fetchall()]
        return {
            "success": True,
            "data": {
                "id": row["id"],
                "uuid": row["uuid"],
                "username": row["username"],
                "email": row["email"],
                "firstName": row["first_name"],
                "lastName": row["last_name"],
                "name": _display_name(row),
                "accountStatus": row["account_status"],
                "isStaff": bool(row["is_staff"]),
                "roleId": row["role_id"],
                "createdBy": row["created_by"],
                "createdAt": row["created_at"],
                "updatedAt": row["updated_at"],
                "groups": groups,
            },
        }

    @classmethod
    async def update_user(
        cls, conn: sqlite3.Connection, user_id: int, data: UserUpdate, actor: AuthContext
    ) -> Dict[str, Any]:
        """Apply a partial update to a user account.

        Only fields present in the body are considered, and of those only
        the ones whose value differs are written.  The audit record keeps
        the old and new value of each changed field.  A body that changes
        nothing succeeds without a write.
        """
        trail = AuditTrail(conn, actor.user_id, "users.update", "user", user_id)
        try:
            if actor.is_own_scope:
                raise ServiceError.permission("Access denied: editing users requires full organization access")
            current = conn.execute(org_queries.SELECT_USER_DETAILS, (user_id,)).fetchone()
            if not current:
                raise ServiceError.not_found("User not found", {"userId": user_id})

            provided = data.model_fields_set
            if "account_status" in provided and data.account_status not in ACCOUNT_STATUSES:
                raise ServiceError.validation(
                    f"Invalid account_status. Must be one of: {', '.join(ACCOUNT_STATUSES)}"
                )
            username = data.username.strip() if "username" in provided and data.username is not None else OMIT
            if username is not OMIT and conn.execute(org_queries.USERNAME_TAKEN, (username, user_id, user_id)).fetchone():
                raise ServiceError.unique("Username is already taken")
            email = (data.email.strip() or None) if "email" in provided and data.email is not None else OMIT
            if email and conn.execute(org_queries.EMAIL_TAKEN, (email, user_id, user_id)).fetchone():
                raise ServiceError.unique("Email is already registered")

            candidates = {
                "username": username,
                "email": email,
                "first_name": data.first_name if "first_name" in provided else OMIT,
                "last_name": data.last_name if "last_name" in provided else OMIT,
                "role_id": data.role_id if "role_id" in provided and data.role_id is not None else OMIT,
                "is_staff": int(data.is_staff) if "is_staff" in provided and data.is_staff is not None else OMIT,
                "account_status": data.account_status if "account_status" in provided else OMIT,
            }
            changes = {
                column: {"old": current[column], "new": value}
                for column, value in candidates.items()
                if value is not OMIT and value != current[column]
            }
            if not changes:
                await trail.success({"changes": {}})
                return {"success": True, "message": "No changes detected"}

            fields = [UpdateField(column, change["new"]) for column, change in changes.items()]
            fields.append(UpdateField("updated_at", expression="CURRENT_TIMESTAMP"))
            with transaction(conn) as cursor:
                sql, params = build_update("users", fields, [("id", user_id)])
                cursor.execute(sql, params)
                await trail.change("changed", {"changes": changes})
            await trail.success({"fields": list(changes)})
            logger.info("User %s updated by %s: %s", user_id, actor.user_id, ", ".join(changes))
            return {"success": True, "message": "User data updated successfully"}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update user %s", user_id)
            error = ServiceError.internal("Failed to update user data", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def authenticate(cls, conn: sqlite3.Connection, username: str, password: str) -> Dict[str, Any]:
        """Check credentials and issue a bearer token."""
        row = conn.execute(org_queries.SELECT_USER_BY_USERNAME, (username,)).fetchone()
        if not row or not verify_password(password, row["password"]):
            logger.warning("Failed login for %s", username)
            raise ServiceError.authentication("Invalid credentials")
        if row["account_status"] != "active":
            raise ServiceError.authentication("User account is not active")
        token = create_access_token({"sub": row["username"]})
        return {"access_token": token, "token_type": "bearer"}

    @classmethod
    async def delete_users(cls, conn: sqlite3.Connection, user_ids: List[int], actor: AuthContext) -> Dict[str, Any]:
        """Delete users in one batch, reporting unknown ids per item.

        The caller's own account is never deleted.
        """
        trail = AuditTrail(conn, actor.user_id, "users.delete", "user")
        try:
            if actor.is_own_scope:
                raise ServiceError.permission("Access denied: deleting users requires full organization access")
            requested = unique_ids(user_ids)
            require_ids(requested, "At least one user ID is required")
            check_batch_size(requested, "User IDs")

            deleted: List[Dict[str, Any]] = []
            errors: List[Dict[str, Any]] = []
            with transaction(conn) as cursor:
                for user_id in requested:
                    if user_id == actor.user_id:
                        errors.append({"id": user_id, "error": "You cannot delete your own account"})
                        continue
                    row = cursor.execute(org_queries.SELECT_USER_BY_ID, (user_id,)).fetchone()
                    if not row:
                        errors.append({"id": user_id, "error": "User not found or already deleted"})
                        continue
                    cursor.execute(org_queries.DELETE_USER, (user_id,))
                    deleted.append({"id": user_id, "username": row["username"]})
                if deleted:
                    await trail.change("removed", {"users": deleted})
            await trail.success({"totalDeleted": len(deleted), "totalErrors": len(errors)})
            return {
                "success": True,
                "message": f"Deleted {len(deleted)} of {len(requested)} user(s)",
                "data": {
                    "deletedUsers": deleted,
                    "errors": errors,
                    "totalRequested": len(requested),
                    "totalDeleted": len(deleted),
                    "totalErrors": len(errors),
                },
            }
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to delete users")
            error = ServiceError.internal("Failed to delete users", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
