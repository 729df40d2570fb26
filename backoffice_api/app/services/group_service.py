"""
Service layer for groups.

Covers the paged group list, the group editor (create, fetch, update),
ownership transfer and batch deletion.
Membership changes live in ``membership_service``.
"""

import logging
import math
import re
import sqlite3
from typing import Any, Dict, List, Optional

from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import OMIT, UpdateField, build_update
from backoffice_api.app.queries import org as org_queries
from backoffice_api.app.schemas.group import GroupCreate, GroupUpdate
from backoffice_api.app.services.access import can_access_group
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, require_ids, unique_ids

logger = logging.getLogger(__name__)

GROUP_STATUSES = ("active", "disabled", "archived")
GROUP_NAME_RE = re.compile(r"^[A-Za-z0-9-]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_name(name: str) -> None:
    if not GROUP_NAME_RE.match(name):
        raise ServiceError.validation("Group name can only contain latin letters, numbers and hyphens")


def _check_status(status: str) -> None:
    if status not in GROUP_STATUSES:
        raise ServiceError.validation(f"Invalid group status; allowed: {', '.join(GROUP_STATUSES)}")


def _check_email(email: Optional[str]) -> None:
    if email and not EMAIL_RE.match(email):
        raise ServiceError.validation("Invalid email format")


def _check_owner(conn: sqlite3.Connection, owner_id: int) -> None:
    if not conn.execute(org_queries.SELECT_USER_BY_ID, (owner_id,)).fetchone():
        raise ServiceError.validation("Group owner does not exist", {"ownerId": owner_id})


class GroupService:
    """Service for listing, editing, re-owning and deleting groups."""

    @classmethod
    async def list_groups(
        cls,
        conn: sqlite3.Connection,
        actor: AuthContext,
        page: int = 1,
        items_per_page: int = 20,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Page through groups.  Callers with scope ``own`` see only groups they own."""
        pattern = f"%{search.strip()}%" if search and search.strip() else None
        owner_filter = actor.user_id if actor.is_own_scope else None
        filters = (pattern, pattern, owner_filter, owner_filter)
        total = conn.execute(org_queries.COUNT_GROUPS, filters).fetchone()["total"]
        rows = conn.execute(
            org_queries.SELECT_GROUPS_PAGE,
            (*filters, items_per_page, (page - 1) * items_per_page),
        ).fetchall()
        groups = [
            {
                "id": row["id"],
                "name": row["name"],
                "status": row["status"],
                "isSystem": bool(row["is_system"]),
                "ownerId": row["owner_id"],
                "owner": row["owner_username"],
                "description": row["description"],
                "memberCount": row["member_count"],
                "createdAt": row["created_at"],
            }
            for row in rows
        ]
        return {
            "success": True,
            "groups": groups,
            "pagination": {
                "totalItems": total,
                "totalPages": math.ceil(total / items_per_page) if total else 0,
                "currentPage": page,
                "itemsPerPage": items_per_page,
            },
        }

    @classmethod
    async def create_group(cls, conn: sqlite3.Connection, data: GroupCreate, actor: AuthContext) -> Dict[str, Any]:
        """Create a group.  Callers with scope ``own`` always own what they create."""
        trail = AuditTrail(conn, actor.user_id, "groups.create", "group")
        try:
            name = data.name.strip()
            _check_name(name)
            _check_status(data.status)
            _check_email(data.email)
            owner_id = actor.user_id if actor.is_own_scope or data.owner_id is None else data.owner_id
            _check_owner(conn, owner_id)
            if conn.execute(org_queries.GROUP_NAME_TAKEN, (name, None, None)).fetchone():
                raise ServiceError.unique("Group name is already taken")

            with transaction(conn) as cursor:
                cursor.execute(
                    org_queries.INSERT_GROUP,
                    (name, data.status, owner_id, data.description, data.email, actor.user_id),
                )
                group_id = cursor.lastrowid
                trail.object_id = group_id
                await trail.change("added", {"name": name, "ownerId": owner_id})
            await trail.success()
            logger.info("Group %s (%s) created by %s", group_id, name, actor.user_id)
            return {"success": True, "message": "Group created successfully", "data": {"id": group_id}}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to create group")
            error = ServiceError.internal("Failed to create group", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def fetch_group(cls, conn: sqlite3.Connection, group_id: int, actor: AuthContext) -> Dict[str, Any]:
        row = conn.execute(org_queries.SELECT_GROUP_DETAILS, (group_id,)).fetchone()
        if not row:
            raise ServiceError.not_found("Group not found", {"groupId": group_id})
        if not can_access_group(conn, actor, group_id):
            raise ServiceError.permission("Access denied: you can only view your own groups")
        return {
            "success": True,
            "message": "Group data retrieved successfully",
            "data": {
                "id": row["id"],
                "name": row["name"],
                "status": row["status"],
                "isSystem": bool(row["is_system"]),
                "ownerId": row["owner_id"],
                "owner": row["owner_username"],
                "description": row["description"],
                "email": row["email"],
                "memberCount": row["member_count"],
                "createdBy": row["created_by"],
                "createdAt": row["created_at"],
                "modifiedBy": row["modified_by"],
                "modifiedAt": row["modified_at"],
            },
        }

    @classmethod
    async def update_group(
        cls, conn: sqlite3.Connection, group_id: int, data: GroupUpdate, actor: AuthContext
    ) -> Dict[str, Any]:
        """Apply a partial update.  Only fields present in the body are written."""
        trail = AuditTrail(conn, actor.user_id, "groups.update", "group", group_id)
        try:
            if not conn.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone():
                raise ServiceError.not_found("Group not found", {"groupId": group_id})
            if not can_access_group(conn, actor, group_id):
                raise ServiceError.permission("Access denied: you can only update your own groups")

            provided = data.model_fields_set
            name = data.name.strip() if "name" in provided and data.name is not None else OMIT
            if name is not OMIT:
                _check_name(name)
                if conn.execute(org_queries.GROUP_NAME_TAKEN, (name, group_id, group_id)).fetchone():
                    raise ServiceError.unique("Group name is already taken")
            status = data.status if "status" in provided and data.status is not None else OMIT
            if status is not OMIT:
                _check_status(status)
            owner_id = data.owner_id if "owner_id" in provided and data.owner_id is not None else OMIT
            if owner_id is not OMIT:
                _check_owner(conn, owner_id)
            email = data.email if "email" in provided else OMIT
            if email is not OMIT:
                _check_email(email)
            description = data.description if "description" in provided else OMIT

            fields = [
                UpdateField("name", name),
                UpdateField("status", status),
                UpdateField("owner_id", owner_id),
                UpdateField("description", description),
                UpdateField("email", email),
                UpdateField("modified_by", actor.user_id),
                UpdateField("modified_at", expression="CURRENT_TIMESTAMP"),
            ]
            changed = [field.column for field in fields[:5] if field.is_set]
            with transaction(conn) as cursor:
                sql, params = build_update("org_groups", fields, [("id", group_id)])
                cursor.execute(sql, params)
                await trail.change("changed", {"fields": changed})
            await trail.success({"fields": changed})
            return {"success": True, "message": "Group updated successfully"}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update group %s", group_id)
            error = ServiceError.internal("Failed to update group data", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def change_owner(
        cls,
        conn: sqlite3.Connection,
        group_id: int,
        actor: AuthContext,
        new_owner_id: Optional[int] = None,
        new_owner_username: Optional[str] = None,
        changed_by: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Transfer group ownership to another user.

        Setting the current owner again is a successful no-op that
        performs no write.  Otherwise the owner column and the
        ``modified_by``/``modified_at`` stamps change in one statement;
        an update that affects no row is an internal error.
        """
        acting_user = changed_by if changed_by is not None else actor.user_id
        trail = AuditTrail(conn, actor.user_id, "groups.change_owner", "group", group_id)
        try:
            if new_owner_id is None and not new_owner_username:
                raise ServiceError.validation("Missing required parameters: newOwnerId or newOwnerUsername")

            with transaction(conn) as cursor:
                group = cursor.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone()
                if not group:
                    raise ServiceError.not_found("Group not found", {"groupId": group_id})
                if not can_access_group(conn, actor, group_id):
                    raise ServiceError.permission("Access denied: you can only change owner of your own groups")
                old_owner_id = group["owner_id"]

                if new_owner_id is not None:
                    owner = cursor.execute(org_queries.SELECT_USER_BY_ID, (new_owner_id,)).fetchone()
                else:
                    owner = cursor.execute(org_queries.SELECT_USER_BY_USERNAME, (new_owner_username,)).fetchone()
                if not owner:
                    raise ServiceError.validation("New owner user not found")

                if owner["id"] == old_owner_id:
                    result = {
                        "success": True,
                        "message": "The specified user is already the owner of this group",
                        "oldOwnerId": old_owner_id,
                    }
                else:
                    sql, params = build_update(
                        "org_groups",
                        [
                            UpdateField("owner_id", owner["id"]),
                            UpdateField("modified_by", acting_user),
                            UpdateField("modified_at", expression="CURRENT_TIMESTAMP"),
                        ],
                        [("id", group_id)],
                    )
                    cursor.execute(sql, params)
                    if cursor.rowcount == 0:
                        raise ServiceError.internal("Failed to update group owner")
                    await trail.change("changed", {"oldOwnerId": old_owner_id, "newOwnerId": owner["id"]})
                    result = {
                        "success": True,
                        "message": "Group owner changed successfully",
                        "oldOwnerId": old_owner_id,
                    }

            await trail.success({"oldOwnerId": old_owner_id, "newOwnerId": owner["id"]})
            logger.info("Group %s owner: %s -> %s", group_id, old_owner_id, owner["id"])
            return result
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to change owner of group %s", group_id)
            error = ServiceError.internal("Failed to change group owner", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def delete_groups(cls, conn: sqlite3.Connection, group_ids: List[int], actor: AuthContext) -> Dict[str, Any]:
        """Delete groups in one batch.

        Unknown ids, system groups and groups outside the caller's
        scope are reported per id; the rest are deleted.  Memberships
        and product bindings go with them by cascade.
        """
        trail = AuditTrail(conn, actor.user_id, "groups.delete", "group")
        try:
            requested = unique_ids(group_ids)
            require_ids(requested, "At least one group ID is required")
            check_batch_size(requested, "Group IDs")

            deleted: List[Dict[str, Any]] = []
            errors: List[Dict[str, Any]] = []
            with transaction(conn) as cursor:
                for group_id in requested:
                    group = cursor.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone()
                    if not group:
                        errors.append({"id": group_id, "error": "Group not found or already deleted"})
                        continue
                    if group["is_system"]:
                        errors.append({"id": group_id, "error": "System group cannot be deleted"})
                        continue
                    if not can_access_group(conn, actor, group_id):
                        errors.append({"id": group_id, "error": "Access denied: you can only delete your own groups"})
                        continue
                    cursor.execute(org_queries.DELETE_GROUP, (group_id,))
                    deleted.append({"id": group_id, "name": group["name"]})
                if deleted:
                    await trail.change("removed", {"groups": deleted})

            await trail.success({"totalDeleted": len(deleted), "totalErrors": len(errors)})
            return {
                "success": True,
                "message": f"Deleted {len(deleted)} of {len(requested)} group(s)",
                "data": {
                    "deletedGroups": deleted,
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
            logger.exception("Failed to delete groups")
            error = ServiceError.internal("Failed to delete groups", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
