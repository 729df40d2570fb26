"""
Service layer for group membership.

Adding members follows one sequence in both directions (N users into
one group, one user into N groups):

1. validate the anchor (group or user) exists, else ``NOT_FOUND_ERROR``;
2. keep only the target ids that exist, ``VALIDATION_ERROR`` if none do;
3. inside one transaction, drop targets that are already active
   members, drop users whose account is not ``active`` when the
   ``add.only.active.users.to.groups`` switch is on (default on), and
   insert the remaining memberships.

Any failure during step 3 rolls back every insert made by the call.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.runtime_settings import ADD_ONLY_ACTIVE_USERS_TO_GROUPS, SettingsSnapshot
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import placeholders
from backoffice_api.app.queries import org as org_queries
from backoffice_api.app.services.access import can_access_group
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, plural, require_ids, unique_ids

logger = logging.getLogger(__name__)


def _is_eligible(account_status: str, snapshot: SettingsSnapshot) -> bool:
    if account_status == "active":
        return True
    return not snapshot.get_bool(ADD_ONLY_ACTIVE_USERS_TO_GROUPS, True)


class MembershipService:
    """Add and remove group members."""

    @classmethod
    async def add_users_to_group(
        cls,
        conn: sqlite3.Connection,
        group_id: int,
        user_ids: List[int],
        actor: AuthContext,
        snapshot: SettingsSnapshot,
        added_by: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Add users to a group.

        Returns ``{"success", "message", "count"}`` where ``count`` is
        the number of memberships created or reactivated.  The message
        lists every category of skipped id (not found, already a
        member, ineligible account status).
        """
        acting_user = added_by if added_by is not None else actor.user_id
        trail = AuditTrail(conn, actor.user_id, "groups.add_users", "group", group_id)
        try:
            requested = unique_ids(user_ids)
            require_ids(requested, "At least one user ID is required")
            check_batch_size(requested, "User IDs")
            await trail.entry({"userIds": requested})

            group = conn.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone()
            if not group:
                raise ServiceError.not_found("Group not found", {"groupId": group_id})
            if not can_access_group(conn, actor, group_id):
                raise ServiceError.permission("Access denied: you can only manage members of your own groups")

            rows = conn.execute(
                org_queries.SELECT_USERS_BY_IDS.format(ids=placeholders(len(requested))),
                tuple(requested),
            ).fetchall()
            statuses = {row["id"]: row["account_status"] for row in rows}
            if not statuses:
                raise ServiceError.validation("No valid users found", {"userIds": requested})
            missing = [user_id for user_id in requested if user_id not in statuses]
            valid = [user_id for user_id in requested if user_id in statuses]

            with transaction(conn) as cursor:
                members = {
                    row["user_id"]
                    for row in cursor.execute(
                        org_queries.ACTIVE_MEMBERS_AMONG_USERS.format(ids=placeholders(len(valid))),
                        (group_id, *valid),
                    ).fetchall()
                }
                candidates = [user_id for user_id in valid if user_id not in members]
                eligible = [user_id for user_id in candidates if _is_eligible(statuses[user_id], snapshot)]
                ineligible = [user_id for user_id in candidates if user_id not in eligible]

                for user_id in eligible:
                    cursor.execute(org_queries.UPSERT_MEMBERSHIP, (group_id, user_id, acting_user))
                if eligible:
                    await trail.change("added", {"userIds": eligible})
                if ineligible:
                    await trail.change("skipped", {"userIds": ineligible, "reason": "account_status"})

            if not candidates:
                message = "All users are already members of this group"
                if missing:
                    message += f", {len(missing)} user(s) not found"
                result = {"success": True, "message": message, "count": 0}
            elif not eligible:
                result = {
                    "success": False,
                    "message": "No eligible users to add due to account status restrictions",
                    "count": 0,
                }
            else:
                parts = [f"{len(eligible)} user(s) successfully added to the group"]
                if missing:
                    parts.append(f"{len(missing)} user(s) not found")
                if members:
                    parts.append(f"{len(members)} user(s) already members")
                if ineligible:
                    parts.append(f"{len(ineligible)} user(s) skipped due to account status restrictions")
                result = {"success": True, "message": ", ".join(parts), "count": len(eligible)}

            await trail.success({"added": eligible, "notFound": missing, "alreadyMembers": sorted(members)})
            logger.info("Group %s: %s", group_id, result["message"])
            return result
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to add users to group %s", group_id)
            error = ServiceError.internal("Failed to add users to group", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def add_user_to_groups(
        cls,
        conn: sqlite3.Connection,
        user_id: int,
        group_ids: List[int],
        actor: AuthContext,
        snapshot: SettingsSnapshot,
    ) -> Dict[str, Any]:
        """Add one user to several groups.

        With scope ``own`` groups not owned by the caller are skipped
        and counted in the message rather than failing the request.
        """
        trail = AuditTrail(conn, actor.user_id, "users.add_to_groups", "user", user_id)
        try:
            requested = unique_ids(group_ids)
            require_ids(requested, "At least one group ID is required")
            check_batch_size(requested, "Group IDs")
            await trail.entry({"groupIds": requested})

            user = conn.execute(org_queries.SELECT_USER_BY_ID, (user_id,)).fetchone()
            if not user:
                raise ServiceError.not_found("User not found", {"userId": user_id})

            rows = conn.execute(
                org_queries.SELECT_GROUPS_BY_IDS.format(ids=placeholders(len(requested))),
                tuple(requested),
            ).fetchall()
            existing = {row["id"] for row in rows}
            if not existing:
                raise ServiceError.validation("No valid groups found", {"groupIds": requested})
            missing = [group_id for group_id in requested if group_id not in existing]
            valid = [group_id for group_id in requested if group_id in existing]
            denied = [group_id for group_id in valid if not can_access_group(conn, actor, group_id)]
            valid = [group_id for group_id in valid if group_id not in denied]
            if not valid and denied:
                raise ServiceError.permission(
                    "Access denied: you can only add users to your own groups",
                    {"groupIds": denied},
                )

            added: List[int] = []
            with transaction(conn) as cursor:
                if valid:
                    memberships = {
                        row["group_id"]
                        for row in cursor.execute(
                            org_queries.ACTIVE_GROUPS_AMONG_GROUPS.format(ids=placeholders(len(valid))),
                            (user_id, *valid),
                        ).fetchall()
                    }
                else:
                    memberships = set()
                candidates = [group_id for group_id in valid if group_id not in memberships]
                eligible = _is_eligible(user["account_status"], snapshot)
                if candidates and eligible:
                    for group_id in candidates:
                        cursor.execute(org_queries.UPSERT_MEMBERSHIP, (group_id, user_id, actor.user_id))
                    added = candidates
                    await trail.change("added", {"groupIds": added})

            if not candidates:
                result = {"success": True, "message": "User is already a member of all selected groups", "count": 0}
            elif not added:
                result = {
                    "success": False,
                    "message": "User cannot be added to groups due to account status restrictions",
                    "count": 0,
                }
            else:
                parts = [f"User successfully added to {len(added)} group(s)"]
                if missing:
                    parts.append(f"{len(missing)} group(s) not found")
                if memberships:
                    parts.append(f"already a member of {len(memberships)} group(s)")
                if denied:
                    parts.append(f"{len(denied)} group(s) skipped: access denied")
                result = {"success": True, "message": ", ".join(parts), "count": len(added)}

            await trail.success({"added": added, "notFound": missing, "denied": denied})
            logger.info("User %s: %s", user_id, result["message"])
            return result
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to add user %s to groups", user_id)
            error = ServiceError.internal("Failed to add user to groups", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def remove_users_from_group(
        cls,
        conn: sqlite3.Connection,
        group_id: int,
        user_ids: List[int],
        actor: AuthContext,
    ) -> Dict[str, Any]:
        """Deactivate the memberships of ``user_ids`` in one group."""
        trail = AuditTrail(conn, actor.user_id, "groups.remove_members", "group", group_id)
        try:
            requested = unique_ids(user_ids)
            require_ids(requested, "At least one user ID is required")
            check_batch_size(requested, "User IDs")
            group = conn.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone()
            if not group:
                raise ServiceError.not_found("Group not found", {"groupId": group_id})
            if not can_access_group(conn, actor, group_id):
                raise ServiceError.permission("Access denied: you can only manage members of your own groups")

            removed: List[int] = []
            with transaction(conn) as cursor:
                for user_id in requested:
                    cursor.execute(org_queries.DEACTIVATE_MEMBERSHIP, (group_id, user_id))
                    if cursor.rowcount:
                        removed.append(user_id)
                if removed:
                    await trail.change("removed", {"userIds": removed})

            await trail.success({"removedCount": len(removed)})
            message = (
                f"Successfully removed {plural(len(removed), 'user')} from group"
                if removed
                else "No users were removed from group"
            )
            return {"success": True, "message": message, "data": {"removedCount": len(removed), "removedUserIds": removed}}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to remove members from group %s", group_id)
            error = ServiceError.internal("Failed to remove users from group", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def remove_user_from_groups(
        cls,
        conn: sqlite3.Connection,
        user_id: int,
        group_ids: List[int],
        actor: AuthContext,
    ) -> Dict[str, Any]:
        """Deactivate one user's membership in several groups."""
        trail = AuditTrail(conn, actor.user_id, "users.remove_from_groups", "user", user_id)
        try:
            requested = unique_ids(group_ids)
            require_ids(requested, "At least one group ID must be provided")
            check_batch_size(requested, "Group IDs")
            if not conn.execute(org_queries.SELECT_USER_BY_ID, (user_id,)).fetchone():
                raise ServiceError.not_found("User not found", {"userId": user_id})

            removed: List[int] = []
            denied: List[int] = []
            with transaction(conn) as cursor:
                for group_id in requested:
                    if not can_access_group(conn, actor, group_id):
                        denied.append(group_id)
                        continue
                    cursor.execute(org_queries.DEACTIVATE_MEMBERSHIP, (group_id, user_id))
                    if cursor.rowcount:
                        removed.append(group_id)
                if removed:
                    await trail.change("removed", {"groupIds": removed})

            await trail.success({"removedCount": len(removed), "denied": denied})
            message = (
                f"Successfully removed user from {plural(len(removed), 'group')}"
                if removed
                else "No groups were removed from user"
            )
            data: Dict[str, Any] = {"removedCount": len(removed), "removedGroupIds": removed}
            if denied:
                data["errors"] = [
                    {"id": group_id, "error": "Access denied: you can only manage your own groups"} for group_id in denied
                ]
            return {"success": True, "message": message, "data": data}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to remove user %s from groups", user_id)
            error = ServiceError.internal("Failed to remove user from groups", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def list_members(cls, conn: sqlite3.Connection, group_id: int, actor: AuthContext) -> Dict[str, Any]:
        if not conn.execute(org_queries.SELECT_GROUP_BY_ID, (group_id,)).fetchone():
            raise ServiceError.not_found("Group not found", {"groupId": group_id})
        if not can_access_group(conn, actor, group_id):
            raise ServiceError.permission("Access denied: you can only view members of your own groups")
        rows = conn.execute(org_queries.SELECT_GROUP_MEMBERS, (group_id,)).fetchall()
        members = [dict(row) for row in rows]
        return {"success": True, "members": members, "total": len(members)}
