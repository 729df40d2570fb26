"""
Group endpoints for API v1.

Listing, the group editor, membership management, ownership transfer
and batch deletion.  All routes require the ``admin.org`` permission;
with scope ``own`` a caller may only act on groups they own.
"""

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.runtime_settings import SettingsSnapshot, get_settings_snapshot
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.schemas.group import (
    AddUsersToGroupRequest,
    ChangeGroupOwnerRequest,
    DeleteGroupsRequest,
    GroupCreate,
    GroupUpdate,
    RemoveGroupMembersRequest,
)
from backoffice_api.app.services.group_service import GroupService
from backoffice_api.app.services.membership_service import MembershipService

router = APIRouter()

org_scope = require_scope("admin.org")


@router.get("/")
async def list_groups(
    page: int = Query(1, ge=1),
    items_per_page: int = Query(20, ge=1, le=100, alias="itemsPerPage"),
    search: Optional[str] = Query(None),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await GroupService.list_groups(conn, current_user, page, items_per_page, search)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupCreate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await GroupService.create_group(conn, body, current_user)


@router.get("/{group_id}")
async def fetch_group(
    group_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await GroupService.fetch_group(conn, group_id, current_user)


@router.put("/{group_id}")
async def update_group(
    group_id: int,
    body: GroupUpdate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    """Update name, status, owner, description or email of a group.

    Only fields present in the body are written; an explicit ``null``
    clears ``description`` or ``email``.
    """
    return await GroupService.update_group(conn, group_id, body, current_user)


@router.get("/{group_id}/members")
async def list_group_members(
    group_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await MembershipService.list_members(conn, group_id, current_user)


@router.post("/{group_id}/add-users-to-group")
async def add_users_to_group(
    group_id: int,
    body: AddUsersToGroupRequest,
    conn: sqlite3.Connection = Depends(get_db),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    """Add users to a group.

    Users that do not exist, are already active members or whose
    account status is not ``active`` (while the
    ``add.only.active.users.to.groups`` setting is on) are skipped and
    counted in the message.
    """
    return await MembershipService.add_users_to_group(
        conn, group_id, body.user_ids, current_user, snapshot, added_by=body.added_by
    )


@router.post("/{group_id}/members/remove")
async def remove_group_members(
    group_id: int,
    body: RemoveGroupMembersRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await MembershipService.remove_users_from_group(conn, group_id, body.user_ids, current_user)


@router.post("/{group_id}/change-owner")
async def change_group_owner(
    group_id: int,
    body: ChangeGroupOwnerRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await GroupService.change_owner(
        conn,
        group_id,
        current_user,
        new_owner_id=body.new_owner_id,
        new_owner_username=body.new_owner_username,
        changed_by=body.changed_by,
    )


@router.post("/delete-selected")
async def delete_groups(
    body: DeleteGroupsRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await GroupService.delete_groups(conn, body.group_ids, current_user)
