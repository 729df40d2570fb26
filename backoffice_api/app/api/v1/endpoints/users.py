"""
User endpoints for API v1.

Listing, search for item pickers, account creation, the user editor,
login, group membership of a single user and batch deletion.  Every
route except login requires the ``admin.org`` permission.
"""

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.runtime_settings import SettingsSnapshot, get_settings_snapshot
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.schemas.user import (
    AddUserToGroupsRequest,
    DeleteUsersRequest,
    RemoveUserFromGroupsRequest,
    UserCreate,
    UserLogin,
    UserUpdate,
)
from backoffice_api.app.services.membership_service import MembershipService
from backoffice_api.app.services.user_service import UserService

router = APIRouter()

org_scope = require_scope("admin.org")


@router.get("/")
async def list_users(
    page: int = Query(1, ge=1),
    items_per_page: int = Query(20, ge=1, le=100, alias="itemsPerPage"),
    search: Optional[str] = Query(None),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await UserService.list_users(conn, page, items_per_page, search)


@router.get("/search")
async def search_users(
    query: Optional[str] = Query(None, description="Substring of username, email, first or last name"),
    limit: Optional[int] = Query(None, description="Clamped to 1..100, default 20"),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    """Search users for pickers.

    Returns ``{success, items: [{id, name, username, uuid}], total}``.
    """
    return await UserService.search_users(conn, query, limit)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await UserService.create_user(conn, body, current_user)


@router.post("/login")
async def login_user(body: UserLogin, conn: sqlite3.Connection = Depends(get_db)) -> dict:
    """Authenticate with username and password and return a bearer token."""
    return await UserService.authenticate(conn, body.username, body.password)


@router.get("/{user_id}")
async def fetch_user(
    user_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await UserService.fetch_user(conn, user_id)


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await UserService.update_user(conn, user_id, body, current_user)


@router.post("/{user_id}/add-user-to-groups")
async def add_user_to_groups(
    user_id: int,
    body: AddUserToGroupsRequest,
    conn: sqlite3.Connection = Depends(get_db),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await MembershipService.add_user_to_groups(conn, user_id, body.group_ids, current_user, snapshot)


@router.post("/{user_id}/remove-from-groups")
async def remove_user_from_groups(
    user_id: int,
    body: RemoveUserFromGroupsRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await MembershipService.remove_user_from_groups(conn, user_id, body.group_ids, current_user)


@router.post("/delete-selected")
async def delete_users(
    body: DeleteUsersRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(org_scope),
) -> dict:
    return await UserService.delete_users(conn, body.user_ids, current_user)
