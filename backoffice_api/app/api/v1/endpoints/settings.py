"""
Runtime settings endpoints for API v1.

These routes let administrators view and change switches such as
``add.only.active.users.to.groups`` at runtime.  Each setting is a
key/value pair with a type used for deserialization.  Requires the
``admin.settings`` permission.
"""

import sqlite3
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.schemas.settings import SettingWrite
from backoffice_api.app.services.settings_service import SettingsService

router = APIRouter()

settings_scope = require_scope("admin.settings")


@router.get("/", response_model=List[Dict[str, Any]])
async def list_settings(
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(settings_scope),
) -> List[Dict[str, Any]]:
    return await SettingsService.list_settings(conn)


@router.get("/{key}", response_model=Dict[str, Any])
async def get_setting(
    key: str,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(settings_scope),
) -> Dict[str, Any]:
    setting = await SettingsService.get_setting(conn, key)
    if not setting:
        raise ServiceError.not_found("Setting not found", {"key": key})
    return setting


@router.post("/{key}", response_model=Dict[str, Any])
async def upsert_setting(
    key: str,
    body: SettingWrite,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(settings_scope),
) -> Dict[str, Any]:
    """Insert or update a setting.

    Supported types are ``string``, ``int``, ``float`` and ``bool``.
    """
    return await SettingsService.upsert_setting(conn, key, body.value, body.type, current_user)


@router.delete("/{key}")
async def delete_setting(
    key: str,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(settings_scope),
) -> dict:
    await SettingsService.delete_setting(conn, key, current_user)
    return {"success": True, "message": "Setting deleted"}
