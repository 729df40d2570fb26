"""
Catalog section endpoints for API v1.

Require the ``admin.catalog`` permission; with scope ``own`` only the
caller's own sections are listed and may be changed.
"""

import sqlite3

from fastapi import APIRouter, Depends, status

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.schemas.catalog import DeleteSectionsRequest, SectionCreate, SectionUpdate
from backoffice_api.app.services.catalog_service import CatalogService

router = APIRouter()

catalog_scope = require_scope("admin.catalog")


@router.get("/sections")
async def list_sections(
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(catalog_scope),
) -> dict:
    return await CatalogService.list_sections(conn, current_user)


@router.post("/sections", status_code=status.HTTP_201_CREATED)
async def create_section(
    body: SectionCreate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(catalog_scope),
) -> dict:
    return await CatalogService.create_section(conn, body, current_user)


@router.put("/sections/{section_id}")
async def update_section(
    section_id: int,
    body: SectionUpdate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(catalog_scope),
) -> dict:
    return await CatalogService.update_section(conn, section_id, body, current_user)


@router.post("/sections/delete")
async def delete_sections(
    body: DeleteSectionsRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(catalog_scope),
) -> dict:
    """Delete sections; products bound to them are re-evaluated for publication."""
    return await CatalogService.delete_sections(conn, body.section_ids, current_user)
