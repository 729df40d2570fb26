"""
Service layer for catalog sections.

Sections are the places a product can be published in.  Deleting a
section drops its bindings by cascade, after which the ``is_published``
flag of every product that was bound to it is recomputed in the same
transaction.
"""

import logging
import sqlite3
from typing import Any, Dict, List

from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import OMIT, UpdateField, build_update
from backoffice_api.app.queries import catalog as catalog_queries
from backoffice_api.app.queries import org as org_queries
from backoffice_api.app.queries import products as product_queries
from backoffice_api.app.schemas.catalog import SectionCreate, SectionUpdate
from backoffice_api.app.services.access import can_access_section
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, require_ids, unique_ids

logger = logging.getLogger(__name__)

SECTION_STATUSES = ("active", "inactive")


def _check_status(status: str) -> None:
    if status not in SECTION_STATUSES:
        raise ServiceError.validation(f"Invalid section status; allowed: {', '.join(SECTION_STATUSES)}")


def _check_owner(conn: sqlite3.Connection, owner_id: int) -> None:
    if not conn.execute(org_queries.SELECT_USER_BY_ID, (owner_id,)).fetchone():
        raise ServiceError.validation("Section owner not found", {"ownerId": owner_id})


class CatalogService:
    """Service for listing, creating, updating and deleting sections."""

    @classmethod
    async def list_sections(cls, conn: sqlite3.Connection, actor: AuthContext) -> Dict[str, Any]:
        owner_filter = actor.user_id if actor.is_own_scope else None
        rows = conn.execute(catalog_queries.SELECT_SECTIONS, (owner_filter, owner_filter)).fetchall()
        return {"success": True, "sections": [dict(row) for row in rows]}

    @classmethod
    async def create_section(cls, conn: sqlite3.Connection, data: SectionCreate, actor: AuthContext) -> Dict[str, Any]:
        """Create a section.  Callers with scope ``own`` always own what they create."""
        trail = AuditTrail(conn, actor.user_id, "catalog.sections.create", "section")
        try:
            name = data.name.strip()
            _check_status(data.status)
            owner_id = actor.user_id if actor.is_own_scope or data.owner_id is None else data.owner_id
            _check_owner(conn, owner_id)
            if conn.execute(catalog_queries.SECTION_NAME_TAKEN, (name, None, None)).fetchone():
                raise ServiceError.unique("Section with this name already exists")

            with transaction(conn) as cursor:
                cursor.execute(
                    catalog_queries.INSERT_SECTION, (name, data.description, owner_id, data.status, actor.user_id)
                )
                section_id = cursor.lastrowid
                trail.object_id = section_id
                await trail.change("added", {"name": name, "ownerId": owner_id})
            await trail.success()
            return {"success": True, "message": "Section created successfully", "data": {"id": section_id}}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to create section")
            error = ServiceError.internal("Failed to create section", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def update_section(
        cls, conn: sqlite3.Connection, section_id: int, data: SectionUpdate, actor: AuthContext
    ) -> Dict[str, Any]:
        trail = AuditTrail(conn, actor.user_id, "catalog.sections.update", "section", section_id)
        try:
            if not conn.execute(catalog_queries.SELECT_SECTION, (section_id,)).fetchone():
                raise ServiceError.not_found("Section not found", {"sectionId": section_id})
            if not can_access_section(conn, actor, section_id):
                raise ServiceError.permission("Access denied: you can only update your own sections")

            provided = data.model_fields_set
            name = data.name.strip() if "name" in provided and data.name is not None else OMIT
            if name is not OMIT and conn.execute(catalog_queries.SECTION_NAME_TAKEN, (name, section_id, section_id)).fetchone():
                raise ServiceError.unique("Section with this name already exists")
            status = data.status if "status" in provided and data.status is not None else OMIT
            if status is not OMIT:
                _check_status(status)
            owner_id = data.owner_id if "owner_id" in provided and data.owner_id is not None else OMIT
            if owner_id is not OMIT:
                _check_owner(conn, owner_id)
            description = data.description if "description" in provided else OMIT

            fields = [
                UpdateField("name", name),
                UpdateField("description", description),
                UpdateField("owner_id", owner_id),
                UpdateField("status", status),
                UpdateField("updated_by", actor.user_id),
                UpdateField("updated_at", expression="CURRENT_TIMESTAMP"),
            ]
            changed = [field.column for field in fields[:4] if field.is_set]
            with transaction(conn) as cursor:
                sql, params = build_update("catalog_sections", fields, [("id", section_id)])
                cursor.execute(sql, params)
                await trail.change("changed", {"fields": changed})
            await trail.success({"fields": changed})
            return {"success": True, "message": "Section updated successfully"}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update section %s", section_id)
            error = ServiceError.internal("Failed to update section", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def delete_sections(cls, conn: sqlite3.Connection, section_ids: List[int], actor: AuthContext) -> Dict[str, Any]:
        """Delete sections, reporting unknown or inaccessible ids per item."""
        trail = AuditTrail(conn, actor.user_id, "catalog.sections.delete", "section")
        try:
            requested = unique_ids(section_ids)
            require_ids(requested, "At least one section ID is required")
            check_batch_size(requested, "Section IDs")

            deleted: List[Dict[str, Any]] = []
            errors: List[Dict[str, Any]] = []
            with transaction(conn) as cursor:
                for section_id in requested:
                    section = cursor.execute(catalog_queries.SELECT_SECTION, (section_id,)).fetchone()
                    if not section:
                        errors.append({"id": section_id, "error": "Section not found or already deleted"})
                        continue
                    if not can_access_section(conn, actor, section_id):
                        errors.append({"id": section_id, "error": "Access denied: you can only delete your own sections"})
                        continue
                    product_ids = [
                        row["product_id"]
                        for row in cursor.execute(catalog_queries.SELECT_SECTION_PRODUCT_IDS, (section_id,)).fetchall()
                    ]
                    cursor.execute(catalog_queries.DELETE_SECTION, (section_id,))
                    for product_id in product_ids:
                        cursor.execute(product_queries.REFRESH_IS_PUBLISHED, (product_id,))
                    deleted.append({"id": section_id, "name": section["name"], "unpublishedFrom": product_ids})
                if deleted:
                    await trail.change("removed", {"sections": deleted})

            await trail.success({"totalDeleted": len(deleted), "totalErrors": len(errors)})
            return {
                "success": True,
                "message": f"Deleted {len(deleted)} of {len(requested)} section(s)",
                "data": {
                    "deletedSections": [{"id": item["id"], "name": item["name"]} for item in deleted],
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
            logger.exception("Failed to delete sections")
            error = ServiceError.internal("Failed to delete sections", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
