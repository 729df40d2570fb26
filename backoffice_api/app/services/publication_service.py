"""
Service layer for product availability: region bindings and catalog
section publication.

Both operations take the complete target state for one product and
reconcile the stored rows with it inside a single transaction.  A
region counts as bound only while it carries a taxable category;
entries without a category mean "not available" and are never stored.

``products.is_published`` is derived from section bindings and is
recomputed before the publication transaction commits.
"""

import logging
import sqlite3
from typing import Any, Dict, List

from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import placeholders
from backoffice_api.app.queries import products as product_queries
from backoffice_api.app.schemas.product import RegionBinding
from backoffice_api.app.services.access import can_access_product
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, unique_ids

logger = logging.getLogger(__name__)


def _existing_ids(conn: sqlite3.Connection, query: str, ids: List[int]) -> set:
    if not ids:
        return set()
    rows = conn.execute(query.format(ids=placeholders(len(ids))), tuple(ids)).fetchall()
    return {row["id"] for row in rows}


def _require_product(conn: sqlite3.Connection, product_id: int, actor: AuthContext, verb: str) -> sqlite3.Row:
    product = conn.execute(product_queries.SELECT_PRODUCT, (product_id,)).fetchone()
    if not product:
        raise ServiceError.not_found("Product not found", {"productId": product_id})
    if not can_access_product(conn, actor, product_id):
        raise ServiceError.permission(f"Access denied: you can only {verb} your own products")
    return product


class RegionService:
    """Read and reconcile product-region bindings."""

    @classmethod
    async def fetch_regions(cls, conn: sqlite3.Connection, product_id: int, actor: AuthContext) -> Dict[str, Any]:
        """Return every region with the product's category for it, if any."""
        _require_product(conn, product_id, actor, "view regions of")
        rows = conn.execute(product_queries.SELECT_PRODUCT_REGIONS, (product_id,)).fetchall()
        return {"success": True, "message": "Product regions fetched", "data": [dict(row) for row in rows]}

    @classmethod
    async def update_regions(
        cls, conn: sqlite3.Connection, product_id: int, regions: List[RegionBinding], actor: AuthContext
    ) -> Dict[str, Any]:
        """Make the product's bindings equal to ``regions``.

        Regions absent from the list, or listed without a category, lose
        their binding.  A region listed twice keeps the last category.
        """
        trail = AuditTrail(conn, actor.user_id, "products.regions.update", "product", product_id)
        try:
            check_batch_size([binding.region_id for binding in regions], "Regions")
            await trail.entry({"totalRegions": len(regions)})
            _require_product(conn, product_id, actor, "update regions of")

            target = {binding.region_id: binding.category_id for binding in regions if binding.category_id is not None}
            region_ids = unique_ids(binding.region_id for binding in regions)
            unknown_regions = sorted(set(region_ids) - _existing_ids(conn, product_queries.SELECT_REGION_IDS, region_ids))
            if unknown_regions:
                raise ServiceError.validation("Some regions do not exist", {"invalidRegionIds": unknown_regions})
            category_ids = unique_ids(target.values())
            unknown_categories = sorted(
                set(category_ids) - _existing_ids(conn, product_queries.SELECT_CATEGORY_IDS, category_ids)
            )
            if unknown_categories:
                raise ServiceError.validation(
                    "Some taxable categories do not exist", {"invalidCategoryIds": unknown_categories}
                )

            with transaction(conn) as cursor:
                current = {
                    row["region_id"]: row["taxable_category_id"]
                    for row in cursor.execute(product_queries.SELECT_BOUND_REGIONS, (product_id,)).fetchall()
                }
                to_remove = sorted(set(current) - set(target))
                to_add = sorted(set(target) - set(current))
                to_update = sorted(region for region in set(current) & set(target) if current[region] != target[region])

                for region_id in to_remove:
                    cursor.execute(product_queries.DELETE_PRODUCT_REGION, (product_id, region_id))
                for region_id in to_add:
                    cursor.execute(
                        product_queries.INSERT_PRODUCT_REGION, (product_id, region_id, target[region_id], actor.user_id)
                    )
                for region_id in to_update:
                    cursor.execute(product_queries.UPDATE_PRODUCT_REGION, (target[region_id], product_id, region_id))

                if to_remove:
                    await trail.change("removed", {"regions": [{"regionId": r, "oldCategoryId": current[r]} for r in to_remove]})
                if to_add:
                    await trail.change("added", {"regions": [{"regionId": r, "categoryId": target[r]} for r in to_add]})
                if to_update:
                    await trail.change(
                        "changed",
                        {
                            "regions": [
                                {"regionId": r, "oldCategoryId": current[r], "newCategoryId": target[r]} for r in to_update
                            ]
                        },
                    )

            counts = {
                "totalRecords": len(target),
                "addedCount": len(to_add),
                "removedCount": len(to_remove),
                "changedCount": len(to_update),
            }
            await trail.success(counts)
            logger.info("Product %s regions: %s", product_id, counts)
            return {"success": True, "message": "Product regions updated successfully", "data": counts}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update regions of product %s", product_id)
            error = ServiceError.internal("Failed to update product regions", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc


class SectionPublishService:
    """Read and reconcile the catalog sections a product is published in."""

    @classmethod
    async def fetch_sections(cls, conn: sqlite3.Connection, product_id: int, actor: AuthContext) -> Dict[str, Any]:
        product = _require_product(conn, product_id, actor, "view publication of")
        rows = conn.execute(product_queries.SELECT_PUBLISHING_SECTIONS, (product_id,)).fetchall()
        sections = [dict(row, is_bound=bool(row["is_bound"])) for row in rows]
        return {
            "success": True,
            "message": "Publishing sections loaded successfully",
            "data": {"sections": sections, "isPublished": bool(product["is_published"])},
        }

    @classmethod
    async def update_sections(
        cls, conn: sqlite3.Connection, product_id: int, section_ids: List[int], actor: AuthContext
    ) -> Dict[str, Any]:
        """Publish the product in exactly ``section_ids``.

        An empty list unpublishes the product everywhere.  Repeating a
        call with the same ids changes nothing and reports zero counts.
        """
        trail = AuditTrail(conn, actor.user_id, "products.sections.update", "product", product_id)
        try:
            target_ids = unique_ids(section_ids)
            check_batch_size(target_ids, "Section IDs")
            await trail.entry({"sectionIds": target_ids})
            _require_product(conn, product_id, actor, "publish")

            with transaction(conn) as cursor:
                current = {
                    row["section_id"]
                    for row in cursor.execute(product_queries.SELECT_PRODUCT_SECTION_IDS, (product_id,)).fetchall()
                }
                to_remove = sorted(current - set(target_ids))
                to_add = sorted(set(target_ids) - current)

                missing = sorted(set(to_add) - _existing_ids(conn, product_queries.SELECT_SECTION_IDS, to_add))
                if missing:
                    raise ServiceError.validation("Some sectionsToAdd do not exist", {"invalidSectionIds": missing})

                for section_id in to_remove:
                    cursor.execute(product_queries.DELETE_SECTION_BINDING, (section_id, product_id))
                for section_id in to_add:
                    cursor.execute(product_queries.INSERT_SECTION_BINDING, (section_id, product_id, actor.user_id))
                cursor.execute(product_queries.REFRESH_IS_PUBLISHED, (product_id,))

                if to_remove:
                    await trail.change("removed", {"sectionIds": to_remove})
                if to_add:
                    await trail.change("added", {"sectionIds": to_add})

            counts = {"updatedCount": len(to_add) + len(to_remove), "addedCount": len(to_add), "removedCount": len(to_remove)}
            await trail.success(counts)
            logger.info("Product %s sections: %s", product_id, counts)
            return {"success": True, "message": "Product sections publish mappings updated", **counts}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update sections of product %s", product_id)
            error = ServiceError.internal("Failed to update product sections publish", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
