"""
Product endpoints for API v1.

CRUD and listing, ownership assignment, option pairs, region
bindings and catalog publication.  All routes require the
``admin.products`` permission; with scope ``own`` a caller sees and
changes only the products they own or whose specialist group they
belong to.

Static paths (``/statuses``, ``/options``, ``/pairs/...``) are declared
before ``/{product_id}`` so they are never captured by it.
"""

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.schemas.product import (
    AssignProductOwnerRequest,
    DeleteProductsRequest,
    PairsDeleteRequest,
    PairsReadRequest,
    PairsWriteRequest,
    ProductCreate,
    ProductRegionsUpdate,
    ProductUpdate,
    SectionsPublishRequest,
)
from backoffice_api.app.services.pairs_service import PairsService
from backoffice_api.app.services.product_service import ProductService
from backoffice_api.app.services.publication_service import RegionService, SectionPublishService

router = APIRouter()

products_scope = require_scope("admin.products")


@router.get("/")
async def list_products(
    page: int = Query(1, ge=1),
    items_per_page: int = Query(20, ge=1, le=100, alias="itemsPerPage"),
    search_query: Optional[str] = Query(None, alias="searchQuery"),
    sort_by: str = Query("product_code", alias="sortBy"),
    sort_desc: bool = Query(False, alias="sortDesc"),
    published_filter: Optional[str] = Query(None, alias="publishedFilter", pattern="^(published|unpublished)$"),
    status_filter: Optional[str] = Query(None, alias="statusFilter"),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await ProductService.list_products(
        conn,
        current_user,
        page=page,
        items_per_page=items_per_page,
        search_query=search_query,
        sort_by=sort_by,
        sort_desc=sort_desc,
        published_filter=published_filter,
        status_filter=status_filter,
    )


@router.get("/statuses")
async def list_product_statuses(current_user: AuthContext = Depends(products_scope)) -> dict:
    return await ProductService.list_statuses()


@router.get("/options")
async def list_option_products(
    search: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    """Products flagged ``can_be_option``, for the pair editor."""
    return await ProductService.list_option_products(conn, search, limit)


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await ProductService.create_product(conn, body, current_user)


@router.post("/update")
async def update_product(
    body: ProductUpdate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    """Partial update: only fields present in the body are changed."""
    return await ProductService.update_product(conn, body, current_user)


@router.post("/delete")
async def delete_products(
    body: DeleteProductsRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await ProductService.delete_products(conn, body.product_ids, current_user)


@router.post("/assign-owner")
async def assign_product_owner(
    body: AssignProductOwnerRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await ProductService.assign_owner(conn, body.product_ids, body.new_owner_username, current_user)


@router.post("/pairs/create", status_code=status.HTTP_201_CREATED)
async def create_pairs(
    body: PairsWriteRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await PairsService.create_pairs(conn, body.main_product_id, body.pairs, current_user)


@router.post("/pairs/read")
async def read_pairs(
    body: PairsReadRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    """Read pairs in one of three modes: ``records``, ``ids`` or ``exists``."""
    return await PairsService.read_pairs(
        conn, body.main_product_id, current_user, mode=body.mode, option_product_ids=body.option_product_ids
    )


@router.post("/pairs/update")
async def update_pairs(
    body: PairsWriteRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await PairsService.update_pairs(conn, body.main_product_id, body.pairs, current_user)


@router.post("/pairs/delete")
async def delete_pairs(
    body: PairsDeleteRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await PairsService.delete_pairs(
        conn,
        body.main_product_id,
        current_user,
        delete_all=body.all_pairs,
        selected_option_ids=body.selected_option_ids,
    )


@router.post("/pairs/replace")
async def replace_pairs(
    body: PairsWriteRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await PairsService.replace_pairs(conn, body.main_product_id, body.pairs, current_user)


@router.put("/update-sections-publish")
async def update_sections_publish(
    body: SectionsPublishRequest,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    """Publish the product in exactly ``sectionIds``; an empty list unpublishes it."""
    return await SectionPublishService.update_sections(conn, body.product_id, body.section_ids, current_user)


@router.get("/{product_id}")
async def fetch_product(
    product_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await ProductService.fetch_product(conn, product_id, current_user)


@router.get("/{product_id}/regions")
async def fetch_product_regions(
    product_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await RegionService.fetch_regions(conn, product_id, current_user)


@router.put("/{product_id}/regions")
async def update_product_regions(
    product_id: int,
    body: ProductRegionsUpdate,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    """Replace the product's region bindings with ``regions``."""
    return await RegionService.update_regions(conn, product_id, body.regions, current_user)


@router.get("/{product_id}/sections-publish")
async def fetch_sections_publish(
    product_id: int,
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(products_scope),
) -> dict:
    return await SectionPublishService.fetch_sections(conn, product_id, current_user)
