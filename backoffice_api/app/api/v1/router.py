"""
Top-level router for version 1 of the API.

Aggregates the domain routers under a unified prefix.  When a new
domain is introduced, include its router here.
"""

from fastapi import APIRouter

from .endpoints import audit, catalog, groups, products, settings, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(groups.router, prefix="/groups", tags=["groups"])
router.include_router(products.router, prefix="/products", tags=["products"])
router.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
router.include_router(settings.router, prefix="/settings", tags=["settings"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
