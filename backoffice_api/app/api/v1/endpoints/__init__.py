"""
Endpoint subpackage for API v1.

Each module defines an ``APIRouter`` for one domain (users, groups,
products, catalog, settings, audit).  The routers are aggregated in
``router.py`` at the package level.
"""
