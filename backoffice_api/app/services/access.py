"""
Resource access checks for callers whose scope is ``own``.

A user may act on a product when they own it or are an active member
of a group bound to it.  A user may act on a group or catalog section
when they are its owner.  Callers with scope ``all`` skip these checks
entirely.
"""

import sqlite3

from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.queries import products as product_queries


def check_product_access(conn: sqlite3.Connection, product_id: int, user_id: int) -> bool:
    row = conn.execute(
        product_queries.CHECK_PRODUCT_ACCESS,
        (product_id, user_id, product_id, user_id),
    ).fetchone()
    return bool(row["has_access"])


def check_group_access(conn: sqlite3.Connection, group_id: int, user_id: int) -> bool:
    row = conn.execute("SELECT owner_id FROM org_groups WHERE id = ?", (group_id,)).fetchone()
    return bool(row) and row["owner_id"] == user_id


def check_section_access(conn: sqlite3.Connection, section_id: int, user_id: int) -> bool:
    row = conn.execute("SELECT owner_id FROM catalog_sections WHERE id = ?", (section_id,)).fetchone()
    return bool(row) and row["owner_id"] == user_id


def can_access_product(conn: sqlite3.Connection, actor: AuthContext, product_id: int) -> bool:
    """Scope-aware wrapper: always true for scope ``all``."""
    if not actor.is_own_scope:
        return True
    return check_product_access(conn, product_id, actor.user_id)


def can_access_group(conn: sqlite3.Connection, actor: AuthContext, group_id: int) -> bool:
    if not actor.is_own_scope:
        return True
    return check_group_access(conn, group_id, actor.user_id)


def can_access_section(conn: sqlite3.Connection, actor: AuthContext, section_id: int) -> bool:
    if not actor.is_own_scope:
        return True
    return check_section_access(conn, section_id, actor.user_id)
