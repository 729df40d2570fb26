"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), the per-request FastAPI dependency (``get_db``),
an explicit transaction scope (``transaction``) and the migration
runner applied on application start (``init_db``).

Connections are opened in autocommit mode so that every multi-statement
write is wrapped in an explicit ``BEGIN``/``COMMIT``/``ROLLBACK`` issued
by ``transaction``.  The migration mechanism stores applied migration
versions in the ``migrations`` table and executes new migrations in
order.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import settings

logger = logging.getLogger(__name__)


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # backoffice_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` objects.  ``isolation_level``
    is ``None`` so the driver never opens implicit transactions; use
    ``transaction`` for atomic writes.  ``check_same_thread`` is
    disabled because FastAPI may resolve a dependency on a worker
    thread and run the endpoint on the event loop thread; a connection
    is still never shared between requests.
    """
    conn = sqlite3.connect(get_database_path(), isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # Foreign keys are off by default in SQLite and must be enabled per
    # connection, otherwise ON DELETE CASCADE is silently ignored.
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_db() -> Iterator[sqlite3.Connection]:
    """FastAPI dependency yielding one connection per request."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """Run the enclosed block inside ``BEGIN``/``COMMIT``.

    Any exception rolls the transaction back and is re-raised
    unchanged so callers can translate it.
    """
    cursor = conn.cursor()
    cursor.execute("BEGIN")
    try:
        yield cursor
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
    finally:
        cursor.close()


PRODUCT_STATUSES = ("draft", "active", "on hold", "discontinued")

ROLE_PERMISSIONS = {
    1: (
        "admin",
        [
            "admin.org:all",
            "admin.products:all",
            "admin.catalog:all",
            "admin.settings:all",
            "admin.audit:all",
        ],
    ),
    2: ("product_manager", ["admin.org:own", "admin.products:own", "admin.catalog:own"]),
    3: ("user", []),
}

MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: organisation schema
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            permissions TEXT
        );

        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            uuid TEXT NOT NULL UNIQUE DEFAULT (lower(hex(randomblob(16)))),
            username TEXT NOT NULL UNIQUE COLLATE NOCASE,
            email TEXT UNIQUE COLLATE NOCASE,
            first_name TEXT,
            last_name TEXT,
            password TEXT,
            role_id INTEGER,
            is_staff INTEGER NOT NULL DEFAULT 0,
            account_status TEXT NOT NULL DEFAULT 'active',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(role_id) REFERENCES roles(id)
        );

        CREATE TABLE IF NOT EXISTS org_groups (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE COLLATE NOCASE,
            status TEXT NOT NULL DEFAULT 'active',
            owner_id INTEGER,
            is_system INTEGER NOT NULL DEFAULT 0,
            description TEXT,
            email TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            modified_by INTEGER,
            modified_at TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS group_members (
            group_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            added_by INTEGER,
            left_at TIMESTAMP,
            PRIMARY KEY (group_id, user_id),
            FOREIGN KEY(group_id) REFERENCES org_groups(id) ON DELETE CASCADE,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_group_members_user_id ON group_members(user_id);

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            type TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_audit_logs_object ON audit_logs(object_type, object_id);
        """,
    ),
    # Migration 2: products and their relationships
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_code TEXT NOT NULL UNIQUE COLLATE NOCASE,
            translation_key TEXT NOT NULL UNIQUE COLLATE NOCASE,
            status_code TEXT NOT NULL DEFAULT 'draft'
                CHECK (status_code IN ('draft', 'active', 'on hold', 'discontinued')),
            can_be_option INTEGER NOT NULL DEFAULT 0,
            option_only INTEGER NOT NULL DEFAULT 0,
            is_published INTEGER NOT NULL DEFAULT 0,
            is_visible_owner INTEGER NOT NULL DEFAULT 0,
            is_visible_groups INTEGER NOT NULL DEFAULT 0,
            is_visible_tech_specs INTEGER NOT NULL DEFAULT 0,
            is_visible_long_description INTEGER NOT NULL DEFAULT 0,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_by INTEGER,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS product_translations (
            product_id INTEGER NOT NULL,
            language_code TEXT NOT NULL,
            name TEXT NOT NULL,
            short_desc TEXT NOT NULL,
            long_desc TEXT,
            tech_specs TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_by INTEGER,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (product_id, language_code),
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS product_users (
            product_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            role_type TEXT NOT NULL DEFAULT 'owner',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (product_id, user_id, role_type),
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        -- A product has at most one current owner.
        CREATE UNIQUE INDEX IF NOT EXISTS uq_product_users_owner
            ON product_users(product_id) WHERE role_type = 'owner';

        CREATE TABLE IF NOT EXISTS product_groups (
            product_id INTEGER NOT NULL,
            group_id INTEGER NOT NULL,
            role_type TEXT NOT NULL DEFAULT 'product_specialists',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (product_id, group_id, role_type),
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE,
            FOREIGN KEY(group_id) REFERENCES org_groups(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS product_options (
            main_product_id INTEGER NOT NULL,
            option_product_id INTEGER NOT NULL,
            is_required INTEGER NOT NULL DEFAULT 0,
            units_count INTEGER,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_by INTEGER,
            updated_at TIMESTAMP,
            PRIMARY KEY (main_product_id, option_product_id),
            CHECK (main_product_id <> option_product_id),
            CHECK (
                (is_required = 1 AND units_count BETWEEN 1 AND 100)
                OR (is_required = 0 AND units_count IS NULL)
            ),
            FOREIGN KEY(main_product_id) REFERENCES products(id) ON DELETE CASCADE,
            FOREIGN KEY(option_product_id) REFERENCES products(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS regions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        );

        CREATE TABLE IF NOT EXISTS taxable_categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        );

        CREATE TABLE IF NOT EXISTS product_regions (
            product_id INTEGER NOT NULL,
            region_id INTEGER NOT NULL,
            taxable_category_id INTEGER,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (product_id, region_id),
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE,
            FOREIGN KEY(region_id) REFERENCES regions(id) ON DELETE CASCADE,
            FOREIGN KEY(taxable_category_id) REFERENCES taxable_categories(id)
        );

        INSERT OR IGNORE INTO regions (name) VALUES ('Default'), ('North'), ('South');
        INSERT OR IGNORE INTO taxable_categories (name) VALUES ('Standard'), ('Reduced'), ('Exempt');
        """,
    ),
    # Migration 3: catalog sections and publication bindings
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS catalog_sections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE COLLATE NOCASE,
            description TEXT,
            owner_id INTEGER,
            status TEXT NOT NULL DEFAULT 'active',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_by INTEGER,
            updated_at TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS section_products (
            section_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            published_by INTEGER,
            published_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (section_id, product_id),
            FOREIGN KEY(section_id) REFERENCES catalog_sections(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_section_products_product_id ON section_products(product_id);
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    ``MIGRATIONS``.  If you add a new migration, append it with an
    incremented version number.  Default roles and their permission
    lists are (re)seeded on every start.
    """
    conn = get_connection()
    try:
        conn.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        row = conn.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                # executescript commits any pending transaction itself, so
                # the version bookkeeping runs as a separate statement.
                conn.executescript(sql)
                conn.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
                logger.info("Applied migration %s", version)
                current_version = version

        with transaction(conn) as cursor:
            for role_id, (name, permissions) in ROLE_PERMISSIONS.items():
                cursor.execute(
                    "INSERT INTO roles (id, name, permissions) VALUES (?, ?, ?)"
                    " ON CONFLICT(id) DO UPDATE SET name = excluded.name, permissions = excluded.permissions",
                    (role_id, name, json.dumps(permissions)),
                )
    finally:
        conn.close()
