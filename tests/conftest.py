import pytest
from fastapi.testclient import TestClient

from backoffice_api.app.core.config import settings
from backoffice_api.app.core.db import get_connection, init_db, transaction
from backoffice_api.app.core.security import create_access_token, hash_password
from backoffice_api.app.main import app

ADMIN_PASSWORD = "admin-password-1"

# id, username, email, first_name, last_name, role_id, account_status
USERS = [
    (1, "admin", "admin@example.com", "Ada", "Admin", 1, "active"),
    (2, "manager", "manager@example.com", "Mia", "Manager", 2, "active"),
    (3, "alice", "alice@example.com", "Alice", "Smith", 3, "active"),
    (4, "bob", "bob@example.com", "Bob", "Builder", 3, "active"),
    (5, "carol", "carol@example.com", "Carol", "Stone", 3, "blocked"),
    (6, "dave", "dave@example.com", None, None, 3, "active"),
    (7, "nobody", "nobody@example.com", "No", "Body", 3, "active"),
]

# id, name, owner_id, is_system
GROUPS = [
    (1, "Specialists", 2, 0),
    (2, "Operations", 1, 0),
    (3, "System", 1, 1),
]

# group_id, user_id, is_active
MEMBERSHIPS = [
    (1, 2, 1),
    (1, 3, 1),
    (2, 4, 0),
]

# id, code, translation_key, status_code, can_be_option, owner_id
PRODUCTS = [
    (1, "CHAIR-001", "products.chair001", "draft", 0, 2),
    (2, "DESK-001", "products.desk001", "active", 1, 1),
    (3, "LAMP-001", "products.lamp001", "active", 1, 1),
    (4, "CABLE-001", "products.cable001", "active", 1, 1),
    (5, "SOFA-001", "products.sofa001", "draft", 0, 1),
]

# id, name, owner_id
SECTIONS = [
    (1, "Office", 1),
    (2, "Home", 1),
    (3, "Outlet", 2),
]


def seed(conn):
    with transaction(conn) as cur:
        for user_id, username, email, first_name, last_name, role_id, status in USERS:
            password = hash_password(ADMIN_PASSWORD) if username == "admin" else None
            cur.execute(
                "INSERT INTO users (id, username, email, first_name, last_name, password, role_id, account_status)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (user_id, username, email, first_name, last_name, password, role_id, status),
            )
        for group_id, name, owner_id, is_system in GROUPS:
            cur.execute(
                "INSERT INTO org_groups (id, name, owner_id, is_system, created_by) VALUES (?, ?, ?, ?, 1)",
                (group_id, name, owner_id, is_system),
            )
        for group_id, user_id, is_active in MEMBERSHIPS:
            cur.execute(
                "INSERT INTO group_members (group_id, user_id, is_active, added_by) VALUES (?, ?, ?, 1)",
                (group_id, user_id, is_active),
            )
        for product_id, code, key, status, can_be_option, owner_id in PRODUCTS:
            cur.execute(
                "INSERT INTO products (id, product_code, translation_key, status_code, can_be_option, created_by)"
                " VALUES (?, ?, ?, ?, ?, 1)",
                (product_id, code, key, status, can_be_option),
            )
            cur.execute(
                "INSERT INTO product_users (product_id, user_id, role_type, created_by) VALUES (?, ?, 'owner', 1)",
                (product_id, owner_id),
            )
            cur.execute(
                "INSERT INTO product_translations (product_id, language_code, name, short_desc)"
                " VALUES (?, 'en', ?, ?)",
                (product_id, f"{code.title()} name", f"Short description of {code}"),
            )
        # The manager reaches SOFA-001 through the Specialists group.
        cur.execute(
            "INSERT INTO product_groups (product_id, group_id, role_type, created_by)"
            " VALUES (5, 1, 'product_specialists', 1)"
        )
        for section_id, name, owner_id in SECTIONS:
            cur.execute(
                "INSERT INTO catalog_sections (id, name, owner_id, created_by) VALUES (?, ?, ?, 1)",
                (section_id, name, owner_id),
            )


def auth_headers(username: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': username})}"}


@pytest.fixture(name="db_path")
def db_path_fixture(tmp_path, monkeypatch):
    """Fresh database file with schema and seed data for every test"""
    path = tmp_path / "backoffice.db"
    monkeypatch.setattr(settings, "database_url", str(path))
    init_db()
    conn = get_connection()
    try:
        seed(conn)
    finally:
        conn.close()
    return path


@pytest.fixture(name="db")
def db_fixture(db_path):
    """Connection for inspecting state after requests"""
    conn = get_connection()
    yield conn
    conn.close()


@pytest.fixture(name="client")
def client_fixture(db_path):
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="admin_headers")
def admin_headers_fixture():
    return auth_headers("admin")


@pytest.fixture(name="manager_headers")
def manager_headers_fixture():
    return auth_headers("manager")


@pytest.fixture(name="user_headers")
def user_headers_fixture():
    return auth_headers("alice")
