"""
Tests for the group and user editors.
"""

import json


def audit_details(db, action):
    row = db.execute("SELECT details FROM audit_logs WHERE action = ? ORDER BY id DESC", (action,)).fetchone()
    return json.loads(row["details"]) if row else None


def test_create_group(client, admin_headers, db):
    payload = {"name": "Field-Team", "ownerId": 4, "description": "On-site crew", "email": "field@example.com"}
    response = client.post("/api/v1/groups/", json=payload, headers=admin_headers)
    assert response.status_code == 201
    group_id = response.json()["data"]["id"]
    row = db.execute("SELECT * FROM org_groups WHERE id = ?", (group_id,)).fetchone()
    assert row["owner_id"] == 4
    assert row["status"] == "active"
    assert row["created_by"] == 1
    assert audit_details(db, "groups.create.added") == {"name": "Field-Team", "ownerId": 4}


def test_create_group_own_scope_owns_it(client, manager_headers, db):
    """ownerId is ignored for a caller with scope own"""
    response = client.post("/api/v1/groups/", json={"name": "Night-Shift", "ownerId": 1}, headers=manager_headers)
    group_id = response.json()["data"]["id"]
    assert db.execute("SELECT owner_id FROM org_groups WHERE id = ?", (group_id,)).fetchone()["owner_id"] == 2


def test_create_group_name_taken_ignores_case(client, admin_headers):
    response = client.post("/api/v1/groups/", json={"name": "specialists"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "UNIQUE_CONSTRAINT_VIOLATION"
    assert response.json()["message"] == "Group name is already taken"


def test_create_group_rejects_bad_input(client, admin_headers, db):
    spaced = client.post("/api/v1/groups/", json={"name": "Two words"}, headers=admin_headers)
    assert spaced.json()["message"] == "Group name can only contain latin letters, numbers and hyphens"
    status = client.post("/api/v1/groups/", json={"name": "Crew", "status": "paused"}, headers=admin_headers)
    assert status.status_code == 400
    owner = client.post("/api/v1/groups/", json={"name": "Crew", "ownerId": 999}, headers=admin_headers)
    assert owner.json()["message"] == "Group owner does not exist"
    assert db.execute("SELECT 1 FROM org_groups WHERE name = 'Crew'").fetchone() is None


def test_fetch_group(client, admin_headers):
    data = client.get("/api/v1/groups/1", headers=admin_headers).json()["data"]
    assert data["name"] == "Specialists"
    assert data["owner"] == "manager"
    assert data["memberCount"] == 2
    assert data["isSystem"] is False


def test_fetch_group_scope_and_missing(client, admin_headers, manager_headers):
    assert client.get("/api/v1/groups/2", headers=manager_headers).status_code == 403
    missing = client.get("/api/v1/groups/999", headers=admin_headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "NOT_FOUND_ERROR"


def test_update_group_writes_given_fields(client, manager_headers, db):
    response = client.put(
        "/api/v1/groups/1", json={"description": "Product experts", "status": "disabled"}, headers=manager_headers
    )
    assert response.json()["message"] == "Group updated successfully"
    row = db.execute("SELECT * FROM org_groups WHERE id = 1").fetchone()
    assert row["name"] == "Specialists"
    assert row["description"] == "Product experts"
    assert row["status"] == "disabled"
    assert row["modified_by"] == 2
    assert row["modified_at"] is not None
    assert audit_details(db, "groups.update.changed") == {"fields": ["status", "description"]}


def test_update_group_of_other_owner_is_denied(client, manager_headers, db):
    response = client.put("/api/v1/groups/2", json={"name": "Ops"}, headers=manager_headers)
    assert response.status_code == 403
    assert db.execute("SELECT name FROM org_groups WHERE id = 2").fetchone()["name"] == "Operations"


def test_update_group_rename_to_taken_name(client, admin_headers):
    response = client.put("/api/v1/groups/2", json={"name": "SPECIALISTS"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "UNIQUE_CONSTRAINT_VIOLATION"
    # Keeping its own name is not a conflict.
    same = client.put("/api/v1/groups/2", json={"name": "Operations"}, headers=admin_headers)
    assert same.json()["success"] is True


def test_fetch_user(client, admin_headers):
    data = client.get("/api/v1/users/3", headers=admin_headers).json()["data"]
    assert data["username"] == "alice"
    assert data["name"] == "Alice Smith"
    assert [group["name"] for group in data["groups"]] == ["Specialists"]


def test_fetch_unknown_user(client, admin_headers):
    response = client.get("/api/v1/users/999", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "User not found"


def test_update_user_records_old_and_new_values(client, admin_headers, db):
    response = client.put(
        "/api/v1/users/4", json={"lastName": "Baker", "accountStatus": "disabled", "firstName": "Bob"}, headers=admin_headers
    )
    assert response.json()["message"] == "User data updated successfully"
    row = db.execute("SELECT last_name, account_status FROM users WHERE id = 4").fetchone()
    assert (row["last_name"], row["account_status"]) == ("Baker", "disabled")
    changes = audit_details(db, "users.update.changed")["changes"]
    assert changes == {
        "last_name": {"old": "Builder", "new": "Baker"},
        "account_status": {"old": "active", "new": "disabled"},
    }


def test_update_user_without_changes(client, admin_headers, db):
    response = client.put("/api/v1/users/4", json={"username": "bob"}, headers=admin_headers)
    assert response.json()["message"] == "No changes detected"
    assert audit_details(db, "users.update.changed") is None


def test_update_user_rejects_taken_username_and_email(client, admin_headers):
    username = client.put("/api/v1/users/4", json={"username": "Alice"}, headers=admin_headers)
    assert username.json()["message"] == "Username is already taken"
    email = client.put("/api/v1/users/4", json={"email": "ALICE@example.com"}, headers=admin_headers)
    assert email.json()["message"] == "Email is already registered"
    assert email.json()["code"] == "UNIQUE_CONSTRAINT_VIOLATION"


def test_update_user_rejects_unknown_status(client, admin_headers):
    response = client.put("/api/v1/users/4", json={"accountStatus": "gone"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid account_status. Must be one of: active")


def test_update_user_needs_full_org_scope(client, manager_headers, db):
    response = client.put("/api/v1/users/4", json={"lastName": "Baker"}, headers=manager_headers)
    assert response.status_code == 403
    assert db.execute("SELECT last_name FROM users WHERE id = 4").fetchone()["last_name"] == "Builder"
