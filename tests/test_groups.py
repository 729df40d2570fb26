"""
Tests for group membership, ownership transfer and deletion.
"""

from backoffice_api.app.core.runtime_settings import (
    ADD_ONLY_ACTIVE_USERS_TO_GROUPS,
    SettingsSnapshot,
    get_settings_snapshot,
)
from backoffice_api.app.main import app
from backoffice_api.app.queries import org as org_queries


def active_members(db, group_id):
    rows = db.execute("SELECT user_id FROM group_members WHERE group_id = ? AND is_active = 1", (group_id,))
    return {row["user_id"] for row in rows.fetchall()}


def test_add_users_reports_every_category(client, admin_headers, db):
    """Missing, ineligible and added users are all counted in the message"""
    response = client.post(
        "/api/v1/groups/2/add-users-to-group", json={"userIds": [3, 4, 5, 999]}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert body["message"] == (
        "2 user(s) successfully added to the group, 1 user(s) not found,"
        " 1 user(s) skipped due to account status restrictions"
    )
    assert active_members(db, 2) == {3, 4}


def test_add_users_reactivates_former_member(client, admin_headers, db):
    """An inactive membership row is reactivated instead of duplicated"""
    client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [4]}, headers=admin_headers)
    rows = db.execute("SELECT is_active, left_at FROM group_members WHERE group_id = 2 AND user_id = 4").fetchall()
    assert len(rows) == 1
    assert rows[0]["is_active"] == 1
    assert rows[0]["left_at"] is None


def test_add_users_already_members(client, admin_headers):
    """Nothing to add when every user is already an active member"""
    response = client.post("/api/v1/groups/1/add-users-to-group", json={"userIds": [2, 3]}, headers=admin_headers)
    body = response.json()
    assert body["count"] == 0
    assert body["message"] == "All users are already members of this group"


def test_add_users_only_ineligible(client, admin_headers, db):
    """Only blocked users means no write and success false"""
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [5]}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "No eligible users to add due to account status restrictions"
    assert 5 not in active_members(db, 2)


def test_add_users_setting_off_allows_blocked_accounts(client, admin_headers, db):
    """With the switch off, account status no longer matters"""
    app.dependency_overrides[get_settings_snapshot] = lambda: SettingsSnapshot({ADD_ONLY_ACTIVE_USERS_TO_GROUPS: False})
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [5]}, headers=admin_headers)
    assert response.json()["count"] == 1
    assert 5 in active_members(db, 2)


def test_add_users_setting_changed_through_api(client, admin_headers, db):
    """The runtime setting written via /settings is honoured on the next request"""
    stored = client.post(
        f"/api/v1/settings/{ADD_ONLY_ACTIVE_USERS_TO_GROUPS}", json={"value": False, "type": "bool"}, headers=admin_headers
    )
    assert stored.status_code == 200
    assert stored.json()["value"] is False
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [5]}, headers=admin_headers)
    assert response.json()["count"] == 1


def test_add_users_records_added_by_override(client, admin_headers, db):
    """addedBy from the body is stored as the adding user"""
    client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [3], "addedBy": 4}, headers=admin_headers)
    row = db.execute("SELECT added_by FROM group_members WHERE group_id = 2 AND user_id = 3").fetchone()
    assert row["added_by"] == 4


def test_add_users_no_valid_users(client, admin_headers):
    """Zero existing users is a validation error"""
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [998, 999]}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_add_users_unknown_group(client, admin_headers):
    """A missing group is reported as not found with status 400"""
    response = client.post("/api/v1/groups/999/add-users-to-group", json={"userIds": [3]}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "NOT_FOUND_ERROR"


def test_add_users_own_scope_needs_group_ownership(client, manager_headers):
    """Scope own may not manage members of someone else's group"""
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [3]}, headers=manager_headers)
    assert response.status_code == 403


def test_add_users_rolls_back_on_insert_failure(client, admin_headers, db, monkeypatch):
    """A failing insert undoes the inserts made before it"""
    plain_insert = (
        "INSERT INTO group_members (group_id, user_id, is_active, joined_at, added_by, left_at)"
        " VALUES (?, ?, 1, CURRENT_TIMESTAMP, ?, NULL)"
    )
    monkeypatch.setattr(org_queries, "UPSERT_MEMBERSHIP", plain_insert)
    # alice (3) inserts fine, bob (4) collides with his inactive row.
    response = client.post("/api/v1/groups/2/add-users-to-group", json={"userIds": [3, 4]}, headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_SERVER_ERROR"
    assert "details" not in response.json()
    assert db.execute("SELECT 1 FROM group_members WHERE group_id = 2 AND user_id = 3").fetchone() is None
    error = db.execute("SELECT 1 FROM audit_logs WHERE action = 'groups.add_users.error'").fetchone()
    assert error is not None


def test_add_user_to_groups(client, admin_headers, db):
    """One user can be added to several groups at once"""
    response = client.post("/api/v1/users/6/add-user-to-groups", json={"groupIds": [1, 2, 999]}, headers=admin_headers)
    body = response.json()
    assert body["count"] == 2
    assert "1 group(s) not found" in body["message"]
    assert 6 in active_members(db, 1)
    assert 6 in active_members(db, 2)


def test_add_user_to_groups_skips_foreign_groups_for_own_scope(client, manager_headers, db):
    """Groups the caller does not own are skipped, owned ones are joined"""
    response = client.post("/api/v1/users/6/add-user-to-groups", json={"groupIds": [1, 2]}, headers=manager_headers)
    body = response.json()
    assert body["count"] == 1
    assert "1 group(s) skipped: access denied" in body["message"]
    assert 6 not in active_members(db, 2)


def test_change_owner(client, admin_headers, db):
    """Owner and modification stamps change together"""
    response = client.post("/api/v1/groups/2/change-owner", json={"newOwnerId": 3}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Group owner changed successfully", "oldOwnerId": 1}
    row = db.execute("SELECT owner_id, modified_by, modified_at FROM org_groups WHERE id = 2").fetchone()
    assert row["owner_id"] == 3
    assert row["modified_by"] == 1
    assert row["modified_at"] is not None


def test_change_owner_by_username(client, admin_headers, db):
    """The new owner may be given by username"""
    client.post("/api/v1/groups/2/change-owner", json={"newOwnerUsername": "bob"}, headers=admin_headers)
    assert db.execute("SELECT owner_id FROM org_groups WHERE id = 2").fetchone()["owner_id"] == 4


def test_change_owner_to_current_owner_is_noop(client, admin_headers, db):
    """Setting the same owner succeeds without touching the row"""
    response = client.post("/api/v1/groups/2/change-owner", json={"newOwnerId": 1}, headers=admin_headers)
    assert response.json()["message"] == "The specified user is already the owner of this group"
    assert db.execute("SELECT modified_at FROM org_groups WHERE id = 2").fetchone()["modified_at"] is None


def test_change_owner_unknown_user(client, admin_headers):
    """A missing new owner is a validation error"""
    response = client.post("/api/v1/groups/2/change-owner", json={"newOwnerId": 999}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "New owner user not found"


def test_change_owner_requires_a_target(client, admin_headers):
    """Either newOwnerId or newOwnerUsername must be present"""
    response = client.post("/api/v1/groups/2/change-owner", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_change_owner_unknown_group(client, admin_headers):
    response = client.post("/api/v1/groups/999/change-owner", json={"newOwnerId": 3}, headers=admin_headers)
    assert response.json()["code"] == "NOT_FOUND_ERROR"


def test_remove_members_deactivates_rows(client, admin_headers, db):
    """Removed members stay as inactive rows"""
    response = client.post("/api/v1/groups/1/members/remove", json={"userIds": [3]}, headers=admin_headers)
    assert response.json()["data"]["removedCount"] == 1
    assert active_members(db, 1) == {2}
    members = client.get("/api/v1/groups/1/members", headers=admin_headers).json()
    assert [member["username"] for member in members["members"]] == ["manager"]


def test_remove_user_from_groups(client, admin_headers, db):
    response = client.post("/api/v1/users/3/remove-from-groups", json={"groupIds": [1, 2]}, headers=admin_headers)
    data = response.json()["data"]
    assert data["removedCount"] == 1
    assert data["removedGroupIds"] == [1]


def test_delete_groups_partial_success(client, admin_headers, db):
    """System and unknown groups are reported, the rest deleted"""
    response = client.post("/api/v1/groups/delete-selected", json={"groupIds": [2, 3, 999]}, headers=admin_headers)
    data = response.json()["data"]
    assert data["totalDeleted"] == 1
    errors = {error["id"]: error["error"] for error in data["errors"]}
    assert errors == {3: "System group cannot be deleted", 999: "Group not found or already deleted"}
    assert db.execute("SELECT 1 FROM org_groups WHERE id = 2").fetchone() is None
    assert db.execute("SELECT 1 FROM group_members WHERE group_id = 2").fetchone() is None


def test_list_groups(client, admin_headers):
    body = client.get("/api/v1/groups/", params={"search": "spec"}, headers=admin_headers).json()
    assert body["pagination"]["totalItems"] == 1
    assert body["groups"][0]["name"] == "Specialists"
    assert body["groups"][0]["memberCount"] == 2


def test_list_groups_own_scope_sees_owned_groups(client, manager_headers):
    """A manager lists only the groups they own"""
    body = client.get("/api/v1/groups/", headers=manager_headers).json()
    assert [group["name"] for group in body["groups"]] == ["Specialists"]
    assert body["pagination"]["totalItems"] == 1


def test_list_members_of_foreign_group_is_denied(client, manager_headers):
    response = client.get("/api/v1/groups/2/members", headers=manager_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_ERROR"


def test_list_members_of_own_group(client, manager_headers):
    body = client.get("/api/v1/groups/1/members", headers=manager_headers).json()
    assert [member["username"] for member in body["members"]] == ["alice", "manager"]
    assert body["total"] == 2
