"""
Tests for catalog sections.
"""


def section_row(db, section_id):
    return db.execute("SELECT * FROM catalog_sections WHERE id = ?", (section_id,)).fetchone()


def test_list_sections(client, admin_headers):
    sections = client.get("/api/v1/catalog/sections", headers=admin_headers).json()["sections"]
    assert [section["name"] for section in sections] == ["Home", "Office", "Outlet"]


def test_list_sections_own_scope(client, manager_headers):
    sections = client.get("/api/v1/catalog/sections", headers=manager_headers).json()["sections"]
    assert [section["name"] for section in sections] == ["Outlet"]


def test_catalog_requires_permission(client, user_headers):
    assert client.get("/api/v1/catalog/sections", headers=user_headers).status_code == 403


def test_create_section(client, admin_headers, db):
    response = client.post(
        "/api/v1/catalog/sections",
        json={"name": "Garden", "description": "Outdoor", "ownerId": 2},
        headers=admin_headers,
    )
    assert response.status_code == 201
    row = section_row(db, response.json()["data"]["id"])
    assert (row["name"], row["owner_id"], row["status"]) == ("Garden", 2, "active")


def test_create_section_own_scope_owns_it(client, manager_headers, db):
    """A caller with scope own cannot create sections for someone else"""
    response = client.post("/api/v1/catalog/sections", json={"name": "Garden", "ownerId": 1}, headers=manager_headers)
    assert response.status_code == 201
    assert section_row(db, response.json()["data"]["id"])["owner_id"] == 2


def test_create_duplicate_section(client, admin_headers):
    response = client.post("/api/v1/catalog/sections", json={"name": "office"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "UNIQUE_CONSTRAINT_VIOLATION"


def test_create_section_invalid_status(client, admin_headers):
    response = client.post("/api/v1/catalog/sections", json={"name": "Garden", "status": "hidden"}, headers=admin_headers)
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_section_unknown_owner(client, admin_headers):
    response = client.post("/api/v1/catalog/sections", json={"name": "Garden", "ownerId": 99}, headers=admin_headers)
    assert response.json()["message"] == "Section owner not found"


def test_update_section(client, admin_headers, db):
    response = client.put("/api/v1/catalog/sections/1", json={"status": "inactive"}, headers=admin_headers)
    assert response.json()["success"] is True
    row = section_row(db, 1)
    assert (row["name"], row["status"]) == ("Office", "inactive")
    assert row["updated_by"] == 1


def test_update_section_to_taken_name(client, admin_headers):
    response = client.put("/api/v1/catalog/sections/1", json={"name": "HOME"}, headers=admin_headers)
    assert response.json()["code"] == "UNIQUE_CONSTRAINT_VIOLATION"


def test_update_section_keeps_own_name(client, admin_headers, db):
    response = client.put("/api/v1/catalog/sections/1", json={"name": "OFFICE"}, headers=admin_headers)
    assert response.json()["success"] is True
    assert section_row(db, 1)["name"] == "OFFICE"


def test_update_unknown_section(client, admin_headers):
    response = client.put("/api/v1/catalog/sections/99", json={"status": "inactive"}, headers=admin_headers)
    assert response.json()["code"] == "NOT_FOUND_ERROR"


def test_update_foreign_section_own_scope(client, manager_headers):
    response = client.put("/api/v1/catalog/sections/1", json={"status": "inactive"}, headers=manager_headers)
    assert response.status_code == 403


def test_delete_sections_reports_per_item(client, manager_headers, db):
    response = client.post("/api/v1/catalog/sections/delete", json={"sectionIds": [3, 1, 99]}, headers=manager_headers)
    data = response.json()["data"]
    assert data["deletedSections"] == [{"id": 3, "name": "Outlet"}]
    assert {error["id"] for error in data["errors"]} == {1, 99}
    assert (data["totalRequested"], data["totalDeleted"], data["totalErrors"]) == (3, 1, 2)
    assert section_row(db, 3) is None
    assert section_row(db, 1) is not None


def test_delete_section_unpublishes_products(client, admin_headers, db):
    """A product left without sections is no longer published"""
    client.put(
        "/api/v1/products/update-sections-publish", json={"productId": 2, "sectionIds": [1]}, headers=admin_headers
    )
    client.put(
        "/api/v1/products/update-sections-publish", json={"productId": 3, "sectionIds": [1, 2]}, headers=admin_headers
    )
    client.post("/api/v1/catalog/sections/delete", json={"sectionIds": [1]}, headers=admin_headers)

    published = {
        row["id"]: bool(row["is_published"])
        for row in db.execute("SELECT id, is_published FROM products WHERE id IN (2, 3)").fetchall()
    }
    assert published == {2: False, 3: True}


def test_delete_sections_requires_ids(client, admin_headers):
    response = client.post("/api/v1/catalog/sections/delete", json={"sectionIds": []}, headers=admin_headers)
    assert response.status_code == 400
