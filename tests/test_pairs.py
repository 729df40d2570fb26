"""
Tests for product-option pairs.

Pair rules: no self-pairing, a required option carries 1..100 units and
an optional one none.  Violations are rejected before anything is
written.
"""

import pytest


def stored_pairs(db, main_id):
    rows = db.execute(
        "SELECT option_product_id, is_required, units_count FROM product_options WHERE main_product_id = ?"
        " ORDER BY option_product_id",
        (main_id,),
    ).fetchall()
    return {row["option_product_id"]: (bool(row["is_required"]), row["units_count"]) for row in rows}


def pair(option_id, required=False, units=None):
    return {"optionProductId": option_id, "isRequired": required, "unitsCount": units}


@pytest.fixture(name="paired")
def paired_fixture(client, admin_headers):
    """CHAIR-001 paired with DESK-001 (required, 2 units) and LAMP-001"""
    response = client.post(
        "/api/v1/products/pairs/create",
        json={"mainProductId": 1, "pairs": [pair(2, True, 2), pair(3)]},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


def test_create_pairs(paired, db):
    assert paired["createdCount"] == 2
    assert stored_pairs(db, 1) == {2: (True, 2), 3: (False, None)}


def test_create_existing_pair_conflicts(client, admin_headers, paired, db):
    """Creating an existing pair fails and writes nothing"""
    response = client.post(
        "/api/v1/products/pairs/create",
        json={"mainProductId": 1, "pairs": [pair(4), pair(3)]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Conflict: pairs already exist for some option ids: 3"
    assert 4 not in stored_pairs(db, 1)


@pytest.mark.parametrize(
    "bad_pair",
    [
        pair(1),
        pair(2, True, None),
        pair(2, True, 0),
        pair(2, True, 101),
        pair(2, False, 5),
    ],
)
def test_invalid_pairs_are_rejected_before_writing(client, admin_headers, db, bad_pair):
    """Self-pairing and units rules are enforced for the whole request"""
    response = client.post(
        "/api/v1/products/pairs/create",
        json={"mainProductId": 1, "pairs": [pair(3), bad_pair]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert stored_pairs(db, 1) == {}


def test_pairs_cap(client, admin_headers):
    pairs = [pair(option_id) for option_id in range(10, 211)]
    response = client.post("/api/v1/products/pairs/replace", json={"mainProductId": 1, "pairs": pairs}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Pairs exceed limit 200"


def test_unknown_option_product(client, admin_headers):
    response = client.post(
        "/api/v1/products/pairs/create", json={"mainProductId": 1, "pairs": [pair(999)]}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Option products not found: 999"


def test_unknown_main_product(client, admin_headers):
    response = client.post(
        "/api/v1/products/pairs/create", json={"mainProductId": 999, "pairs": [pair(2)]}, headers=admin_headers
    )
    assert response.json()["code"] == "NOT_FOUND_ERROR"


def test_read_pairs_modes(client, admin_headers, paired):
    url = "/api/v1/products/pairs/read"
    ids = client.post(url, json={"mainProductId": 1, "mode": "ids"}, headers=admin_headers).json()
    assert ids["optionProductIds"] == [2, 3]
    records = client.post(
        url, json={"mainProductId": 1, "mode": "records", "optionProductIds": [2, 4]}, headers=admin_headers
    ).json()
    assert records["pairs"] == [{"optionProductId": 2, "isRequired": True, "unitsCount": 2}]
    exists = client.post(
        url, json={"mainProductId": 1, "mode": "exists", "optionProductIds": [3, 4]}, headers=admin_headers
    ).json()
    assert exists["existsMap"] == {"3": True, "4": False}


def test_update_pairs_counts_only_real_changes(client, admin_headers, paired, db):
    """Pairs whose attributes already match are not counted"""
    response = client.post(
        "/api/v1/products/pairs/update",
        json={"mainProductId": 1, "pairs": [pair(2, True, 2), pair(3, True, 4)]},
        headers=admin_headers,
    )
    body = response.json()
    assert body["updatedCount"] == 1
    assert body["updated"] == [3]
    assert stored_pairs(db, 1) == {2: (True, 2), 3: (True, 4)}


def test_update_missing_pair(client, admin_headers, paired, db):
    """Updating a pair that does not exist writes nothing"""
    response = client.post(
        "/api/v1/products/pairs/update",
        json={"mainProductId": 1, "pairs": [pair(2, True, 9), pair(4)]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "NOT_FOUND_ERROR"
    assert response.json()["details"]["missingOptionIds"] == [4]
    assert stored_pairs(db, 1)[2] == (True, 2)


def test_delete_selected_pairs(client, admin_headers, paired, db):
    response = client.post(
        "/api/v1/products/pairs/delete",
        json={"mainProductId": 1, "all": False, "selectedOptionIds": [3, 4]},
        headers=admin_headers,
    )
    body = response.json()
    assert body["totalDeleted"] == 1
    assert body["missingOptionIds"] == [4]
    assert stored_pairs(db, 1) == {2: (True, 2)}


def test_delete_all_pairs(client, admin_headers, paired, db):
    response = client.post("/api/v1/products/pairs/delete", json={"mainProductId": 1, "all": True}, headers=admin_headers)
    assert response.json()["totalDeleted"] == 2
    assert stored_pairs(db, 1) == {}


def test_replace_pairs_reconciles_to_target(client, admin_headers, paired, db):
    """After replace the stored set equals the target exactly"""
    target = [pair(3, True, 1), pair(4)]
    response = client.post("/api/v1/products/pairs/replace", json={"mainProductId": 1, "pairs": target}, headers=admin_headers)
    body = response.json()
    assert (body["addedCount"], body["removedCount"], body["updatedCount"]) == (1, 1, 1)
    assert not set(body["added"]) & set(body["removed"])
    assert stored_pairs(db, 1) == {3: (True, 1), 4: (False, None)}


def test_replace_with_empty_list_removes_all(client, admin_headers, paired, db):
    response = client.post("/api/v1/products/pairs/replace", json={"mainProductId": 1, "pairs": []}, headers=admin_headers)
    assert response.json()["removedCount"] == 2
    assert stored_pairs(db, 1) == {}


def test_pairs_own_scope(client, manager_headers):
    """Scope own cannot touch pairs of another user's product"""
    response = client.post(
        "/api/v1/products/pairs/create", json={"mainProductId": 2, "pairs": [pair(3)]}, headers=manager_headers
    )
    assert response.status_code == 403


def test_pairs_audit_trail(client, admin_headers, paired, db):
    """A successful call leaves entry, change and success records"""
    actions = [
        row["action"]
        for row in db.execute(
            "SELECT action FROM audit_logs WHERE action LIKE 'products.pairs.create.%' ORDER BY id"
        ).fetchall()
    ]
    assert actions == ["products.pairs.create.added", "products.pairs.create.success"]
