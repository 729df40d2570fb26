"""
Tests for the ``BackOfficeAPI`` client, against a recorded fake session.
"""

import json

import pytest
import requests

from backoffice_client import BackOfficeAPI


def make_response(status_code, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.url = "http://backoffice.test"
    return response


class FakeSession:
    """Returns queued responses and records every request"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture(name="session")
def session_fixture():
    return FakeSession()


def make_api(session, api_key="token-1"):
    return BackOfficeAPI(base_url="http://backoffice.test/", api_key=api_key, session=session)


def test_login_keeps_token(session):
    session.responses.append(make_response(200, {"access_token": "abc", "token_type": "bearer"}))
    api = make_api(session, api_key=None)
    data, error = api.login("admin", "secret")
    assert error is None
    assert data["access_token"] == "abc"
    assert api.api_key == "abc"
    call = session.calls[0]
    assert call["url"] == "http://backoffice.test/api/v1/users/login"
    assert "Authorization" not in call["headers"]


def test_bearer_header_and_params(session):
    session.responses.append(make_response(200, {"success": True, "items": [{"id": 3}], "total": 1}))
    items, error = make_api(session).search_users("smith", limit=5)
    assert (items, error) == ([{"id": 3}], None)
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["params"] == {"query": "smith", "limit": 5}
    assert call["headers"]["Authorization"] == "Bearer token-1"


def test_service_error_is_returned(session):
    session.responses.append(
        make_response(400, {"success": False, "message": "Group not found", "code": "NOT_FOUND_ERROR"})
    )
    data, error = make_api(session).add_users_to_group(9, [3, 4])
    assert data is None
    assert error == {"status_code": 400, "message": "Group not found", "code": "NOT_FOUND_ERROR"}
    assert session.calls[0]["json"] == {"userIds": [3, 4]}


def test_network_error_is_returned(session):
    session.responses.append(requests.ConnectionError("connection refused"))
    data, error = make_api(session).delete_products([1])
    assert data is None
    assert error["status_code"] is None
    assert "connection refused" in error["message"]


def test_failed_login_keeps_old_token(session):
    session.responses.append(make_response(401, {"success": False, "message": "Invalid credentials"}))
    api = make_api(session)
    data, error = api.login("admin", "wrong")
    assert data is None
    assert error["status_code"] == 401
    assert api.api_key == "token-1"


def test_request_bodies(session):
    session.responses.extend(make_response(200, {"success": True}) for _ in range(4))
    api = make_api(session)
    api.change_group_owner(2, 4)
    api.replace_pairs(1, [{"optionProductId": 2, "isRequired": False, "unitsCount": None}])
    api.update_product_regions(2, [{"region_id": 1, "category_id": 1}])
    api.update_sections_publish(2, (1, 3))
    assert [(call["method"], call["url"].rsplit("/api/v1", 1)[1]) for call in session.calls] == [
        ("POST", "/groups/2/change-owner"),
        ("POST", "/products/pairs/replace"),
        ("PUT", "/products/2/regions"),
        ("PUT", "/products/update-sections-publish"),
    ]
    assert session.calls[0]["json"] == {"newOwnerId": 4}
    assert session.calls[3]["json"] == {"productId": 2, "sectionIds": [1, 3]}


def test_empty_response_body(session):
    session.responses.append(make_response(204))
    assert make_api(session).delete_products([1]) == (None, None)
