"""Back-office API client.

A thin wrapper around the ``/api/v1`` admin endpoints for scripts and
operators.  The client uses the ``requests`` library and never raises
for HTTP or network failures: every method returns a tuple
``(data, error)`` where exactly one side is ``None``.  ``error`` is a
dictionary with ``status_code``, ``message`` and, when the server
sent one, the error ``code``.

Authentication is a bearer token, either passed as ``api_key`` or
obtained with :meth:`login`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class BackOfficeAPI:
    """Client for the back-office admin API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        prefix: str = "/api/v1",
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Server root, e.g. ``http://localhost:8000``.
            api_key: Bearer token sent in the ``Authorization`` header.
            session: Optional requests session; one is created if omitted.
            prefix: Path prefix of the versioned API.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/") + prefix
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helper
    # ------------------------------------------------------------------
    def _request(
        self, method: str, path: str, *, params: Dict[str, Any] | None = None, json_body: Any | None = None
    ) -> Result:
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            error: Dict[str, Any] = {"status_code": status, "message": ""}
            if exc.response is not None:
                try:
                    body = exc.response.json()
                    error["message"] = body.get("message") or body.get("detail") or str(body)
                    if body.get("code"):
                        error["code"] = body["code"]
                except ValueError:
                    error["message"] = exc.response.text
            if not error["message"]:
                error["message"] = str(exc)
            logger.error("API request failed (%s): %s", status, error["message"])
            return None, error
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    # ------------------------------------------------------------------
    # Authentication and users
    # ------------------------------------------------------------------
    def login(self, username: str, password: str) -> Result:
        """Obtain a token and keep it for subsequent calls."""
        data, error = self._request("POST", "/users/login", json_body={"username": username, "password": password})
        if error:
            return None, error
        self.api_key = data["access_token"]
        return data, None

    def search_users(self, query: str, limit: Optional[int] = None) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        params: Dict[str, Any] = {"query": query}
        if limit is not None:
            params["limit"] = limit
        data, error = self._request("GET", "/users/search", params=params)
        if error:
            return [], error
        return data.get("items", []), None

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def add_users_to_group(self, group_id: int, user_ids: Iterable[int]) -> Result:
        return self._request("POST", f"/groups/{group_id}/add-users-to-group", json_body={"userIds": list(user_ids)})

    def change_group_owner(self, group_id: int, new_owner_id: int) -> Result:
        return self._request("POST", f"/groups/{group_id}/change-owner", json_body={"newOwnerId": new_owner_id})

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    def delete_products(self, product_ids: Iterable[int]) -> Result:
        return self._request("POST", "/products/delete", json_body={"productIds": list(product_ids)})

    def replace_pairs(self, main_product_id: int, pairs: List[Dict[str, Any]]) -> Result:
        """Make the option pairs of a product equal to ``pairs``.

        Each pair is ``{"optionProductId", "isRequired", "unitsCount"}``.
        """
        return self._request(
            "POST", "/products/pairs/replace", json_body={"mainProductId": main_product_id, "pairs": pairs}
        )

    def update_product_regions(self, product_id: int, regions: List[Dict[str, Any]]) -> Result:
        return self._request("PUT", f"/products/{product_id}/regions", json_body={"regions": regions})

    def update_sections_publish(self, product_id: int, section_ids: Iterable[int]) -> Result:
        return self._request(
            "PUT",
            "/products/update-sections-publish",
            json_body={"productId": product_id, "sectionIds": list(section_ids)},
        )
