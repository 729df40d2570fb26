"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields.  In a
production deployment you should override these via environment
variables.

Values that administrators change at runtime (feature switches such
as ``add.only.active.users.to.groups``) are not part of this class;
they live in the ``settings`` table and reach services through
``core.runtime_settings.SettingsSnapshot``.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Back Office API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None
    # logging.Formatter layout and strftime pattern for every handler.
    log_format: str = os.getenv("LOG_FORMAT", "%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    log_date_format: str = os.getenv("LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Optional static token for super‑administrator API access.  Requests
    # carrying this token are authenticated as the first user holding the
    # admin role.
    super_admin_static_token: str = os.getenv("SUPER_ADMIN_TOKEN", "")

    # Path to the SQLite database file.  Relative paths are resolved
    # against the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "backoffice.db")

    # Limits shared by list and batch endpoints.
    search_default_limit: int = int(os.getenv("SEARCH_DEFAULT_LIMIT", "20"))
    search_max_limit: int = int(os.getenv("SEARCH_MAX_LIMIT", "100"))
    batch_limit: int = int(os.getenv("BATCH_LIMIT", "200"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
