"""
Application package initializer.

The back office is split into logical pieces: ``core`` holds
configuration, database access, security and error types; ``queries``
holds the parameterized SQL text for each feature; ``services`` holds
the business logic; ``api/v1/endpoints`` exposes one router per
domain (users, groups, products, catalog, settings, audit).
"""

from .main import app  # noqa: F401
