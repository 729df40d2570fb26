"""
Pydantic schema definitions for API payloads.

Each domain (users, groups, products, catalog) defines its own request
models.  Request bodies use camelCase field names on the wire; the
models expose snake_case attributes to the services.
"""
