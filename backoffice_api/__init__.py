"""
Top‑level package for the back-office admin API.

This file makes ``backoffice_api`` a Python package so that modules
within ``app`` can be imported using fully qualified names like
``backoffice_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
