"""Version 1 of the back-office API, mounted under ``/api/v1``."""
