"""Input checks shared by batch and reconciliation services."""

from typing import Iterable, List, Optional

from backoffice_api.app.core.config import settings
from backoffice_api.app.core.errors import ServiceError


def unique_ids(ids: Iterable[int]) -> List[int]:
    """De-duplicate ``ids`` keeping first-seen order."""
    return list(dict.fromkeys(ids))


def check_batch_size(ids: List[int], label: str, limit: Optional[int] = None) -> None:
    limit = settings.batch_limit if limit is None else limit
    if len(ids) > limit:
        raise ServiceError.validation(
            f"{label} exceed limit {limit}",
            {"limit": limit, "received": len(ids)},
        )


def require_ids(ids: List[int], message: str) -> None:
    if not ids:
        raise ServiceError.validation(message)


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"
