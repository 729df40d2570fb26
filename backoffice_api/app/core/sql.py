"""
Parameterized UPDATE statement builder.

Update paths describe the columns they may touch as a list of
``UpdateField(column, value)`` pairs.  A field whose value is ``OMIT``
was not supplied by the caller and is left out of the SET clause; an
explicit ``None`` writes ``NULL``.  Column names always come from code,
never from request data, so they are interpolated while every value
is bound as a parameter.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple


class _Omit:
    """Marker for a field that was not supplied."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "OMIT"

    def __bool__(self) -> bool:
        return False


OMIT = _Omit()


@dataclass(frozen=True)
class UpdateField:
    column: str
    value: Any = OMIT
    # Raw SQL expression used instead of a bound value, e.g. CURRENT_TIMESTAMP.
    expression: Optional[str] = None

    @property
    def is_set(self) -> bool:
        return self.expression is not None or self.value is not OMIT


def build_update(
    table: str,
    fields: Iterable[UpdateField],
    where: Sequence[Tuple[str, Any]],
) -> Optional[Tuple[str, Tuple[Any, ...]]]:
    """Reduce ``fields`` into ``UPDATE table SET ... WHERE ...``.

    Returns ``(sql, params)``, or ``None`` when no field is set.  The
    WHERE clause is a conjunction of ``column = ?`` terms.
    """
    assignments: List[str] = []
    params: List[Any] = []
    for field in fields:
        if not field.is_set:
            continue
        if field.expression is not None:
            assignments.append(f"{field.column} = {field.expression}")
        else:
            assignments.append(f"{field.column} = ?")
            params.append(field.value)
    if not assignments:
        return None
    conditions = []
    for column, value in where:
        conditions.append(f"{column} = ?")
        params.append(value)
    sql = f"UPDATE {table} SET {', '.join(assignments)}"
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    return sql, tuple(params)


def placeholders(count: int) -> str:
    """Return ``?, ?, ...`` for an ``IN (...)`` list of ``count`` items."""
    return ", ".join("?" for _ in range(count))
