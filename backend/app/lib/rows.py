from __future__ import annotations

from typing import Any, Optional


def rows_of(response: Any) -> list[dict]:
    """`.data` of a PostgREST response as a list (single-object responses wrapped)."""
    if response is None:
        return []
    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


def first_row(response: Any) -> Optional[dict]:
    rows = rows_of(response)
    return rows[0] if rows else None


def is_unique_violation(error: BaseException) -> bool:
    code = str(getattr(error, "code", "") or "")
    if code == "23505":
        return True
    lowered = str(error).lower()
    return "23505" in lowered or "duplicate key" in lowered or "unique constraint" in lowered
