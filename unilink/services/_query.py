"""Small query helpers shared by the services."""
from __future__ import annotations

from sqlalchemy import ColumnElement, func, or_


def contains_any(term: str, *columns) -> ColumnElement[bool]:
    """Case-insensitive substring match of ``term`` over any of ``columns``."""
    pattern = f"%{term.strip().lower()}%"
    return or_(*(func.lower(column).like(pattern) for column in columns))


def apply_changes(obj, changes: dict) -> None:
    for key, value in changes.items():
        setattr(obj, key, value)
