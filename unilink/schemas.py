"""Shared pydantic building blocks for request/response DTOs.

Wire format is camelCase; snake_case is accepted on input as well.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Query
from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


class CamelModel(BaseModel):
    """Base DTO: camelCase aliases, ORM attribute loading."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    code: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class MessageResponse(CamelModel):
    message: str


def invalid(code: str, message: str) -> PydanticCustomError:
    """Build a validation error that surfaces ``code`` in the error body."""
    return PydanticCustomError("invalid_field", message, {"code": code})


def non_blank(code: str, label: str) -> AfterValidator:
    """Strip a string and reject it when nothing is left."""
    def _check(value: str) -> str:
        value = value.strip()
        if not value:
            raise invalid(code, f"{label} must not be empty")
        return value

    return AfterValidator(_check)


def one_of(code: str, label: str, allowed: tuple[str, ...], *, lower: bool = False) -> AfterValidator:
    def _check(value: str) -> str:
        if lower:
            value = value.strip().lower()
        if value not in allowed:
            raise invalid(code, f"{label} must be one of: {', '.join(allowed)}")
        return value

    return AfterValidator(_check)


def reject_fields(data: Any, forbidden: dict[str, str]) -> Any:
    """Reject body keys the server owns (e.g. ``organizerId``).

    ``forbidden`` maps each key to the error code to raise. Used from
    ``model_validator(mode="before")``.
    """
    if isinstance(data, dict):
        for key, code in forbidden.items():
            if key in data:
                raise invalid(code, f"{key} cannot be provided in the request body")
    return data


def split_list(code: str, label: str) -> Callable[[Any], list[str] | None]:
    """Accept a list of strings or a comma-separated string."""
    def _coerce(value: Any) -> list[str] | None:
        if value is None:
            return None
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return [item.strip() for item in value if item.strip()]
        raise invalid(code, f"{label} must be a list of strings or a comma-separated string")

    return _coerce


@dataclass
class Page:
    limit: int
    offset: int


def pagination(default: int, maximum: int):
    """Dependency factory for ``limit``/``offset``; over-large limits are clamped."""

    def _page(
        limit: int = Query(default=default, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> Page:
        return Page(limit=min(limit, maximum), offset=offset)

    return _page


def changed_fields(request: BaseModel, *, nullable: set[str] | frozenset[str] = frozenset()) -> dict[str, Any]:
    """Fields the client actually sent, by attribute name.

    An explicit ``null`` is kept only for columns listed in ``nullable``.
    """
    data = request.model_dump(exclude_unset=True)
    return {key: value for key, value in data.items() if value is not None or key in nullable}
