# app/schemas/common.py
"""
Base schema and response envelopes.

Every endpoint answers {success, message?, data?} with camelCase keys;
list endpoints add {pagination: {page, limit, total, totalPages}}.
Request bodies accept camelCase or snake_case.
"""
from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.crud.pagination import Page

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationOut(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: Page, total: int) -> "PaginationOut":
        return cls(page=page.page, limit=page.limit, total=total, total_pages=page.total_pages(total))


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PageEnvelope(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: List[T]
    pagination: PaginationOut
