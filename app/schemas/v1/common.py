"""Common schemas: error responses and pagination metadata."""

from typing import Any

from pydantic import BaseModel


class ApiError(BaseModel):
    detail: str
    code: str
    errors: dict[str, Any] | None = None


class PageMeta(BaseModel):
    page: int
    page_size: int
    total_count: int
    total_pages: int
