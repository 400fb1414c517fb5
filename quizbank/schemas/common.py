"""Shared / generic schemas."""

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned for every domain failure."""

    success: bool = False
    error_code: str
    message: str
    details: dict[str, Any] | None = None


class PageMeta(BaseModel):
    """Pagination metadata for list endpoints."""

    page: int
    page_size: int
    total_count: int
    total_pages: int
