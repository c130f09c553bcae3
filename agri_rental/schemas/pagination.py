"""Offset pagination schemas shared by the list endpoints."""

from pydantic import BaseModel, Field
from typing import Generic, TypeVar, List

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic response for page/page_size list endpoints."""

    items: List[T]
    total: int = Field(description="Total number of matching rows")
    page: int
    page_size: int

