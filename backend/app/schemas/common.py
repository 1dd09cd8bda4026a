"""
Response envelopes shared by every endpoint.

Success responses are ``{"success": true, "data": ...}``; list endpoints add
``pagination``.
"""

import math
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 1)


class DataResponse(BaseModel, Generic[T]):
    """Single-item envelope."""
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    """Paginated list envelope."""
    success: bool = True
    data: List[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    """Envelope for actions that return no entity."""
    success: bool = True
    message: str
    data: Optional[dict] = None
