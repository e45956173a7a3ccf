from __future__ import annotations

from typing import Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar('T')


class Pagination(BaseModel, Generic[T]):
    items: Sequence[T]
    page: int = 1
    page_size: int = 10
    total: int = 0
    total_pages: int = 1


class MessageResponse(BaseModel):
    message: str
    code: Optional[str] = None
