"""
Shared response envelopes.

WHY: Every successful response carries the same envelope
({"success": true, "message", "data"}) so the dashboard handles all
endpoints with one code path. Failures use AppException.to_dict().
"""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, Field


DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope."""

    success: bool = Field(default=True, description="Always true for successful responses")
    message: str = Field(..., description="Human-readable summary")
    data: DataT = Field(..., description="Response payload")


class Pagination(BaseModel):
    """Pagination block for list responses."""

    current_page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool
    limit: int = Field(..., ge=1)

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = math.ceil(total_count / limit) if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            has_next=page < total_pages,
            has_prev=page > 1,
            limit=limit,
        )


def ok(data, message: str) -> dict:
    """Build a success envelope for a route return value."""
    return {"success": True, "message": message, "data": data}
