"""Envelope shared by the paginated bill listings."""

from __future__ import annotations

from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel, Field, computed_field

ItemT = TypeVar("ItemT")


class PaginatedResponse(BaseModel, Generic[ItemT]):
    """One page of results together with the size of the full result set."""

    items: Sequence[ItemT]
    total: int = Field(..., ge=0, description="Number of rows matching the filters")
    limit: int = Field(..., ge=1)
    skip: int = Field(..., ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def has_more(self) -> bool:
        return self.skip + len(self.items) < self.total
