"""Pagination models.

these belong to the callers - the compilers only read limit and offset off a
PageQuery, they never work out offsets themselves.
"""

import math
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

from aggforge.sanitizer import sql_inject


class PageQuery(BaseModel):
    """A page request: 1-based page, page size, optional sort.

    sidx and order are spliced into ORDER BY so they're always scrubbed.
    """

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    sidx: str | None = None
    order: str | None = None

    @field_validator("sidx", "order")
    @classmethod
    def scrub(cls, v: str | None) -> str | None:
        return sql_inject(v)

    @field_validator("order")
    @classmethod
    def order_direction(cls, v: str | None) -> str | None:
        if v is not None and v not in ("asc", "desc"):
            raise ValueError(f"order must be 'asc' or 'desc', got '{v}'")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "PageQuery":
        """Build from raw request params (strings are fine, pydantic coerces)."""
        return cls(
            page=params["page"],
            limit=params["limit"],
            sidx=params.get("sidx") or None,
            order=params.get("order") or None,
        )


class Pagination(BaseModel):
    """One page of results plus the totals a pager needs."""

    total_count: int = 0
    page_size: int = Field(default=10, ge=1)
    curr_page: int = Field(default=1, ge=1)
    items: list[Any] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_page(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @classmethod
    def of(cls, items: list[Any], total_count: int, query: PageQuery) -> "Pagination":
        return cls(
            total_count=total_count,
            page_size=query.limit,
            curr_page=query.page,
            items=items,
        )
