from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings

Dir = Literal["asc", "desc"]
PaginationType = Literal["page", "cursor"]
OrderBy = Union[str, dict[str, Any], List[dict[str, Any]]]


class PaginationParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE, ge=1)
    cursor: Optional[str] = None
    order_by: Optional[OrderBy] = Field(default=None, alias="orderBy")
    direction: Dir = "desc"
    is_paginated: Union[bool, str] = Field(default=True, alias="isPaginated")
    pagination_type: PaginationType = Field(default="page", alias="paginationType")
    page: int = Field(default=1, ge=1)
    # Raw SQL fragment, only honoured by paginate_raw and only when built server-side.
    where: Optional[str] = None

    @field_validator("size")
    @classmethod
    def _cap_size(cls, value: int) -> int:
        return min(value, settings.MAX_PAGE_SIZE)

    @property
    def pagination_enabled(self) -> bool:
        return str(self.is_paginated).strip().lower() != "false"


class QueryArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    where: dict[str, Any] = Field(default_factory=dict)
    order_by: Optional[Union[dict[str, Any], List[dict[str, Any]]]] = Field(default=None, alias="orderBy")
    skip: Optional[int] = None
    take: Optional[int] = None
    cursor: Optional[dict[str, Any]] = None


class PageMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_count: int = Field(alias="itemCount")
    total_items: int = Field(alias="totalItems")
    items_per_page: int = Field(alias="itemsPerPage")
    total_pages: int = Field(alias="totalPages")
    current_page: int = Field(alias="currentPage")


class CursorLink(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cursor: str
    page: None = None
    is_current: bool = Field(default=False, alias="isCurrent")


class PageCursors(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first: Union[CursorLink, Literal[False]] = False
    previous: Union[CursorLink, Literal[False]] = False
    next: Union[CursorLink, Literal[False]] = False
    last: Union[CursorLink, Literal[False]] = False
    has_next: bool = Field(default=False, alias="hasNext")
    has_previous: bool = Field(default=False, alias="hasPrevious")


class PagePaginatedResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    page_items: List[Any] = Field(alias="pageItems")
    page_meta: Optional[PageMeta] = Field(default=None, alias="pageMeta")

    def to_response(self) -> dict:
        data = self.model_dump(by_alias=True)
        if self.page_meta is None:
            data.pop("pageMeta")
        return data


class CursorPaginatedResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    page_edges: List[Any] = Field(alias="pageEdges")
    page_cursors: PageCursors = Field(alias="pageCursors")
    total_count: int = Field(alias="totalCount")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


PaginatedResult = Union[PagePaginatedResult, CursorPaginatedResult]
