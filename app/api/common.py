from typing import Literal, Optional, Union

from fastapi import HTTPException, Query, Request
from pydantic import ValidationError

from app.schemas.pagination import PaginationParams


def pagination_params(
    size: Optional[int] = Query(default=None, ge=1),
    cursor: Optional[str] = None,
    orderBy: Optional[str] = None,
    direction: Literal["asc", "desc"] = "desc",
    isPaginated: Union[str, None] = None,
    paginationType: Literal["page", "cursor"] = "page",
    page: int = Query(default=1, ge=1),
) -> PaginationParams:
    raw = {
        "cursor": cursor,
        "orderBy": orderBy,
        "direction": direction,
        "paginationType": paginationType,
        "page": page,
    }
    if size is not None:
        raw["size"] = size
    if isPaginated is not None:
        raw["isPaginated"] = isPaginated
    try:
        return PaginationParams(**raw)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))


PAGINATION_KEYS = frozenset({"size", "cursor", "orderBy", "direction", "isPaginated", "paginationType", "page", "where"})


def filter_params(request: Request) -> dict:
    """Every query parameter that is not a pagination control, as list filters."""
    return {k: v for k, v in request.query_params.items() if k not in PAGINATION_KEYS}
