from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Iterable, Optional, Sequence

from fastapi import HTTPException

from app.schemas.pagination import PageMeta, PagePaginatedResult, PaginationParams
from app.services.pagination import RowMapper, map_results, page_meta


def _field(row: Any, key: str):
    if isinstance(row, dict):
        return row.get(key)
    return getattr(row, key, None)


def _order_pairs(order_by, direction: str) -> list[tuple[str, str]]:
    if not order_by:
        return []
    if isinstance(order_by, str):
        return [(order_by, direction)]
    items = order_by if isinstance(order_by, (list, tuple)) else [order_by]
    pairs = []
    for item in items:
        for key, value in dict(item).items():
            pairs.append((key, "asc" if str(value).lower() == "asc" else "desc"))
    return pairs


def compare_rows(a: Any, b: Any, pairs: Sequence[tuple[str, str]]) -> int:
    """Multi-key comparison; nulls sort first ascending and last descending."""
    for key, direction in pairs:
        sign = 1 if direction == "asc" else -1
        va, vb = _field(a, key), _field(b, key)
        if va is None and vb is None:
            continue
        if va is None:
            return -sign
        if vb is None:
            return sign
        if va < vb:
            return -sign
        if va > vb:
            return sign
    return 0


def merge_and_paginate(
    collections: Iterable[Sequence[Any]],
    params: Optional[PaginationParams] = None,
    mapper: Optional[RowMapper] = None,
) -> PagePaginatedResult:
    """Paginate rows already loaded from several sources as one list."""
    params = params or PaginationParams()
    if params.pagination_type == "cursor":
        raise HTTPException(status_code=400, detail="Cursor pagination is not supported for merged results")

    merged = [row for rows in collections for row in rows]
    pairs = _order_pairs(params.order_by, params.direction)
    if pairs:
        # sorted() is stable, equal rows keep their source order.
        merged = sorted(merged, key=cmp_to_key(lambda a, b: compare_rows(a, b, pairs)))

    if not params.pagination_enabled:
        items = map_results(merged, mapper)
        meta = PageMeta(item_count=len(items), total_items=len(items), items_per_page=len(items), total_pages=1, current_page=1)
        return PagePaginatedResult(page_items=items, page_meta=meta)

    size = params.size
    offset = (params.page - 1) * size
    items = map_results(merged[offset:offset + size], mapper)
    return PagePaginatedResult(page_items=items, page_meta=page_meta(len(items), len(merged), size, params.page))
