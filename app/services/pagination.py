"""Page- and cursor-based pagination over a queryable collection."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable, Optional, Sequence

from app.schemas.pagination import (
    CursorLink,
    CursorPaginatedResult,
    PageCursors,
    PageMeta,
    PagePaginatedResult,
    PaginatedResult,
    PaginationParams,
    QueryArgs,
)
from app.services.cursor_codec import DecodedCursor, decode_cursor, encode_cursor
from app.services.queryable import QueryableCollection

_LOG = logging.getLogger("app.pagination")

DEFAULT_ORDER_FIELD = "created_at"
_ORDER_FIELD_SANITIZE_RE = re.compile(r"[^A-Za-z0-9_]")

# mapper(row, rows, shared) -> (mapped_row, shared)
RowMapper = Callable[[Any, Sequence[Any], dict], tuple[Any, dict]]


def simple_mapper(fn: Callable[[Any], Any]) -> RowMapper:
    def _mapper(row, rows, shared):
        return fn(row), shared

    return _mapper


def map_results(rows: Sequence[Any], mapper: Optional[RowMapper]) -> list:
    """Fold ``mapper`` over ``rows`` in order, threading the shared state."""
    if mapper is None:
        return list(rows)
    shared: dict = {}
    mapped = []
    for row in rows:
        item, update = mapper(row, rows, shared)
        if update is not None:
            shared = update
        mapped.append(item)
    return mapped


def resolve_order_by(order_by, direction: str) -> dict | list:
    if isinstance(order_by, str):
        field = _ORDER_FIELD_SANITIZE_RE.sub("", order_by)
        if field:
            return {field: direction}
    elif isinstance(order_by, (dict, list)) and order_by:
        return order_by
    return {DEFAULT_ORDER_FIELD: direction}


def _with_tie_breaker(order_by, direction: str) -> list:
    keys = list(order_by) if isinstance(order_by, list) else [order_by]
    return keys + [{"id": direction}]


def paginate(
    collection: QueryableCollection,
    args: Optional[QueryArgs] = None,
    params: Optional[PaginationParams] = None,
    mapper: Optional[RowMapper] = None,
) -> PaginatedResult:
    """Fetch one page of ``collection`` rows matching ``args.where``.

    ``params.pagination_type`` selects offset pages or opaque cursors;
    ``params.is_paginated == "false"`` returns every matching row.
    """
    args = args or QueryArgs()
    params = params or PaginationParams()
    order_by = resolve_order_by(params.order_by if params.order_by is not None else args.order_by, params.direction)

    if not params.pagination_enabled:
        rows = collection.find_many(where=args.where, order_by=order_by)
        return PagePaginatedResult(page_items=map_results(rows, mapper))

    total_count = collection.count(args.where)
    if params.pagination_type == "cursor":
        _LOG.debug("cursor pagination size=%s total=%s", params.size, total_count)
        return _paginate_by_cursor(collection, args, params, order_by, total_count, mapper)
    _LOG.debug("page pagination page=%s size=%s total=%s", params.page, params.size, total_count)
    return _paginate_by_page(collection, args, params, order_by, total_count, mapper)


def page_meta(item_count: int, total: int, size: int, page: int) -> PageMeta:
    return PageMeta(
        item_count=item_count,
        total_items=total,
        items_per_page=size,
        total_pages=math.ceil(total / size) if size else 0,
        current_page=page,
    )


def _paginate_by_page(collection, args: QueryArgs, params: PaginationParams, order_by, total_count: int, mapper):
    size = params.size
    skip = (params.page - 1) * size
    rows = collection.find_many(where=args.where, order_by=order_by, skip=skip, take=size)
    items = map_results(rows, mapper)
    return PagePaginatedResult(page_items=items, page_meta=page_meta(len(items), total_count, size, params.page))


def _cursor_take(cursor: DecodedCursor, size: int, total_count: int) -> int:
    remainder = total_count % size
    if cursor.last and remainder:
        return remainder * cursor.dir
    return (size + 1) * cursor.dir


def _paginate_by_cursor(collection, args: QueryArgs, params: PaginationParams, order_by, total_count: int, mapper):
    size = params.size
    cursor = decode_cursor(params.cursor) if params.cursor else None
    ordering = _with_tie_breaker(order_by, params.direction)

    if cursor is None:
        rows = collection.find_many(where=args.where, order_by=ordering, take=size + 1)
    else:
        rows = collection.find_many(
            where=args.where,
            order_by=ordering,
            skip=1 if cursor.id else 0,
            take=_cursor_take(cursor, size, total_count),
            cursor={"id": cursor.id} if cursor.id else None,
        )
    rows = list(rows)

    if not rows:
        return CursorPaginatedResult(page_edges=[], page_cursors=PageCursors(), total_count=total_count)

    overfetched = len(rows) > size
    backwards = cursor is not None and cursor.dir == -1
    if overfetched:
        rows = rows[1:] if backwards else rows[:-1]

    if backwards:
        has_next = not (cursor.last and not cursor.id)
        has_previous = overfetched or (cursor.last and total_count > len(rows))
    else:
        has_next = overfetched
        has_previous = cursor is not None and bool(cursor.id)

    edges = map_results(rows, mapper)
    first_id = _row_id(rows[0])
    last_id = _row_id(rows[-1])
    return CursorPaginatedResult(
        page_edges=edges,
        page_cursors=PageCursors(
            first=_link(encode_cursor(direction=1)) if has_previous else False,
            previous=_link(encode_cursor(first_id, -1)) if has_previous else False,
            next=_link(encode_cursor(last_id, 1)) if has_next else False,
            last=_link(encode_cursor(direction=-1, last=True)) if has_next else False,
            has_next=has_next,
            has_previous=has_previous,
        ),
        total_count=total_count,
    )


def _link(token: str) -> CursorLink:
    return CursorLink(cursor=token)


def _row_id(row):
    if isinstance(row, dict):
        return row.get("id")
    return getattr(row, "id", None)
