from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.schemas.pagination import PagePaginatedResult, PaginationParams
from app.services.pagination import RowMapper, map_results, page_meta

_LOG = logging.getLogger("app.pagination")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _order_items(order_by, direction: str) -> list[tuple[str, str]]:
    if not order_by:
        return []
    if isinstance(order_by, str):
        items = [{order_by: direction}]
    elif isinstance(order_by, dict):
        items = [order_by]
    else:
        items = list(order_by)
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            continue
        for column, column_dir in item.items():
            pairs.append((str(column), "asc" if str(column_dir).lower() == "asc" else "desc"))
    return pairs


def _order_clauses(
    order_by,
    direction: str,
    allowed_columns: Optional[Iterable[str]] = None,
    default_order_by: Optional[str] = None,
    tie_breaker: Optional[str] = "id",
) -> list[str]:
    """ORDER BY terms over known columns, always ending on ``tie_breaker``.

    NULL sorts first ascending and last descending, as in the ORM path.
    """
    allowed = set(allowed_columns) if allowed_columns is not None else None
    direction = "asc" if str(direction).lower() == "asc" else "desc"
    pairs = []
    for column, column_dir in _order_items(order_by, direction):
        if not _IDENTIFIER_RE.fullmatch(column) or (allowed is not None and column not in allowed):
            _LOG.warning("Ignoring raw sort column %r", column)
            continue
        pairs.append((column, column_dir))
    if not pairs and default_order_by:
        pairs.append((default_order_by, direction))
    if tie_breaker and tie_breaker not in {column for column, _ in pairs}:
        pairs.append((tie_breaker, direction))

    clauses = []
    seen = set()
    for column, column_dir in pairs:
        if column in seen:
            continue
        seen.add(column)
        nulls = "NULLS FIRST" if column_dir == "asc" else "NULLS LAST"
        clauses.append(f'"{column}" {column_dir.upper()} {nulls}')
    return clauses


def paginate_raw(
    session: Session,
    base_query: str,
    params: Optional[PaginationParams] = None,
    mapper: Optional[RowMapper] = None,
    bind_params: Optional[dict] = None,
    allowed_columns: Optional[Iterable[str]] = None,
    default_order_by: Optional[str] = None,
    tie_breaker: Optional[str] = "id",
):
    """Page-based pagination over a raw SELECT.

    ``params.where`` is inlined as SQL and must be produced server-side (for
    example by ``translate_raw`` over a declared schema). Sort columns outside
    ``allowed_columns`` are ignored; ``tie_breaker`` must name a unique column
    of the result so pages never overlap.
    """
    params = params or PaginationParams()
    bind_params = dict(bind_params or {})

    query = base_query
    if params.where and params.where.strip():
        query = f"SELECT * FROM ({query}) AS sb WHERE {params.where}"

    order = _order_clauses(params.order_by, params.direction, allowed_columns, default_order_by, tie_breaker)
    if order:
        query = f"{query} ORDER BY {', '.join(order)}"

    if not params.pagination_enabled:
        rows = [dict(r._mapping) for r in session.execute(text(query), bind_params)]
        return PagePaginatedResult(page_items=map_results(rows, mapper))

    page = max(1, int(params.page))
    size = max(1, int(params.size))

    total = session.execute(text(f"SELECT COUNT(*) AS count FROM ({query}) AS count_query"), bind_params).scalar()
    total_items = int(total or 0)

    paged = text(f"{query} LIMIT :_limit OFFSET :_offset")
    rows = [
        dict(r._mapping)
        for r in session.execute(paged, {**bind_params, "_limit": size, "_offset": (page - 1) * size})
    ]
    items = map_results(rows, mapper)
    return PagePaginatedResult(page_items=items, page_meta=page_meta(len(items), total_items, size, page))
