from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from app.models.hymn import Hymn
from app.models.lyric import Chorus, Verse
from app.schemas.catalog import LyricIn, LyricOut, LyricSearchHit, LyricUpdate
from app.schemas.pagination import PagePaginatedResult, PaginationParams, QueryArgs
from app.services.audit import append_audit
from app.services.catalog_common import actor_id, find_or_404, utcnow
from app.services.filter_translator import merge_clause, translate
from app.services.list_cache import invalidate_hymn_lists
from app.services.pagination import paginate, simple_mapper
from app.services.query_schema import parse_schema
from app.services.queryable import SqlAlchemyCollection
from app.services.result_merger import merge_and_paginate

LYRIC_FILTERS = parse_schema(["text|contains", "order|equals"])
LYRIC_SEARCH_FILTERS = parse_schema(["text|contains", "hymn.title|contains"])

# kind -> (model, audit entity type, label)
LYRIC_KINDS = {
    "verse": (Verse, "VERSE", "Verse"),
    "chorus": (Chorus, "CHORUS", "Chorus"),
}

SEARCH_ORDER = [{"hymn_number": "asc"}, {"order": "asc"}]

_to_out = simple_mapper(LyricOut.model_validate)


def _hymn(db: Session, hymn_id):
    return find_or_404(db, Hymn, hymn_id, "Hymn")


def _find(db: Session, kind: str, hymn_id, lyric_id, *, deleted=False):
    model, _, label = LYRIC_KINDS[kind]
    hymn = _hymn(db, hymn_id)
    row = find_or_404(db, model, lyric_id, label, deleted=deleted)
    if row.hymn_id != hymn.id:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def list_lyrics(db: Session, kind: str, hymn_id, filters: dict, params: PaginationParams):
    model = LYRIC_KINDS[kind][0]
    hymn = _hymn(db, hymn_id)
    where = {"hymn_id": hymn.id, "deleted_at": None, **translate(filters, LYRIC_FILTERS)}
    args = QueryArgs(where=where)
    if params.order_by is None:
        params = params.model_copy(update={"order_by": "order", "direction": "asc"})
    return paginate(SqlAlchemyCollection(db, model), args, params, _to_out)


def create_lyric(db: Session, kind: str, hymn_id, payload: LyricIn, user: dict) -> LyricOut:
    model, entity_type, label = LYRIC_KINDS[kind]
    hymn = _hymn(db, hymn_id)
    order = payload.order
    if order is None:
        last = SqlAlchemyCollection(db, model).find_first({"hymn_id": hymn.id, "deleted_at": None}, {"order": "desc"})
        order = (last.order + 1) if last is not None else 1
    actor = actor_id(user)
    row = model(hymn_id=hymn.id, text=payload.text, order=order, created_by_id=actor, updated_by_id=actor)
    db.add(row)
    db.flush()
    append_audit(db, user, entity_type, row.id, "CREATE", f"{label} {order} added to hymn {hymn.id}")
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return LyricOut.model_validate(row)


def update_lyric(db: Session, kind: str, hymn_id, lyric_id, payload: LyricUpdate, user: dict) -> LyricOut:
    _, entity_type, _ = LYRIC_KINDS[kind]
    row = _find(db, kind, hymn_id, lyric_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("text"):
        row.text = changes["text"]
    if changes.get("order") is not None:
        row.order = changes["order"]
    row.updated_by_id = actor_id(user)
    append_audit(db, user, entity_type, row.id, "UPDATE", details={"changes": sorted(changes)})
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return LyricOut.model_validate(row)


def delete_lyric(db: Session, kind: str, hymn_id, lyric_id, user: dict) -> LyricOut:
    _, entity_type, label = LYRIC_KINDS[kind]
    row = _find(db, kind, hymn_id, lyric_id)
    row.deleted_at = utcnow()
    row.updated_by_id = actor_id(user)
    append_audit(db, user, entity_type, row.id, "DELETE", f"{label} {row.order} deleted")
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return LyricOut.model_validate(row)


def restore_lyric(db: Session, kind: str, hymn_id, lyric_id, user: dict) -> LyricOut:
    _, entity_type, label = LYRIC_KINDS[kind]
    row = _find(db, kind, hymn_id, lyric_id, deleted=True)
    row.deleted_at = None
    row.updated_by_id = actor_id(user)
    append_audit(db, user, entity_type, row.id, "RESTORE", f"{label} {row.order} restored")
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return LyricOut.model_validate(row)


def _search_hits(db: Session, kind: str, filters: dict) -> list[LyricSearchHit]:
    model = LYRIC_KINDS[kind][0]
    where = {"deleted_at": None, "hymn": {"deleted_at": None}}
    merge_clause(where, translate(filters, LYRIC_SEARCH_FILTERS))
    rows = SqlAlchemyCollection(db, model, (joinedload(model.hymn),)).find_many(where=where)
    return [
        LyricSearchHit(
            id=row.id,
            kind=kind,
            hymn_id=row.hymn_id,
            hymn_number=row.hymn.number,
            hymn_title=row.hymn.title,
            order=row.order,
            text=row.text,
        )
        for row in rows
    ]


def search_lyrics(db: Session, filters: dict, params: PaginationParams) -> PagePaginatedResult:
    """Search verses and choruses together as one ordered, paged list."""
    if params.order_by is None:
        params = params.model_copy(update={"order_by": SEARCH_ORDER})
    return merge_and_paginate([_search_hits(db, "verse", filters), _search_hits(db, "chorus", filters)], params)
