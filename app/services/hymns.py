from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.category import Category
from app.models.hymn import Hymn
from app.models.lyric import Chorus, Verse
from app.schemas.catalog import HymnCreate, HymnDetailOut, HymnOut, HymnUpdate, LyricOut
from app.schemas.pagination import PaginationParams, QueryArgs
from app.services.audit import append_audit
from app.services.catalog_common import actor_id, find_or_404, utcnow
from app.services.filter_translator import translate
from app.services.list_cache import HYMN_CACHE_PREFIX, cache_key, get_list_cache, invalidate_hymn_lists
from app.services.pagination import paginate
from app.services.query_schema import FunctionFilter, parse_schema
from app.services.queryable import SqlAlchemyCollection
from app.services.slugs import slugify

_LOG = logging.getLogger("app.hymns")

HYMN_FILTERS = parse_schema(
    [
        "title|contains",
        "number|equals",
        "author|contains",
        "language|equals",
        "category.name|contains",
        "verses:text|contains",
        FunctionFilter(
            key="categoryId",
            data_type="string",
            where=lambda value, filters: {"category_id": value},
        ),
        FunctionFilter(
            key="createdAfter",
            data_type="date",
            where=lambda value, filters: {"created_at": {"gte": value}},
        ),
    ]
)


def _verse_count_mapper(db: Session):
    """Row mapper that loads verse counts for the whole page on its first call."""

    def _mapper(row: Hymn, rows, shared: dict):
        counts = shared.get("verse_counts")
        if counts is None:
            ids = [r.id for r in rows]
            counts = dict(
                db.query(Verse.hymn_id, func.count(Verse.id))
                .filter(Verse.hymn_id.in_(ids), Verse.deleted_at.is_(None))
                .group_by(Verse.hymn_id)
                .all()
            )
            shared = {**shared, "verse_counts": counts}
        out = HymnOut.model_validate(row)
        out.verse_count = counts.get(row.id, 0)
        return out, shared

    return _mapper


def _live_lyrics(items) -> list[LyricOut]:
    return [LyricOut.model_validate(item) for item in items if item.deleted_at is None]


def _detail(row: Hymn) -> HymnDetailOut:
    out = HymnDetailOut.model_validate(row)
    out.verses = _live_lyrics(row.verses)
    out.choruses = _live_lyrics(row.choruses)
    out.verse_count = len(out.verses)
    return out


def _find(db: Session, hymn_id, *, deleted=False) -> Hymn:
    return find_or_404(
        db,
        Hymn,
        hymn_id,
        "Hymn",
        deleted=deleted,
        options=(selectinload(Hymn.category), selectinload(Hymn.verses), selectinload(Hymn.choruses)),
    )


def list_hymns(db: Session, filters: dict, params: PaginationParams) -> dict:
    ttl = settings.LIST_CACHE_TTL_SECONDS
    key = cache_key(HYMN_CACHE_PREFIX, {"filters": filters, "params": params.model_dump(by_alias=True)})
    if ttl > 0:
        cached = get_list_cache().get(key)
        if cached is not None:
            _LOG.debug("hymn list cache hit")
            return cached

    where = {"deleted_at": None, **translate(filters, HYMN_FILTERS)}
    collection = SqlAlchemyCollection(db, Hymn, (selectinload(Hymn.category),))
    result = paginate(collection, QueryArgs(where=where), params, _verse_count_mapper(db)).to_response()
    if ttl > 0:
        get_list_cache().set(key, result, ttl_seconds=ttl)
    return result


def get_hymn(db: Session, hymn_id) -> HymnDetailOut:
    return _detail(_find(db, hymn_id))


def _check_category(db: Session, category_id) -> None:
    find_or_404(db, Category, category_id, "Category")


def _hymn_slug(title: str, number: int | None) -> str:
    return slugify(f"{number} {title}" if number is not None else title)


def _conflict() -> HTTPException:
    return HTTPException(status_code=409, detail="Hymn with this number or slug already exists")


def create_hymn(db: Session, payload: HymnCreate, user: dict) -> HymnDetailOut:
    _check_category(db, payload.category_id)
    actor = actor_id(user)
    title = payload.title.strip()
    row = Hymn(
        number=payload.number,
        title=title,
        slug=_hymn_slug(title, payload.number),
        category_id=payload.category_id,
        author=payload.author,
        language=payload.language,
        version=payload.version,
        created_by_id=actor,
        updated_by_id=actor,
    )
    for index, item in enumerate(payload.verses, start=1):
        row.verses.append(Verse(text=item.text, order=item.order or index, created_by_id=actor, updated_by_id=actor))
    for index, item in enumerate(payload.choruses, start=1):
        row.choruses.append(Chorus(text=item.text, order=item.order or index, created_by_id=actor, updated_by_id=actor))
    db.add(row)
    try:
        db.flush()
        append_audit(
            db,
            user,
            "HYMN",
            row.id,
            "CREATE",
            f'Hymn "{title}" created',
            {"verses": len(payload.verses), "choruses": len(payload.choruses)},
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict()
    invalidate_hymn_lists()
    return get_hymn(db, row.id)


def update_hymn(db: Session, hymn_id, payload: HymnUpdate, user: dict) -> HymnDetailOut:
    row = _find(db, hymn_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        _check_category(db, changes["category_id"])
    for field in ("number", "category_id", "author", "language", "version"):
        if field in changes and not (field == "category_id" and changes[field] is None):
            setattr(row, field, changes[field])
    if changes.get("title"):
        row.title = changes["title"].strip()
    if "title" in changes or "number" in changes:
        row.slug = _hymn_slug(row.title, row.number)
    row.updated_by_id = actor_id(user)
    try:
        append_audit(db, user, "HYMN", row.id, "UPDATE", details={"changes": sorted(changes)})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict()
    invalidate_hymn_lists()
    return get_hymn(db, row.id)


def delete_hymn(db: Session, hymn_id, user: dict) -> HymnOut:
    row = _find(db, hymn_id)
    now = utcnow()
    actor = actor_id(user)
    row.deleted_at = now
    row.updated_by_id = actor
    for item in list(row.verses) + list(row.choruses):
        if item.deleted_at is None:
            item.deleted_at = now
            item.updated_by_id = actor
    append_audit(db, user, "HYMN", row.id, "DELETE", f'Hymn "{row.title}" deleted')
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return HymnOut.model_validate(row)


def restore_hymn(db: Session, hymn_id, user: dict) -> HymnDetailOut:
    row = _find(db, hymn_id, deleted=True)
    deleted_at = row.deleted_at
    actor = actor_id(user)
    row.deleted_at = None
    row.updated_by_id = actor
    # Only lyrics removed by the cascade come back.
    for item in list(row.verses) + list(row.choruses):
        if item.deleted_at is not None and item.deleted_at == deleted_at:
            item.deleted_at = None
            item.updated_by_id = actor
    append_audit(db, user, "HYMN", row.id, "RESTORE", f'Hymn "{row.title}" restored')
    db.commit()
    invalidate_hymn_lists()
    return get_hymn(db, row.id)


def purge_hymn(db: Session, hymn_id, user: dict) -> dict:
    row = _find(db, hymn_id, deleted=None)
    row_id = row.id
    db.query(Verse).filter(Verse.hymn_id == row_id).delete(synchronize_session=False)
    db.query(Chorus).filter(Chorus.hymn_id == row_id).delete(synchronize_session=False)
    append_audit(db, user, "HYMN", row.id, "DELETE", f'Hymn "{row.title}" permanently deleted')
    db.expunge(row)
    db.query(Hymn).filter(Hymn.id == row_id).delete(synchronize_session=False)
    db.commit()
    invalidate_hymn_lists()
    return {"id": str(row_id), "status": "deleted"}
