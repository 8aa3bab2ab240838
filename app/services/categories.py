from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.hymn import Hymn
from app.schemas.catalog import CategoryCreate, CategoryOut, CategoryStatsRow, CategoryUpdate
from app.schemas.pagination import PaginationParams, QueryArgs
from app.services.audit import append_audit
from app.services.catalog_common import actor_id, find_or_404, utcnow
from app.services.filter_translator import translate, translate_raw
from app.services.list_cache import invalidate_hymn_lists
from app.services.pagination import paginate, simple_mapper
from app.services.query_schema import FunctionFilter, parse_schema
from app.services.queryable import SqlAlchemyCollection
from app.services.raw_pagination import paginate_raw
from app.services.slugs import slugify

CATEGORY_FILTERS = parse_schema(["name|contains", "slug|equals", "hymns:title|contains"])

CATEGORY_STATS_FILTERS = parse_schema(
    [
        "name|contains",
        "slug|equals",
        FunctionFilter(
            key="minHymns",
            data_type="number",
            where=lambda value, filters: None,
            raw_where=lambda value, filters: f"hymn_count >= {int(value)}",
        ),
    ]
)

CATEGORY_STATS_COLUMNS = {"id", "name", "slug", "created_at", "hymn_count"}

CATEGORY_STATS_SQL = """
SELECT CAST(c.id AS TEXT) AS id, c.name AS name, c.slug AS slug, c.created_at AS created_at,
       COUNT(h.id) AS hymn_count
FROM categories c
LEFT JOIN hymns h ON h.category_id = c.id AND h.deleted_at IS NULL
WHERE c.deleted_at IS NULL
GROUP BY c.id, c.name, c.slug, c.created_at
"""

_to_out = simple_mapper(lambda row: CategoryOut.model_validate(row))


def _conflict() -> HTTPException:
    return HTTPException(status_code=409, detail="Category with this name already exists")


def _find(db: Session, category_id, *, deleted=False) -> Category:
    return find_or_404(db, Category, category_id, "Category", deleted=deleted)


def list_categories(db: Session, filters: dict, params: PaginationParams):
    where = {"deleted_at": None, **translate(filters, CATEGORY_FILTERS)}
    return paginate(SqlAlchemyCollection(db, Category), QueryArgs(where=where), params, _to_out)


def category_stats(db: Session, filters: dict, params: PaginationParams):
    where = translate_raw(filters, CATEGORY_STATS_FILTERS)
    params = params.model_copy(update={"where": where or None})
    return paginate_raw(
        db,
        CATEGORY_STATS_SQL,
        params,
        simple_mapper(CategoryStatsRow.model_validate),
        allowed_columns=CATEGORY_STATS_COLUMNS,
        default_order_by="created_at",
    )


def get_category(db: Session, category_id) -> CategoryOut:
    return CategoryOut.model_validate(_find(db, category_id))


def create_category(db: Session, payload: CategoryCreate, user: dict) -> CategoryOut:
    name = payload.name.strip()
    row = Category(name=name, slug=slugify(name), created_by_id=actor_id(user), updated_by_id=actor_id(user))
    db.add(row)
    try:
        db.flush()
        append_audit(db, user, "CATEGORY", row.id, "CREATE", f'Category "{name}" created')
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict()
    db.refresh(row)
    return CategoryOut.model_validate(row)


def update_category(db: Session, category_id, payload: CategoryUpdate, user: dict) -> CategoryOut:
    row = _find(db, category_id)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"]:
        row.name = changes["name"].strip()
        row.slug = slugify(row.name)
    row.updated_by_id = actor_id(user)
    try:
        append_audit(db, user, "CATEGORY", row.id, "UPDATE", details={"changes": changes})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict()
    invalidate_hymn_lists()
    db.refresh(row)
    return CategoryOut.model_validate(row)


def delete_category(db: Session, category_id, user: dict) -> CategoryOut:
    row = _find(db, category_id)
    row.deleted_at = utcnow()
    row.updated_by_id = actor_id(user)
    append_audit(db, user, "CATEGORY", row.id, "DELETE", f'Category "{row.name}" deleted')
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return CategoryOut.model_validate(row)


def restore_category(db: Session, category_id, user: dict) -> CategoryOut:
    row = _find(db, category_id, deleted=True)
    row.deleted_at = None
    row.updated_by_id = actor_id(user)
    append_audit(db, user, "CATEGORY", row.id, "RESTORE", f'Category "{row.name}" restored')
    db.commit()
    invalidate_hymn_lists()
    db.refresh(row)
    return CategoryOut.model_validate(row)


def purge_category(db: Session, category_id, user: dict) -> dict:
    row = _find(db, category_id, deleted=None)
    if db.query(Hymn).filter(Hymn.category_id == row.id).count():
        raise HTTPException(status_code=409, detail="Category still has hymns")
    append_audit(db, user, "CATEGORY", row.id, "DELETE", f'Category "{row.name}" permanently deleted')
    db.delete(row)
    db.commit()
    invalidate_hymn_lists()
    return {"id": str(category_id), "status": "deleted"}
