from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.common import utcnow  # noqa: F401
from app.services.queryable import SqlAlchemyCollection


def actor_id(user: Optional[dict]) -> UUID | None:
    sub = (user or {}).get("sub")
    if not sub:
        return None
    try:
        return UUID(str(sub))
    except ValueError:
        return None


def parse_id(raw, label: str) -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw or "").strip())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"{label} not found")


def find_or_404(db: Session, model, raw_id, label: str, *, deleted: Optional[bool] = False, options=()):
    """Load one row scoped by id and soft-delete state.

    ``deleted=False`` matches live rows, ``True`` only soft-deleted rows and
    ``None`` either.
    """
    where: dict = {"id": parse_id(raw_id, label)}
    if deleted is True:
        where["deleted_at"] = {"not": None}
    elif deleted is False:
        where["deleted_at"] = None
    row = SqlAlchemyCollection(db, model, options).find_unique(where)
    if row is None:
        if deleted is True:
            raise HTTPException(status_code=404, detail=f"{label} not found or not deleted")
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row
