from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AUDIT_ACTIONS, AUDIT_ENTITY_TYPES, AuditLog
from app.schemas.catalog import AuditLogOut
from app.schemas.pagination import PaginationParams, QueryArgs
from app.services.catalog_common import actor_id
from app.services.filter_translator import translate
from app.services.pagination import paginate, simple_mapper
from app.services.query_schema import create_enum_filter, parse_schema
from app.services.queryable import SqlAlchemyCollection

AUDIT_FILTERS = parse_schema(
    [
        "description|contains",
        "entity_id|equals",
        "user_id|equals",
        create_enum_filter("action", AUDIT_ACTIONS),
        create_enum_filter("entity_type", AUDIT_ENTITY_TYPES),
    ]
)


def append_audit(
    db: Session,
    user: Optional[dict],
    entity_type: str,
    entity_id: Any,
    action: str,
    description: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Stage an audit row in the caller's transaction."""
    db.add(
        AuditLog(
            user_id=actor_id(user),
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            description=description,
            details=details or {},
        )
    )


def list_audit_logs(db: Session, filters: dict, params: PaginationParams):
    where = translate(filters, AUDIT_FILTERS)
    return paginate(
        SqlAlchemyCollection(db, AuditLog),
        QueryArgs(where=where),
        params,
        simple_mapper(AuditLogOut.model_validate),
    )
