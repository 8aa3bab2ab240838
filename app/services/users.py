from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import USER_ROLES, User
from app.schemas.auth import LoginIn, SignupIn, TokenOut
from app.schemas.catalog import UserOut, UserUpdate
from app.schemas.pagination import PaginationParams, QueryArgs
from app.services.audit import append_audit
from app.services.catalog_common import find_or_404, utcnow
from app.services.filter_translator import translate
from app.services.pagination import paginate, simple_mapper
from app.services.query_schema import create_enum_filter, parse_schema
from app.services.queryable import SqlAlchemyCollection

_LOG = logging.getLogger("app.users")

USER_FILTERS = parse_schema(
    [
        "first_name|contains",
        "last_name|contains",
        "email|contains",
        create_enum_filter("role", USER_ROLES),
    ]
)


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def signup(db: Session, payload: SignupIn) -> UserOut:
    """Register a user. The very first account becomes the Admin."""
    email = normalize_email(payload.email)
    role = "User" if db.query(User.id).first() is not None else "Admin"
    row = User(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=role,
    )
    db.add(row)
    try:
        db.flush()
        append_audit(
            db,
            {"sub": str(row.id)},
            "USER",
            row.id,
            "CREATE",
            f"User {row.first_name} {row.last_name} signed up with email {email}",
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email address already exists")
    db.refresh(row)
    _LOG.info("user signed up id=%s role=%s", row.id, role)
    return UserOut.model_validate(row)


def login(db: Session, payload: LoginIn) -> TokenOut:
    row = db.query(User).filter(User.email == normalize_email(payload.email)).first()
    if row is None or not verify_password(payload.password, row.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect credentials")
    if row.deleted_at is not None:
        raise HTTPException(status_code=401, detail="User disabled. Contact Admin")
    append_audit(db, {"sub": str(row.id)}, "USER", row.id, "LOGIN", f"User {row.email} logged in")
    db.commit()
    return TokenOut(access_token=create_access_token(row.id, row.email, row.role))


def current_user(db: Session, user: dict) -> UserOut:
    return UserOut.model_validate(find_or_404(db, User, user.get("sub"), "User"))


def list_users(db: Session, filters: dict, params: PaginationParams):
    where = {"deleted_at": None, **translate(filters, USER_FILTERS)}
    return paginate(SqlAlchemyCollection(db, User), QueryArgs(where=where), params, simple_mapper(UserOut.model_validate))


def get_user(db: Session, user_id) -> UserOut:
    return UserOut.model_validate(find_or_404(db, User, user_id, "User"))


def update_user(db: Session, user_id, payload: UserUpdate, user: dict) -> UserOut:
    row = find_or_404(db, User, user_id, "User")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(row, field, value.strip() if isinstance(value, str) else value)
    append_audit(db, user, "USER", row.id, "UPDATE", details={"changes": sorted(changes)})
    db.commit()
    db.refresh(row)
    return UserOut.model_validate(row)


def delete_user(db: Session, user_id, user: dict) -> UserOut:
    row = find_or_404(db, User, user_id, "User")
    if str(row.id) == str(user.get("sub")):
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    row.deleted_at = utcnow()
    append_audit(db, user, "USER", row.id, "DELETE", f"User {row.email} deleted")
    db.commit()
    db.refresh(row)
    return UserOut.model_validate(row)


def restore_user(db: Session, user_id, user: dict) -> UserOut:
    row = find_or_404(db, User, user_id, "User", deleted=True)
    row.deleted_at = None
    append_audit(db, user, "USER", row.id, "RESTORE", f"User {row.email} restored")
    db.commit()
    db.refresh(row)
    return UserOut.model_validate(row)
