from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.common import filter_params, pagination_params
from app.core.deps import require_role
from app.db.session import get_db
from app.schemas.catalog import UserOut, UserUpdate
from app.schemas.pagination import PaginationParams
from app.services import users as users_service

router = APIRouter()
admin_only = require_role("Admin")


@router.get("")
def list_users(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
    admin: dict = Depends(admin_only),
):
    return users_service.list_users(db, filters, params).to_response()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db), admin: dict = Depends(admin_only)):
    return users_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db), admin: dict = Depends(admin_only)):
    return users_service.update_user(db, user_id, payload, admin)


@router.delete("/{user_id}", response_model=UserOut)
def delete_user(user_id: str, db: Session = Depends(get_db), admin: dict = Depends(admin_only)):
    return users_service.delete_user(db, user_id, admin)


@router.post("/{user_id}/restore", response_model=UserOut)
def restore_user(user_id: str, db: Session = Depends(get_db), admin: dict = Depends(admin_only)):
    return users_service.restore_user(db, user_id, admin)
