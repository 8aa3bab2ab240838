from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.common import filter_params, pagination_params
from app.core.deps import get_current_user, require_role
from app.db.session import get_db
from app.schemas.catalog import CategoryCreate, CategoryOut, CategoryUpdate
from app.schemas.pagination import PaginationParams
from app.services import categories as categories_service

router = APIRouter()


@router.get("")
def list_categories(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
):
    return categories_service.list_categories(db, filters, params).to_response()


@router.get("/stats")
def category_stats(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
):
    return categories_service.category_stats(db, filters, params).to_response()


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: str, db: Session = Depends(get_db)):
    return categories_service.get_category(db, category_id)


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return categories_service.create_category(db, payload, user)


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return categories_service.update_category(db, category_id, payload, user)


@router.delete("/{category_id}", response_model=CategoryOut)
def delete_category(category_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return categories_service.delete_category(db, category_id, user)


@router.post("/{category_id}/restore", response_model=CategoryOut)
def restore_category(category_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return categories_service.restore_category(db, category_id, user)


@router.delete("/{category_id}/permanent")
def purge_category(category_id: str, db: Session = Depends(get_db), admin: dict = Depends(require_role("Admin"))):
    return categories_service.purge_category(db, category_id, admin)
