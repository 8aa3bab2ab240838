from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.common import filter_params, pagination_params
from app.core.deps import get_current_user, require_role
from app.db.session import get_db
from app.schemas.catalog import HymnCreate, HymnDetailOut, HymnOut, HymnUpdate
from app.schemas.pagination import PaginationParams
from app.services import hymns as hymns_service

router = APIRouter()


@router.get("")
def list_hymns(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
):
    return hymns_service.list_hymns(db, filters, params)


@router.get("/{hymn_id}", response_model=HymnDetailOut)
def get_hymn(hymn_id: str, db: Session = Depends(get_db)):
    return hymns_service.get_hymn(db, hymn_id)


@router.post("", response_model=HymnDetailOut, status_code=201)
def create_hymn(payload: HymnCreate, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return hymns_service.create_hymn(db, payload, user)


@router.patch("/{hymn_id}", response_model=HymnDetailOut)
def update_hymn(hymn_id: str, payload: HymnUpdate, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return hymns_service.update_hymn(db, hymn_id, payload, user)


@router.delete("/{hymn_id}", response_model=HymnOut)
def delete_hymn(hymn_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return hymns_service.delete_hymn(db, hymn_id, user)


@router.post("/{hymn_id}/restore", response_model=HymnDetailOut)
def restore_hymn(hymn_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return hymns_service.restore_hymn(db, hymn_id, user)


@router.delete("/{hymn_id}/permanent")
def purge_hymn(hymn_id: str, db: Session = Depends(get_db), admin: dict = Depends(require_role("Admin"))):
    return hymns_service.purge_hymn(db, hymn_id, admin)
