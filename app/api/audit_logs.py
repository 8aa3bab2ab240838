from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.common import filter_params, pagination_params
from app.core.deps import require_role
from app.db.session import get_db
from app.schemas.pagination import PaginationParams
from app.services.audit import list_audit_logs

router = APIRouter()


@router.get("")
def list_logs(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
    admin: dict = Depends(require_role("Admin")),
):
    return list_audit_logs(db, filters, params).to_response()
