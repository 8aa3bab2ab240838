from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.common import filter_params, pagination_params
from app.core.deps import get_current_user
from app.db.session import get_db
from app.schemas.catalog import LyricIn, LyricOut, LyricUpdate
from app.schemas.pagination import PaginationParams
from app.services import lyrics as lyrics_service

search_router = APIRouter()


@search_router.get("")
def search_lyrics(
    filters: dict = Depends(filter_params),
    params: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
):
    return lyrics_service.search_lyrics(db, filters, params).to_response()


def build_lyric_router(kind: str) -> APIRouter:
    """CRUD routes for one lyric kind nested under ``/hymns/{hymn_id}``."""
    router = APIRouter()

    @router.get("")
    def list_lyrics(
        hymn_id: str,
        filters: dict = Depends(filter_params),
        params: PaginationParams = Depends(pagination_params),
        db: Session = Depends(get_db),
    ):
        return lyrics_service.list_lyrics(db, kind, hymn_id, filters, params).to_response()

    @router.post("", response_model=LyricOut, status_code=201)
    def create_lyric(hymn_id: str, payload: LyricIn, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
        return lyrics_service.create_lyric(db, kind, hymn_id, payload, user)

    @router.patch("/{lyric_id}", response_model=LyricOut)
    def update_lyric(
        hymn_id: str,
        lyric_id: str,
        payload: LyricUpdate,
        db: Session = Depends(get_db),
        user: dict = Depends(get_current_user),
    ):
        return lyrics_service.update_lyric(db, kind, hymn_id, lyric_id, payload, user)

    @router.delete("/{lyric_id}", response_model=LyricOut)
    def delete_lyric(hymn_id: str, lyric_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
        return lyrics_service.delete_lyric(db, kind, hymn_id, lyric_id, user)

    @router.post("/{lyric_id}/restore", response_model=LyricOut)
    def restore_lyric(hymn_id: str, lyric_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
        return lyrics_service.restore_lyric(db, kind, hymn_id, lyric_id, user)

    return router


verses_router = build_lyric_router("verse")
choruses_router = build_lyric_router("chorus")
