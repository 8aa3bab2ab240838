from fastapi import APIRouter
from app.api import audit_logs, auth, categories, hymns, lyrics, users

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(categories.router, prefix="/categories", tags=["Categories"])
router.include_router(lyrics.verses_router, prefix="/hymns/{hymn_id}/verses", tags=["Verses"])
router.include_router(lyrics.choruses_router, prefix="/hymns/{hymn_id}/choruses", tags=["Choruses"])
router.include_router(hymns.router, prefix="/hymns", tags=["Hymns"])
router.include_router(lyrics.search_router, prefix="/lyrics", tags=["Lyrics"])
router.include_router(audit_logs.router, prefix="/audit-logs", tags=["AuditLogs"])
