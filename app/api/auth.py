from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.db.session import get_db
from app.schemas.auth import LoginIn, SignupIn, TokenOut
from app.schemas.catalog import UserOut
from app.services import users as users_service

router = APIRouter()


@router.post("/signup", response_model=UserOut, status_code=201)
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    return users_service.signup(db, payload)


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return users_service.login(db, payload)


@router.get("/me", response_model=UserOut)
def me(user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    return users_service.current_user(db, user)
