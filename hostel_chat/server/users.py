"""User directory routes. Credentials live in the auth service, not here."""
from typing import List

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from . import schemas, store
from .config import MAX_ID
from .database import get_db

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: schemas.UserCreate, db: Session = Depends(get_db)):
    return store.create_user(db, payload.username, payload.email, payload.role)


@router.get("", response_model=List[schemas.UserOut])
def list_users(db: Session = Depends(get_db)):
    return store.list_users(db)


@router.get("/online", response_model=schemas.OnlineUsersResponse)
def online_users(request: Request):
    user_ids = request.app.state.presence.online_users()
    return schemas.OnlineUsersResponse(count=len(user_ids), user_ids=user_ids)


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(user_id: int = Path(..., gt=0, le=MAX_ID), db: Session = Depends(get_db)):
    return store.get_user(db, user_id)
