from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import require_admin, to_http_error
from app.data.database import get_db
from app.data.models import UserModel
from app.domain.enums import UserRole
from app.domain.schemas import UserCreate, UserRead
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def get_service(db: Session):
    return UserService(db)


@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    try:
        return get_service(db).create_user(payload)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/", response_model=List[UserRead])
def list_users(
    role: UserRole = Query(UserRole.SELLER),
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return get_service(db).list_by_role(role)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    try:
        return get_service(db).get_user(user_id)
    except LookupError as e:
        raise to_http_error(e)
