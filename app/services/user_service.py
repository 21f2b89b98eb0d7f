from typing import List

from sqlalchemy.orm import Session

from app.data.models import UserModel
from app.domain.enums import UserRole
from app.domain.errors import Forbidden, NotFound
from app.domain.schemas import UserCreate, UserRead
from app.repos.user_repo import UserRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    """
    Uzytkownicy i role. Uwierzytelnianie jest poza serwisem,
    tozsamosc przychodzi jako user_id.
    """

    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            # idempotentnie - ten sam id zwraca istniejacego uzytkownika
            return UserRead.model_validate(existing)

        try:
            user = self.repo.add_user(UserModel(id=payload.id, name=payload.name, role=payload.role))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"User {user.id} created with role {user.role.value}")
        return UserRead.model_validate(user)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        return UserRead.model_validate(user)

    def list_by_role(self, role: UserRole) -> List[UserRead]:
        return [UserRead.model_validate(u) for u in self.repo.get_users_by_role(role)]

    def require_role(self, user_id: int, *roles: UserRole) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        if user.role not in roles:
            logger.warning(f"User {user_id} with role {user.role.value} denied, required {[r.value for r in roles]}")
            raise Forbidden("Insufficient role")
        return user
