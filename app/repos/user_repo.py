from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.data.models import UserModel
from app.domain.enums import UserRole


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_users_by_role(self, role: UserRole) -> List[UserModel]:
        return list(
            self.db.execute(
                select(UserModel).where(UserModel.role == role).order_by(UserModel.id)
            ).scalars().all()
        )

    def add_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.flush()
        return user

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
