from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Integer, String

from app.data.database import Base
from app.domain.enums import UserRole


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    # uprawnienia: refund / cleanup tylko ADMINISTRATOR, lista sprzedazy SELLER
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False, default=UserRole.USER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
