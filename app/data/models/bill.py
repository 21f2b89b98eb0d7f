from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.data.database import Base
from app.domain.enums import BillStatus, BillType, PaymentMethod


def _now():
    return datetime.now(timezone.utc)


class BillModel(Base):
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(Enum(BillType, native_enum=False, length=20), nullable=False, default=BillType.MONEY_IN)
    # PENDING -> DONE | FAILED | CANCELLED, DONE -> REFUNDED
    status = Column(Enum(BillStatus, native_enum=False, length=20), nullable=False, default=BillStatus.PENDING, index=True)
    payment_method = Column(Enum(PaymentMethod, native_enum=False, length=20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # najpierw orderCode bramki, po oplaceniu nadpisywane referencja rozliczenia
    transaction_id = Column(String(100), nullable=True, index=True)
    # orderCode bramki zostaje na stale - duplikat webhooka po DONE dalej trafia w ten bill
    order_code = Column(BigInteger, nullable=True, unique=True)
    note = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    order = relationship("OrderModel", back_populates="bill", uselist=False)
