from sqlalchemy import Column, Enum, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from app.data.database import Base
from app.domain.enums import SelectFrom


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # ustawiane przy zamowieniu (przypiety egzemplarz) albo przy commit_sale
    product_item_id = Column(Integer, ForeignKey("product_items.id"), nullable=True)

    quantity = Column(Integer, nullable=False)
    # snapshot: quantity * cena jednostkowa w chwili zamowienia
    price = Column(Numeric(12, 2), nullable=False)
    source = Column(Enum(SelectFrom, native_enum=False, length=20), nullable=False, default=SelectFrom.DIRECT)

    order = relationship("OrderModel", back_populates="items")
    product = relationship("ProductModel")
    product_item = relationship("ProductItemModel")
