from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.data.database import Base


class ProductItemModel(Base):
    """Pojedyncza sztuka produktu serializowanego (np. klucz licencyjny)."""

    __tablename__ = "product_items"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(255), nullable=False)

    is_sold = Column(Boolean, nullable=False, default=False)
    sold_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    product = relationship("ProductModel", back_populates="items")
