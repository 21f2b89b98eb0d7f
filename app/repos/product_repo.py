# app/repos/product_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.data.models import ProductModel
from app.data.models import ProductItemModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    def add_items(self, product_id: int, codes: List[str]) -> List[ProductItemModel]:
        items = [ProductItemModel(product_id=product_id, code=code) for code in codes]
        self.db.add_all(items)
        self.db.flush()
        return items

    def list_active_stmt(self, search: str | None = None):
        stmt = select(ProductModel).where(ProductModel.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                ProductModel.name.ilike(pattern) | ProductModel.description.ilike(pattern)
            )
        return stmt

    # ---- egzemplarze serializowane ----

    def count_unsold_items(self, product_id: int) -> int:
        return self.db.execute(
            select(func.count(ProductItemModel.id)).where(
                ProductItemModel.product_id == product_id,
                ProductItemModel.is_sold.is_(False),
            )
        ).scalar_one()

    def get_unsold_item(self, product_id: int, item_id: int) -> ProductItemModel | None:
        return self.db.execute(
            select(ProductItemModel).where(
                ProductItemModel.id == item_id,
                ProductItemModel.product_id == product_id,
                ProductItemModel.is_sold.is_(False),
            )
        ).scalar_one_or_none()

    def first_unsold_item_for_update(self, product_id: int) -> ProductItemModel | None:
        # skip_locked: rownolegle commity biora rozne egzemplarze
        return self.db.execute(
            select(ProductItemModel)
            .where(
                ProductItemModel.product_id == product_id,
                ProductItemModel.is_sold.is_(False),
            )
            .order_by(ProductItemModel.id)
            .limit(1)
            .with_for_update(skip_locked=True)
        ).scalar_one_or_none()

    def mark_item_sold(self, item_id: int, sold_at: datetime) -> int:
        # warunek is_sold = false, 0 wierszy = ktos sprzedal szybciej
        result = self.db.execute(
            update(ProductItemModel)
            .where(ProductItemModel.id == item_id, ProductItemModel.is_sold.is_(False))
            .values(is_sold=True, sold_at=sold_at)
        )
        return result.rowcount

    def unmark_item_sold(self, item_id: int) -> int:
        result = self.db.execute(
            update(ProductItemModel)
            .where(ProductItemModel.id == item_id, ProductItemModel.is_sold.is_(True))
            .values(is_sold=False, sold_at=None)
        )
        return result.rowcount

    # ---- licznik stock ----

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        # np. update products set stock = stock - 3 where id = 1 and stock >= 3
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity, sold=ProductModel.sold + quantity)
        )
        return result.rowcount

    def increment_stock(self, product_id: int, quantity: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock=ProductModel.stock + quantity, sold=ProductModel.sold - quantity)
        )
        return result.rowcount

    def adjust_sold(self, product_id: int, delta: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(sold=ProductModel.sold + delta)
        )
        return result.rowcount
