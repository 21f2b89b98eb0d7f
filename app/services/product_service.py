# app/services/product_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from app.data.models import ProductModel
from app.domain.enums import StockModel
from app.domain.errors import Forbidden, InvalidState, ProductNotFound
from app.domain.schemas import ProductCreate
from app.repos.pagination import keyset_paginate
from app.repos.product_repo import ProductRepo
from app.services.inventory_service import InventoryLedger
from app.utils.settings import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ProductRepo(db)
        self.ledger = InventoryLedger(db)

    def _to_dict(self, product: ProductModel) -> Dict[str, Any]:
        return {
            "id": product.id,
            "seller_id": product.seller_id,
            "name": product.name,
            "description": product.description,
            "original_price": product.original_price,
            "discount_price": product.discount_price,
            "stock_model": product.stock_model,
            "stock": product.stock,
            "sold": product.sold,
            "available": self.ledger.available_quantity(product),
            "is_active": product.is_active,
            "created_at": product.created_at,
        }

    def create_product(self, seller_id: int, payload: ProductCreate) -> Dict[str, Any]:
        serialized = payload.stock_model == StockModel.SERIALIZED

        if serialized and payload.stock:
            raise InvalidState("Serialized products are counted by items, stock must be 0")
        if not serialized and payload.item_codes:
            raise InvalidState("Manual stock products cannot have items")

        try:
            product = self.repo.create_product(
                ProductModel(
                    seller_id=seller_id,
                    name=payload.name,
                    description=payload.description,
                    original_price=payload.original_price,
                    discount_price=payload.discount_price,
                    stock_model=payload.stock_model,
                    stock=payload.stock,
                    sold=0,
                    is_active=True,
                )
            )
            if payload.item_codes:
                self.repo.add_items(product.id, payload.item_codes)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Product {product.id} ({payload.stock_model.value}) created by seller {seller_id}")
        return self._to_dict(product)

    def add_items(self, seller_id: int, product_id: int, codes: List[str]) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)

        if not product:
            raise ProductNotFound(product_id)
        if product.seller_id != seller_id:
            raise Forbidden("Product belongs to another seller")
        if product.stock_model != StockModel.SERIALIZED:
            raise InvalidState(f"Product {product_id} does not use serialized items")

        try:
            self.repo.add_items(product_id, codes)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Added {len(codes)} items to product {product_id}")
        return self._to_dict(product)

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)

        if not product:
            raise ProductNotFound(product_id)

        return self._to_dict(product)

    def list_products(
        self,
        limit: int | None = None,
        cursor: int | None = None,
        page: int | None = None,
        search: str | None = None,
    ) -> Dict[str, Any]:
        take = min(limit or DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT)
        result = keyset_paginate(
            self.db,
            self.repo.list_active_stmt(search),
            ProductModel,
            take,
            cursor=cursor,
            page=page,
        )

        return {
            "items": [self._to_dict(p) for p in result.items],
            "total_items": result.total_items,
            "next_cursor": result.next_cursor,
            "has_next_page": result.has_next_page,
        }
