from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from app.data.models import CartItemModel
from app.domain.errors import InvalidQuantity, NotFound, ProductNotFound
from app.repos.cart_repo import CartRepo
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Koszyk jako para (user, product) z iloscia - tylko staging dla create_from_cart.
    commands (add, remove) modyfikuja stan
    query (get) tylko odczyt
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        items = self.repo.get_cart_items(user_id)

        lines = []
        total = Decimal("0.00")
        for i in items:
            unit_price = i.product.discount_price if i.product else None
            price = unit_price * i.quantity if unit_price is not None else None
            if price is not None:
                total += price
            lines.append(
                {
                    "product_id": i.product_id,
                    "name": i.product.name if i.product else None,
                    "quantity": i.quantity,
                    "unit_price": unit_price,
                    "price": price,
                }
            )

        #dict przyksztalcany w jsona
        return {"user_id": user_id, "items": lines, "total": total}

    #commands
    def add_product(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantity("Quantity must be greater than 0")

        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            raise ProductNotFound(product_id)

        try:
            existing_item = self.repo.get_cart_item(user_id, product_id)

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart of user {user_id}, quantity "
                    f"{existing_item.quantity} -> {existing_item.quantity + quantity}"
                )
                existing_item.quantity += quantity
                self.repo.add_cart_item(existing_item)
            else:
                logger.info(f"Adding product {product_id} to cart of user {user_id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        user_id=user_id,
                        product_id=product_id,
                        quantity=quantity,
                    )
                )

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(user_id)

    def remove_product(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantity("Quantity must be greater than 0")

        item = self.repo.get_cart_item(user_id, product_id)
        if not item:
            raise NotFound("Product not found in cart")

        try:
            #usun cala pozycje albo zmniejsz ilosc
            if quantity >= item.quantity:
                logger.info(f"Removing product {product_id} from cart of user {user_id}")
                self.repo.delete_cart_item(item)
            else:
                item.quantity -= quantity
                self.repo.add_cart_item(item)

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(user_id)
