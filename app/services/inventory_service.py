# app/services/inventory_service.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.data.models import ProductModel
from app.domain.enums import StockModel
from app.domain.errors import OutOfStock, ProductNotFound
from app.repos.order_repo import OrderRepo
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Jedyne miejsce ktore zmienia Product.stock / Product.sold i ProductItem.is_sold.

    Nie robi commit ani rollback - zawsze dziala w transakcji wywolujacego,
    zeby zmiana statusu Bill i stanu magazynu byly widoczne razem albo wcale.
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepo(db)
        self.orders = OrderRepo(db)

    def check_availability(
        self,
        product_id: int,
        quantity: int,
        product_item_id: int | None = None,
    ) -> ProductModel:
        product = self.products.get_product(product_id)

        if not product:
            raise ProductNotFound(product_id)

        if not product.is_active:
            raise OutOfStock(product_id, f"Product {product_id} is not active")

        if product.stock_model == StockModel.MANUAL:
            if product_item_id is not None:
                raise OutOfStock(
                    product_id,
                    f"Product item {product_item_id} is not available for product {product_id}",
                )
            if product.stock < quantity:
                raise OutOfStock(
                    product_id,
                    f"Insufficient stock for product {product_id}. "
                    f"Available: {product.stock}, Requested: {quantity}",
                )
            return product

        #serializowany
        if product_item_id is not None:
            if not self.products.get_unsold_item(product_id, product_item_id):
                raise OutOfStock(
                    product_id,
                    f"Product item {product_item_id} is not available for product {product_id}",
                )
            return product

        available = self.products.count_unsold_items(product_id)
        if available == 0:
            raise OutOfStock(product_id, f"Product {product_id} is sold out")
        if available < quantity:
            raise OutOfStock(
                product_id,
                f"Insufficient stock for product {product_id}. "
                f"Available: {available}, Requested: {quantity}",
            )
        return product

    def available_quantity(self, product: ProductModel) -> int:
        if product.stock_model == StockModel.SERIALIZED:
            return self.products.count_unsold_items(product.id)
        return product.stock

    def commit_sale(self, order_id: int, now: datetime | None = None) -> None:
        """
        Zdejmuje towar ze stanu po udanej platnosci.

        Kazda zmiana to warunkowy update (stock >= q / is_sold = false),
        0 zmienionych wierszy -> OutOfStock i wywolujacy robi rollback calosci.
        """
        sold_at = now or datetime.now(timezone.utc)

        # najpierw przypiete egzemplarze, zeby wolna pozycja nie zabrala przypietego
        items = sorted(
            self.orders.get_order_items(order_id),
            key=lambda i: i.product_item_id is None,
        )

        for item in items:
            product = item.product

            if product.stock_model == StockModel.SERIALIZED:
                unit_id = item.product_item_id

                if unit_id is None:
                    unit = self.products.first_unsold_item_for_update(product.id)
                    if unit is None:
                        raise OutOfStock(product.id, f"Product {product.id} is sold out")
                    unit_id = unit.id

                if self.products.mark_item_sold(unit_id, sold_at) == 0:
                    raise OutOfStock(
                        product.id,
                        f"Product item {unit_id} of product {product.id} is already sold",
                    )

                # zapamietaj ktory egzemplarz poszedl, release_sale go odznaczy
                item.product_item_id = unit_id
                self.products.adjust_sold(product.id, item.quantity)
                logger.info(f"Marked product item {unit_id} as sold for order {order_id}")
            else:
                if self.products.decrement_stock(product.id, item.quantity) == 0:
                    raise OutOfStock(
                        product.id,
                        f"Insufficient stock for product {product.id} while committing order {order_id}",
                    )
                logger.info(
                    f"Decremented stock by {item.quantity} for product {product.id} in order {order_id}"
                )

        self.db.flush()

    def release_sale(self, order_id: int) -> None:
        """Odwrotnosc commit_sale - tylko dla zwrotu (refund) oplaconego zamowienia."""
        for item in self.orders.get_order_items(order_id):
            product = item.product

            if product.stock_model == StockModel.SERIALIZED:
                if item.product_item_id is None:
                    logger.warning(
                        f"Order item {item.id} of order {order_id} has no product item to release"
                    )
                    continue

                if self.products.unmark_item_sold(item.product_item_id) == 0:
                    logger.warning(
                        f"Product item {item.product_item_id} was not marked as sold (order {order_id})"
                    )
                    continue

                self.products.adjust_sold(product.id, -item.quantity)
                logger.info(f"Released product item {item.product_item_id} from order {order_id}")
            else:
                self.products.increment_stock(product.id, item.quantity)
                logger.info(
                    f"Restored stock by {item.quantity} for product {product.id} from order {order_id}"
                )

        self.db.flush()
