# app/services/order_service.py
from collections import Counter, defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models import BillModel
from app.data.models import OrderModel
from app.data.models import OrderItemModel
from app.domain.enums import BillStatus, BillType, PaymentMethod, SelectFrom, StockModel
from app.domain.errors import (
    EmptyCart,
    InvalidQuantity,
    InvalidState,
    NotFound,
    PaymentLinkCreationFailed,
)
from app.domain.schemas import OrderItemIn
from app.repos.cart_repo import CartRepo
from app.repos.order_repo import OrderRepo
from app.repos.pagination import keyset_paginate
from app.services.inventory_service import InventoryLedger
from app.services.payment_gateway import PayOSClient, generate_order_code, generate_order_number
from app.utils.settings import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _enum_value(value):
    return getattr(value, "value", value)


def bill_to_dict(bill: BillModel) -> Dict[str, Any]:
    return {
        "id": bill.id,
        "status": bill.status,
        "payment_method": _enum_value(bill.payment_method),
        "amount": bill.amount,
        "transaction_id": bill.transaction_id,
        "note": bill.note,
        "created_at": bill.created_at,
        "updated_at": bill.updated_at,
    }


def order_item_to_dict(item: OrderItemModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product.name if item.product else None,
        "seller_id": item.product.seller_id if item.product else None,
        "product_item_id": item.product_item_id,
        "product_item_code": item.product_item.code if item.product_item else None,
        "quantity": item.quantity,
        "price": item.price,
        "source": item.source,
    }


def order_to_dict(order: OrderModel, seller_id: int | None = None) -> Dict[str, Any]:
    items = order.items
    if seller_id is not None:
        # sprzedawca widzi tylko swoje pozycje
        items = [i for i in items if i.product and i.product.seller_id == seller_id]

    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_price": order.total_price,
        "created_at": order.created_at,
        "bill": bill_to_dict(order.bill),
        "items": [order_item_to_dict(i) for i in items],
    }


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień:
    commands - create, create_from_cart (walidacja + staging order/bill + link platnosci)
    query - find_all, find_seller_orders, find_one, get_order_items, get_invoice
    """

    def __init__(self, db: Session, payment_gateway: PayOSClient):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.ledger = InventoryLedger(db)
        self.payment_gateway = payment_gateway

    #commands
    def create(
        self,
        user_id: int,
        items: List[OrderItemIn],
        payment_method: PaymentMethod,
        note: str | None = None,
        clear_cart: bool = False,
    ) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamówienia.

        1. Walidacja dostepnosci kazdej pozycji (bez zapisow)
        2. Ceny: discount_price * quantity, suma -> total
        3. Jedna transakcja: bill (PENDING) + order + order items
        4. Link platnosci - jak sie nie uda, rollback calosci
        """
        if not items:
            raise InvalidQuantity("Order must contain at least one item")

        lines, total, products = self._stage_lines(items)

        try:
            bill = self.repo.create_bill(
                BillModel(
                    user_id=user_id,
                    type=BillType.MONEY_IN,
                    status=BillStatus.PENDING,
                    payment_method=payment_method,
                    amount=total,
                    note=note or "",
                )
            )

            order = self.repo.create_order(
                OrderModel(
                    user_id=user_id,
                    total_price=total,
                    bill_id=bill.id,
                )
            )

            self.repo.add_order_items(
                [OrderItemModel(order_id=order.id, **line) for line in lines]
            )

            if clear_cart:
                self.cart_repo.clear_cart(user_id, list(products))

            order_code = generate_order_code(bill.id)

            # link platnosci w tej samej transakcji - order bez linku nie moze powstac
            try:
                payment = self.payment_gateway.create_payment_link(
                    order_code=order_code,
                    amount=total,
                    description=generate_order_number(order_code),
                    items=[
                        {
                            "name": products[line["product_id"]].name,
                            "quantity": line["quantity"],
                            "price": line["price"],
                        }
                        for line in lines
                    ],
                    return_url=self.payment_gateway.return_url(),
                    cancel_url=self.payment_gateway.cancel_url(),
                )
            except PaymentLinkCreationFailed:
                raise
            except Exception as e:
                logger.error(f"Failed to create payment link for order {order.id}: {e}")
                raise PaymentLinkCreationFailed()

            bill.order_code = payment["order_code"]
            bill.transaction_id = str(payment["order_code"])

            try:
                self.repo.commit()
            except IntegrityError as e:
                # orderCode jest unikalny, link w bramce juz istnieje ale zamowienie nie powstanie
                logger.error(f"orderCode {payment['order_code']} already used, order not created: {e}")
                raise PaymentLinkCreationFailed("Payment order code already in use")

        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Order {order.id} created for user {user_id}, bill {bill.id}, "
            f"total {total}, orderCode {bill.order_code}"
        )

        return {
            "order_id": order.id,
            "bill_id": bill.id,
            "order_code": bill.order_code,
            "amount": total,
            "status": BillStatus.PENDING,
            "checkout_url": payment.get("checkout_url"),
            "qr_code": payment.get("qr_code"),
        }

    def create_from_cart(
        self,
        user_id: int,
        payment_method: PaymentMethod,
        note: str | None = None,
    ) -> Dict[str, Any]:
        cart_items = self.cart_repo.get_cart_items(user_id)

        if not cart_items:
            raise EmptyCart()

        items = [
            OrderItemIn(
                product_id=ci.product_id,
                quantity=ci.quantity,
                source=SelectFrom.CART,
            )
            for ci in cart_items
        ]

        logger.info(f"Creating order from cart for user {user_id} ({len(items)} items)")

        # koszyk czyszczony w tej samej transakcji co zamowienie
        return self.create(user_id, items, payment_method, note, clear_cart=True)

    def _stage_lines(self, items: List[OrderItemIn]):
        lines: List[Dict[str, Any]] = []
        products = {}
        total = Decimal("0.00")
        requested: Dict[int, int] = defaultdict(int)

        pinned = Counter(i.product_item_id for i in items if i.product_item_id is not None)
        duplicated = [item_id for item_id, count in pinned.items() if count > 1]
        if duplicated:
            raise InvalidQuantity(f"Product item {duplicated[0]} requested more than once")

        for req in items:
            if req.quantity <= 0:
                raise InvalidQuantity("Quantity must be greater than 0")

            product = self.ledger.check_availability(req.product_id, req.quantity, req.product_item_id)
            products[product.id] = product
            requested[product.id] += req.quantity

            unit_price = Decimal(product.discount_price)
            # PayOS rozlicza w calych VND, bill musi miec dokladnie te kwote
            if unit_price != unit_price.to_integral_value():
                raise InvalidState(
                    f"Product {product.id} has a fractional price {unit_price}, only whole amounts can be paid"
                )
            total += unit_price * req.quantity

            if product.stock_model == StockModel.SERIALIZED:
                if req.product_item_id is not None and req.quantity != 1:
                    raise InvalidQuantity(
                        f"Product item {req.product_item_id} can only be ordered with quantity 1"
                    )
                # jedna pozycja = jeden egzemplarz
                for _ in range(req.quantity):
                    lines.append(
                        {
                            "product_id": product.id,
                            "product_item_id": req.product_item_id,
                            "quantity": 1,
                            "price": unit_price,
                            "source": req.source,
                        }
                    )
            else:
                lines.append(
                    {
                        "product_id": product.id,
                        "product_item_id": None,
                        "quantity": req.quantity,
                        "price": unit_price * req.quantity,
                        "source": req.source,
                    }
                )

        # ten sam produkt w kilku pozycjach - sprawdz laczna ilosc
        for product_id, quantity in requested.items():
            if quantity > 1:
                self.ledger.check_availability(product_id, quantity)

        return lines, total, products

    #query
    def find_all(
        self,
        user_id: int,
        limit: int | None = None,
        cursor: int | None = None,
        page: int | None = None,
        status: BillStatus | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Dict[str, Any]:
        stmt = self.repo.list_stmt(
            user_id=user_id,
            status=status,
            search=search,
            start_date=start_date,
            end_date=end_date,
        )
        return self._page(stmt, limit, cursor, page)

    def find_seller_orders(
        self,
        seller_id: int,
        limit: int | None = None,
        cursor: int | None = None,
        page: int | None = None,
        status: BillStatus | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Dict[str, Any]:
        stmt = self.repo.list_stmt(
            seller_id=seller_id,
            status=status,
            search=search,
            start_date=start_date,
            end_date=end_date,
        )
        return self._page(stmt, limit, cursor, page, seller_id=seller_id)

    def _page(self, stmt, limit, cursor, page, seller_id: int | None = None) -> Dict[str, Any]:
        take = min(limit or DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT)
        result = keyset_paginate(self.db, stmt, OrderModel, take, cursor=cursor, page=page)

        return {
            "items": [order_to_dict(o, seller_id=seller_id) for o in result.items],
            "total_items": result.total_items,
            "next_cursor": result.next_cursor,
            "has_next_page": result.has_next_page,
        }

    def find_one(self, user_id: int, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order_visible_to(order_id, user_id)

        if not order:
            raise NotFound("Order not found")

        return order_to_dict(order)

    def get_order_items(self, user_id: int, order_id: int) -> List[Dict[str, Any]]:
        if not self.repo.get_order_visible_to(order_id, user_id):
            raise NotFound("Order not found")

        return [order_item_to_dict(i) for i in self.repo.get_order_items(order_id)]

    def get_invoice(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """
        Dane faktury - tylko wlasciciel i tylko oplacone zamowienie.
        Renderowanie PDF robi osobny serwis.
        """
        order = self.repo.get_order_for_user(order_id, user_id)

        if not order:
            raise NotFound("Order not found or access denied")

        if order.bill.status != BillStatus.DONE:
            raise InvalidState("Invoice is only available for completed orders")

        return {
            "invoice_number": f"INV-{order.id:08d}",
            "order_id": order.id,
            "issued_at": order.bill.updated_at,
            "buyer_id": order.user_id,
            "buyer_name": order.user.name if order.user else None,
            "payment_method": _enum_value(order.bill.payment_method),
            "transaction_id": order.bill.transaction_id,
            "lines": [
                {
                    "product_id": i.product_id,
                    "product_name": i.product.name,
                    "seller_id": i.product.seller_id,
                    "quantity": i.quantity,
                    "unit_price": i.price / i.quantity,
                    "price": i.price,
                }
                for i in order.items
            ],
            "total": order.total_price,
        }
