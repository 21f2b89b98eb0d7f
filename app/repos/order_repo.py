# app/repos/order_repo.py
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from app.data.models import BillModel
from app.data.models import OrderModel
from app.data.models import OrderItemModel
from app.data.models import ProductModel
from app.domain.enums import BillStatus


def _with_details(stmt):
    return stmt.options(
        selectinload(OrderModel.bill),
        selectinload(OrderModel.items).selectinload(OrderItemModel.product),
        selectinload(OrderModel.items).selectinload(OrderItemModel.product_item),
    )


def expired_criteria(threshold: datetime):
    """Jedno kryterium dla count, sweep i ponownej weryfikacji w transakcji."""
    return (
        OrderModel.created_at < threshold,
        OrderModel.bill.has(BillModel.status == BillStatus.PENDING),
    )


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    # ---- zapis ----

    def create_bill(self, bill: BillModel) -> BillModel:
        self.db.add(bill)
        self.db.flush()
        return bill

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_items(self, items: List[OrderItemModel]) -> List[OrderItemModel]:
        self.db.add_all(items)
        self.db.flush()
        return items

    def transition_bill(self, bill_id: int, expected: BillStatus, **values) -> int:
        """
        update bills set status = ... where id = ? and status = expected
        0 wierszy = inny worker juz zmienil status (lub bill usuniety).
        """
        result = self.db.execute(
            update(BillModel)
            .where(BillModel.id == bill_id, BillModel.status == expected)
            .values(**values)
        )
        return result.rowcount

    def delete_order_cascade(self, order_id: int, bill_id: int) -> int:
        """
        Kolejnosc: items -> order -> bill (FK). Kazdy delete tylko dopoki bill jest PENDING,
        wiec platnosc zapisana w miedzyczasie nie zostanie usunieta (takze bez FOR UPDATE).
        0 = nic nie usunieto.
        """
        still_pending = (
            select(BillModel.id)
            .where(BillModel.id == bill_id, BillModel.status == BillStatus.PENDING)
            .exists()
        )
        self.db.execute(
            delete(OrderItemModel).where(OrderItemModel.order_id == order_id, still_pending)
        )
        self.db.execute(delete(OrderModel).where(OrderModel.id == order_id, still_pending))
        return self.db.execute(
            delete(BillModel).where(BillModel.id == bill_id, BillModel.status == BillStatus.PENDING)
        ).rowcount

    # ---- odczyt ----

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            _with_details(select(OrderModel).where(OrderModel.id == order_id))
        ).scalar_one_or_none()

    def get_order_for_user(self, order_id: int, user_id: int) -> OrderModel | None:
        return self.db.execute(
            _with_details(
                select(OrderModel).where(OrderModel.id == order_id, OrderModel.user_id == user_id)
            )
        ).scalar_one_or_none()

    def get_order_visible_to(self, order_id: int, user_id: int) -> OrderModel | None:
        # kupujacy albo sprzedawca ktoregos z produktow
        return self.db.execute(
            _with_details(
                select(OrderModel).where(
                    OrderModel.id == order_id,
                    or_(
                        OrderModel.user_id == user_id,
                        OrderModel.items.any(
                            OrderItemModel.product.has(ProductModel.seller_id == user_id)
                        ),
                    ),
                )
            )
        ).scalar_one_or_none()

    def get_order_items(self, order_id: int) -> List[OrderItemModel]:
        return list(
            self.db.execute(
                select(OrderItemModel)
                .options(
                    selectinload(OrderItemModel.product),
                    selectinload(OrderItemModel.product_item),
                )
                .where(OrderItemModel.order_id == order_id)
                .order_by(OrderItemModel.id)
            ).scalars().all()
        )

    def list_stmt(
        self,
        user_id: int | None = None,
        seller_id: int | None = None,
        status: BillStatus | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ):
        stmt = _with_details(select(OrderModel))

        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)

        product_filters = []
        if seller_id is not None:
            product_filters.append(ProductModel.seller_id == seller_id)
        if search:
            pattern = f"%{search}%"
            product_filters.append(
                or_(ProductModel.name.ilike(pattern), ProductModel.description.ilike(pattern))
            )
        if product_filters:
            stmt = stmt.where(
                OrderModel.items.any(OrderItemModel.product.has(and_(*product_filters)))
            )

        if status is not None:
            stmt = stmt.where(OrderModel.bill.has(BillModel.status == status))
        if start_date is not None:
            stmt = stmt.where(OrderModel.created_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(OrderModel.created_at <= end_date)

        return stmt

    def get_bill_by_order_code(self, order_code: int) -> BillModel | None:
        return self.db.execute(
            select(BillModel)
            .options(selectinload(BillModel.order))
            .where(
                or_(
                    BillModel.transaction_id == str(order_code),
                    BillModel.order_code == order_code,
                )
            )
        ).scalars().first()

    def lock_bill(self, bill_id: int) -> BillModel | None:
        # select ... for update - ponowny odczyt statusu w transakcji
        return self.db.execute(
            select(BillModel)
            .where(BillModel.id == bill_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    # ---- wygasle zamowienia ----

    def count_expired(self, threshold: datetime) -> int:
        return self.db.execute(
            select(func.count(OrderModel.id)).where(*expired_criteria(threshold))
        ).scalar_one()

    def find_expired(self, threshold: datetime) -> List[Tuple[int, int]]:
        rows = self.db.execute(
            select(OrderModel.id, OrderModel.bill_id)
            .where(*expired_criteria(threshold))
            .order_by(OrderModel.created_at)
        ).all()
        return [(row.id, row.bill_id) for row in rows]

    def get_expired_order(self, order_id: int, threshold: datetime) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.id == order_id, *expired_criteria(threshold))
        ).scalar_one_or_none()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
