# app/services/refund_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.domain.enums import BillStatus
from app.domain.errors import InvalidState, NotFound
from app.repos.order_repo import OrderRepo
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.payment_gateway import PayOSClient
from app.utils.logging import get_logger

logger = get_logger(__name__)


class RefundService:
    """
    Anulowanie i zwrot zamowien.

    cancel - PENDING -> CANCELLED, bez zmian w magazynie (nic nie bylo zdjete)
    refund - DONE -> REFUNDED, towar wraca na stan (release_sale)
    """

    def __init__(
        self,
        db: Session,
        payment_gateway: PayOSClient,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.ledger = InventoryLedger(db)
        self.payment_gateway = payment_gateway
        self.notification_service = notification_service or NotificationService()

    def cancel(self, user_id: int, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order_for_user(order_id, user_id)

        if not order:
            raise NotFound("Order not found")

        if order.bill.status != BillStatus.PENDING:
            raise InvalidState("Order cannot be cancelled")

        bill_id = order.bill_id
        order_code = order.bill.order_code

        try:
            rowcount = self.repo.transition_bill(
                bill_id,
                BillStatus.PENDING,
                status=BillStatus.CANCELLED,
            )
            # webhook albo reaper byl szybszy
            if rowcount == 0:
                raise InvalidState("Order cannot be cancelled")

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} cancelled by user {user_id}")

        if order_code is not None:
            self._cancel_payment_link(order_code)

        return {
            "message": "Order cancelled successfully",
            "order_id": order_id,
            "status": BillStatus.CANCELLED,
        }

    def _cancel_payment_link(self, order_code: int) -> None:
        # best effort - bill jest juz CANCELLED, spozniony webhook i tak bedzie no-op
        try:
            self.payment_gateway.cancel_payment_link(order_code, "Order cancelled by user")
        except Exception as e:
            logger.warning(f"Failed to cancel payment link {order_code}: {e}")

    def refund(self, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Order not found")

        if order.bill.status != BillStatus.DONE:
            raise InvalidState("Order cannot be refunded")

        bill_id = order.bill_id
        user_id = order.user_id

        try:
            rowcount = self.repo.transition_bill(
                bill_id,
                BillStatus.DONE,
                status=BillStatus.REFUNDED,
            )
            if rowcount == 0:
                raise InvalidState("Order cannot be refunded")

            self.ledger.release_sale(order_id)

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} refunded, bill {bill_id}")

        # best effort - zwrot jest juz zapisany
        try:
            self.notification_service.send_order_refunded_notification(user_id, order_id)
        except Exception as e:
            logger.warning(f"Failed to send refund notification for order {order_id}: {e}")

        return {
            "message": "Order refunded successfully",
            "order_id": order_id,
            "status": BillStatus.REFUNDED,
        }
