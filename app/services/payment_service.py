# app/services/payment_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.data.models import BillModel
from app.domain.enums import BillStatus
from app.domain.errors import (
    AmountMismatch,
    BillNotFound,
    GatewayUnavailable,
    InvalidPayload,
    InvalidSignature,
    InvalidState,
    NotFound,
    OutOfStock,
    WebhookRejected,
)
from app.repos.order_repo import OrderRepo
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.payment_gateway import PaymentEvent, PayOSClient
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _result(success: bool, message: str) -> Dict[str, Any]:
    return {"success": success, "message": message}


class PaymentService:
    """
    Uzgadnianie platnosci z webhookow bramki.

    Bill.status: PENDING -> DONE (sukces) albo PENDING -> FAILED (porazka,
    albo oplacone bez towaru - wtedy z referencja i notatka do recznego zwrotu).
    Kazde przejscie to warunkowy update na status PENDING w transakcji,
    wiec duplikat webhooka (albo wyscig dwoch dostaw) konczy sie no-op.
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

    def handle_webhook(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Zawsze zwraca {success, message} - bramka nie ma ponawiac bledow biznesowych."""
        try:
            if not isinstance(payload, dict):
                raise InvalidPayload("Webhook body must be a JSON object")

            if not self.payment_gateway.verify_webhook_signature(payload):
                raise InvalidSignature()

            event = PaymentEvent.from_webhook(payload)
            logger.info(
                f"Processing payment for order code: {event.order_code}, success: {event.success}"
            )

            bill = self.repo.get_bill_by_order_code(event.order_code)
            if not bill:
                raise BillNotFound(f"Bill not found for order code: {event.order_code}")

            if bill.amount != event.amount:
                raise AmountMismatch(
                    f"Amount mismatch for bill {bill.id}: expected {bill.amount}, received {event.amount}"
                )

            if bill.status != BillStatus.PENDING:
                logger.info(f"Bill {bill.id} already {bill.status.value}, duplicate webhook ignored")
                return _result(True, "Payment already processed")

            if event.success:
                applied = self._handle_successful_payment(bill, event)
            else:
                applied = self._handle_failed_payment(bill, event)

            if not applied:
                return _result(True, "Payment already processed")

            return _result(True, "Payment processed successfully")

        except AmountMismatch as e:
            # mozliwa manipulacja - musi byc widoczne dla operatorow
            logger.error(f"[ALERT] {e}")
            return _result(False, AmountMismatch.message)
        except WebhookRejected as e:
            logger.warning(f"Webhook dropped: {e}")
            return _result(False, e.message)
        except OutOfStock as e:
            logger.error(f"[ALERT] Paid order cannot be fulfilled, manual refund needed: {e}")
            return _result(False, "Out of stock")
        except Exception:
            logger.exception("Error processing payment webhook")
            return _result(False, "Internal server error")

    def _handle_successful_payment(self, bill: BillModel, event: PaymentEvent) -> bool:
        bill_id = bill.id

        try:
            locked = self.repo.lock_bill(bill_id)
            if locked is None or locked.status != BillStatus.PENDING:
                self.repo.rollback()
                return False

            rowcount = self.repo.transition_bill(
                bill_id,
                BillStatus.PENDING,
                status=BillStatus.DONE,
                transaction_id=event.reference or bill.transaction_id,
            )
            if rowcount == 0:
                self.repo.rollback()
                return False

            order = locked.order
            if order:
                try:
                    self.ledger.commit_sale(order.id)
                except OutOfStock:
                    self.repo.rollback()
                    self._hold_unfulfilled_payment(bill_id, event)
                    raise

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Payment successful for bill: {bill_id}, amount: {event.amount}")

        if order:
            # best effort - platnosc jest juz zapisana
            try:
                self.notification_service.send_order_paid_notification(order.user_id, order.id)
            except Exception as e:
                logger.warning(f"Failed to send paid notification for order {order.id}: {e}")

        return True

    def _handle_failed_payment(self, bill: BillModel, event: PaymentEvent) -> bool:
        try:
            rowcount = self.repo.transition_bill(
                bill.id,
                BillStatus.PENDING,
                status=BillStatus.FAILED,
            )
            if rowcount == 0:
                self.repo.rollback()
                return False

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Payment failed for bill: {bill.id}, amount: {event.amount}")
        return True

    def _hold_unfulfilled_payment(self, bill_id: int, event: PaymentEvent) -> None:
        """
        Platnosc przyszla, ale towaru juz nie ma. Bill wychodzi z PENDING w osobnej
        transakcji, inaczej reaper usunalby jedyny slad wplaty.
        """
        locked = self.repo.lock_bill(bill_id)
        if locked is None or locked.status != BillStatus.PENDING:
            self.repo.rollback()
            return

        alert = (
            f"Paid {event.amount}, reference {event.reference or '-'}: "
            f"out of stock, manual refund required"
        )
        values = {
            "status": BillStatus.FAILED,
            "note": "\n".join(filter(None, [locked.note, alert])),
        }
        if event.reference:
            values["transaction_id"] = event.reference

        if self.repo.transition_bill(bill_id, BillStatus.PENDING, **values) == 0:
            self.repo.rollback()
            return

        self.repo.commit()
        logger.warning(f"Bill {bill_id} marked FAILED after payment: {alert}")

    def get_payment_status(self, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Order not found")

        return {
            "order_id": order.id,
            "bill_id": order.bill.id,
            "status": order.bill.status,
            "amount": order.bill.amount,
            "transaction_id": order.bill.transaction_id,
            "created_at": order.created_at,
            "updated_at": order.bill.updated_at,
        }

    def get_gateway_payment_info(self, order_id: int) -> Dict[str, Any]:
        """Stan linku po stronie bramki - do wyjasniania zgubionych webhookow."""
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Order not found")
        if order.bill.order_code is None:
            raise InvalidState("Order has no payment link")

        try:
            info = self.payment_gateway.get_payment_info(order.bill.order_code)
        except Exception as e:
            logger.error(f"PayOS lookup failed for order {order.id}: {e}")
            raise GatewayUnavailable(f"Payment gateway unavailable: {e}")

        return {
            "order_id": order.id,
            "order_code": order.bill.order_code,
            "bill_status": order.bill.status,
            "gateway_status": info["status"],
            "amount": info["amount"],
            "amount_paid": info["amount_paid"],
        }
