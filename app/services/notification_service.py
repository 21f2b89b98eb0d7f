# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_PAID = "PAID"
ORDER_REFUNDED = "REFUNDED"


class NotificationService:
    """
    Powiadomienia o zmianie statusu zamowienia (oplacone, zwrot).
    Wolane dopiero po commit - task nie moze zobaczyc stanu sprzed transakcji.
    """

    @staticmethod
    def send_order_paid_notification(user_id: int, order_id: int):
        send_order_notification_task.delay(user_id, order_id, ORDER_PAID)

    @staticmethod
    def send_order_refunded_notification(user_id: int, order_id: int):
        send_order_notification_task.delay(user_id, order_id, ORDER_REFUNDED)


@celery_app.task(name="app.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int, event: str):
    # dostarczenie (email / push / websocket) robi osobny serwis, tu tylko slad w logach
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} {event}")

    return {"user_id": user_id, "order_id": order_id, "event": event, "status": "sent"}
