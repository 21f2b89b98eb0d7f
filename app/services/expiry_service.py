# app/services/expiry_service.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.domain.enums import BillStatus
from app.repos.order_repo import OrderRepo
from app.utils.settings import ORDER_EXPIRY_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ExpiryReaper:
    """
    Usuwa zamowienia ktore wisza w PENDING dluzej niz ORDER_EXPIRY_SECONDS.

    Stan magazynu sie nie zmienia - dla PENDING nic nie bylo zdjete.
    Kazde zamowienie w osobnej transakcji, blad jednego nie blokuje reszty.
    """

    def __init__(self, db: Session, expiry_seconds: int = ORDER_EXPIRY_SECONDS):
        self.db = db
        self.repo = OrderRepo(db)
        self.expiry_seconds = expiry_seconds

    def threshold(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now - timedelta(seconds=self.expiry_seconds)

    def count_expired(self, now: datetime | None = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        threshold = self.threshold(now)

        return {
            "expired_orders_count": self.repo.count_expired(threshold),
            "threshold_minutes": self.expiry_seconds // 60,
            "current_time": now,
            "threshold_time": threshold,
        }

    def perform_cleanup(self, now: datetime | None = None) -> Dict[str, int]:
        threshold = self.threshold(now)
        expired = self.repo.find_expired(threshold)
        # koniec transakcji odczytu, kazde zamowienie dostaje swoja
        self.repo.rollback()

        summary = {"found": len(expired), "deleted": 0, "skipped": 0, "failed": 0}

        if not expired:
            return summary

        logger.info(
            f"Found {len(expired)} expired orders to cleanup "
            f"(older than {self.expiry_seconds // 60} minutes)"
        )

        for order_id, bill_id in expired:
            try:
                if self.reap_order(order_id, bill_id, threshold):
                    summary["deleted"] += 1
                else:
                    summary["skipped"] += 1
            except Exception as e:
                logger.error(f"Failed to delete expired order {order_id}: {e}")
                summary["failed"] += 1

        return summary

    def reap_order(self, order_id: int, bill_id: int, threshold: datetime) -> bool:
        """
        Usuwa items -> order -> bill. Status billa sprawdzany ponownie pod lockiem,
        jesli w miedzyczasie przyszla platnosc (albo anulowanie) - pomijamy.
        """
        try:
            bill = self.repo.lock_bill(bill_id)
            if bill is None or bill.status != BillStatus.PENDING:
                self.repo.rollback()
                return False

            if self.repo.get_expired_order(order_id, threshold) is None:
                self.repo.rollback()
                return False

            if self.repo.delete_order_cascade(order_id, bill_id) == 0:
                self.repo.rollback()
                return False

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Successfully deleted expired order: {order_id} and bill: {bill_id}")
        return True
