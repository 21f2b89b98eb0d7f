# app/services/payment_gateway.py
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from payos import ItemData, PaymentData, PayOS

from app.domain.errors import InvalidPayload, PaymentLinkCreationFailed
from app.utils.retry import http_retry
from app.utils.settings import (
    APPLICATION_BASE_URL,
    PAYOS_API_KEY,
    PAYOS_CHECKSUM_KEY,
    PAYOS_CLIENT_ID,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

# ile ostatnich cyfr id billa trafia do orderCode
ORDER_CODE_ID_DIGITS = 6


def generate_order_code(bill_id: int, now: float | None = None) -> int:
    """orderCode bramki: sekundy + 6 ostatnich cyfr id billa (< 2^53)."""
    seconds = int(now if now is not None else time.time())
    base = 10 ** ORDER_CODE_ID_DIGITS
    return seconds * base + bill_id % base


def generate_order_number(order_code: int) -> str:
    return f"ORD{order_code}"


def _link_info(info) -> Dict[str, Any]:
    return {
        "order_code": info.orderCode,
        "status": info.status,
        "amount": info.amount,
        "amount_paid": info.amountPaid,
    }


@dataclass
class PaymentEvent:
    success: bool
    order_code: int
    amount: Decimal
    reference: str

    @classmethod
    def from_webhook(cls, payload: Dict[str, Any]) -> "PaymentEvent":
        data = payload.get("data") or {}
        try:
            return cls(
                success=bool(payload["success"]),
                order_code=int(data["orderCode"]),
                amount=Decimal(str(data["amount"])),
                reference=str(data.get("reference") or ""),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise InvalidPayload(f"Invalid webhook payload: {e}")


class PayOSClient:
    """
    Adapter bramki PayOS na oficjalnym SDK (payos).

    Podpisy (HMAC po posortowanych polach) liczy SDK, tutaj tylko mapowanie
    na typy domenowe i bledy aplikacji.
    """

    def __init__(
        self,
        client_id: str | None = None,
        api_key: str | None = None,
        checksum_key: str | None = None,
        sdk: PayOS | None = None,
    ):
        self.checksum_key = checksum_key if checksum_key is not None else PAYOS_CHECKSUM_KEY

        if sdk is None:
            sdk = PayOS(
                client_id=client_id if client_id is not None else PAYOS_CLIENT_ID,
                api_key=api_key if api_key is not None else PAYOS_API_KEY,
                checksum_key=self.checksum_key,
            )
        self.sdk = sdk

    @staticmethod
    def return_url() -> str:
        return f"{APPLICATION_BASE_URL}/payment/success"

    @staticmethod
    def cancel_url() -> str:
        return f"{APPLICATION_BASE_URL}/payment/failed"

    # bez retry - drugi POST z tym samym orderCode bramka odrzuci
    def create_payment_link(
        self,
        order_code: int,
        amount: Decimal,
        description: str,
        items: List[Dict[str, Any]],
        return_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        # PayOS liczy w calych VND, zaokraglenie rozjechaloby kwote z billem
        if Decimal(amount) != Decimal(amount).to_integral_value():
            logger.error(f"Refusing payment link {order_code}: fractional amount {amount}")
            raise PaymentLinkCreationFailed(f"Amount {amount} is not a whole number")

        payment_data = PaymentData(
            orderCode=order_code,
            amount=int(amount),
            description=description,
            items=[
                ItemData(name=item["name"], quantity=item["quantity"], price=int(item["price"]))
                for item in items
            ],
            cancelUrl=cancel_url,
            returnUrl=return_url,
        )

        logger.info(f"PayOS createPaymentLink orderCode={order_code} amount={payment_data.amount}")

        try:
            result = self.sdk.createPaymentLink(payment_data)
        except Exception as e:
            logger.error(f"Error creating PayOS payment link for {order_code}: {e}")
            raise PaymentLinkCreationFailed()

        return {
            "checkout_url": result.checkoutUrl,
            "qr_code": result.qrCode,
            "order_code": int(result.orderCode),
            "payment_link_id": result.paymentLinkId,
        }

    @http_retry()
    def get_payment_info(self, order_code: int) -> Dict[str, Any]:
        logger.info(f"PayOS getPaymentLinkInformation orderCode={order_code}")
        return _link_info(self.sdk.getPaymentLinkInformation(order_code))

    @http_retry()
    def cancel_payment_link(self, order_code: int, reason: str | None = None) -> Dict[str, Any]:
        logger.info(f"PayOS cancelPaymentLink orderCode={order_code}")
        return _link_info(self.sdk.cancelPaymentLink(order_code, reason))

    def verify_webhook_signature(self, payload: Dict[str, Any]) -> bool:
        if not isinstance(payload.get("data"), dict) or not payload.get("signature"):
            return False
        if not self.checksum_key:
            return False

        try:
            self.sdk.verifyPaymentWebhookData(payload)
        except Exception as e:
            logger.warning(f"PayOS webhook verification failed: {e}")
            return False

        return True
