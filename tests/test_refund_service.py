import pytest
import requests

from app.data.models import BillModel
from app.domain.enums import BillStatus, PaymentMethod
from app.domain.errors import InvalidState, NotFound
from app.domain.schemas import OrderItemIn
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.refund_service import RefundService


@pytest.fixture()
def refunds(db, gateway, notifier):
    return RefundService(db, gateway, notifier)


@pytest.fixture()
def paid_order(db, gateway, notifier, webhook_payload):
    def _pay(user, product, quantity=1):
        order = OrderService(db, gateway).create(
            user.id,
            [OrderItemIn(product_id=product.id, quantity=quantity)],
            PaymentMethod.VIETQR_PAYOS,
        )
        PaymentService(db, gateway, notifier).handle_webhook(
            webhook_payload(order["order_code"], order["amount"])
        )
        return order

    return _pay


def test_cancel_pending_order(db, gateway, refunds, buyer, seller, make_product):
    product = make_product(seller, stock=5)
    order = OrderService(db, gateway).create(
        buyer.id, [OrderItemIn(product_id=product.id, quantity=2)], PaymentMethod.MOMO
    )

    result = refunds.cancel(buyer.id, order["order_id"])

    assert result == {
        "message": "Order cancelled successfully",
        "order_id": order["order_id"],
        "status": BillStatus.CANCELLED,
    }
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.CANCELLED
    assert (product.stock, product.sold) == (5, 0)
    assert gateway.sdk.cancelled == [order["order_code"]]


def test_cancel_survives_gateway_failure(db, gateway, refunds, buyer, seller, make_product, monkeypatch):
    product = make_product(seller, stock=5)
    order = OrderService(db, gateway).create(
        buyer.id, [OrderItemIn(product_id=product.id, quantity=1)], PaymentMethod.MOMO
    )

    def boom(order_code, reason=None):
        raise requests.ConnectionError("payos unreachable")

    monkeypatch.setattr(gateway, "cancel_payment_link", boom)

    assert refunds.cancel(buyer.id, order["order_id"])["status"] == BillStatus.CANCELLED


def test_cancel_someone_elses_order(refunds, buyer, seller, make_product, make_order, make_user):
    order = make_order(buyer, [(make_product(seller), 1)])

    with pytest.raises(NotFound):
        refunds.cancel(make_user("stranger").id, order.id)


@pytest.mark.parametrize(
    "status",
    [BillStatus.DONE, BillStatus.FAILED, BillStatus.CANCELLED, BillStatus.REFUNDED],
)
def test_cancel_requires_pending(refunds, buyer, seller, make_product, make_order, status):
    order = make_order(buyer, [(make_product(seller), 1)], status=status)

    with pytest.raises(InvalidState):
        refunds.cancel(buyer.id, order.id)


def test_late_payment_after_cancel_is_ignored(db, gateway, refunds, buyer, seller, make_product, notifier, webhook_payload):
    product = make_product(seller, stock=5)
    order = OrderService(db, gateway).create(
        buyer.id, [OrderItemIn(product_id=product.id, quantity=1)], PaymentMethod.MOMO
    )
    refunds.cancel(buyer.id, order["order_id"])

    result = PaymentService(db, gateway, notifier).handle_webhook(
        webhook_payload(order["order_code"], order["amount"])
    )

    assert result["message"] == "Payment already processed"
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.CANCELLED
    assert product.stock == 5


def test_refund_restores_manual_stock(db, refunds, notifier, buyer, seller, make_product, paid_order):
    product = make_product(seller, stock=5)
    order = paid_order(buyer, product, 3)
    assert product.stock == 2

    result = refunds.refund(order["order_id"])

    assert result["status"] == BillStatus.REFUNDED
    assert result["message"] == "Order refunded successfully"
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.REFUNDED
    assert (product.stock, product.sold) == (5, 0)
    assert notifier.sent[-1] == ("REFUNDED", buyer.id, order["order_id"])


def test_refund_releases_serialized_units(db, refunds, buyer, seller, make_product, paid_order):
    product = make_product(seller, codes=["K1", "K2"])
    order = paid_order(buyer, product, 2)
    assert all(unit.is_sold for unit in product.items)

    refunds.refund(order["order_id"])

    assert db.get(BillModel, order["bill_id"]).status == BillStatus.REFUNDED
    assert all(unit.is_sold is False and unit.sold_at is None for unit in product.items)
    assert product.sold == 0


def test_refund_twice(refunds, buyer, seller, make_product, paid_order):
    order = paid_order(buyer, make_product(seller, stock=5))
    refunds.refund(order["order_id"])

    with pytest.raises(InvalidState):
        refunds.refund(order["order_id"])


def test_refund_requires_paid_order(refunds, buyer, seller, make_product, make_order):
    order = make_order(buyer, [(make_product(seller), 1)])

    with pytest.raises(InvalidState):
        refunds.refund(order.id)

    with pytest.raises(NotFound):
        refunds.refund(404)


class BrokenNotifier:
    def send_order_paid_notification(self, user_id, order_id):
        pass

    def send_order_refunded_notification(self, user_id, order_id):
        raise ConnectionError("broker down")


def test_refund_survives_notification_failure(db, gateway, buyer, seller, make_product, paid_order, caplog):
    product = make_product(seller, stock=5)
    order = paid_order(buyer, product, 2)

    result = RefundService(db, gateway, BrokenNotifier()).refund(order["order_id"])

    assert result["status"] == BillStatus.REFUNDED
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.REFUNDED
    assert product.stock == 5
    assert "Failed to send refund notification" in caplog.text
