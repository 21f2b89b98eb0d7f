from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.data.models import BillModel, ProductItemModel
from app.domain.enums import BillStatus, PaymentMethod
from app.domain.errors import GatewayUnavailable, NotFound
from app.domain.schemas import OrderItemIn
from app.services.order_service import OrderService
from app.services.expiry_service import ExpiryReaper
from app.services.payment_service import PaymentService


@pytest.fixture()
def payments(db, gateway, notifier):
    return PaymentService(db, gateway, notifier)


@pytest.fixture()
def place_order(db, gateway):
    def _place(user, product, quantity=1):
        return OrderService(db, gateway).create(
            user.id,
            [OrderItemIn(product_id=product.id, quantity=quantity)],
            PaymentMethod.VIETQR_PAYOS,
        )

    return _place


def test_successful_payment_commits_sale(db, payments, notifier, buyer, seller, make_product, place_order, webhook_payload):
    product = make_product(seller, price="100.00", stock=5)
    order = place_order(buyer, product, 2)

    result = payments.handle_webhook(
        webhook_payload(order["order_code"], order["amount"], reference="FT001")
    )

    assert result == {"success": True, "message": "Payment processed successfully"}
    bill = db.get(BillModel, order["bill_id"])
    assert bill.status == BillStatus.DONE
    assert bill.transaction_id == "FT001"
    assert (product.stock, product.sold) == (3, 2)
    assert notifier.sent == [("PAID", buyer.id, order["order_id"])]


def test_duplicate_webhook_is_a_noop(db, payments, notifier, buyer, seller, make_product, place_order, webhook_payload):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product, 2)
    payload = webhook_payload(order["order_code"], order["amount"])

    payments.handle_webhook(payload)
    second = payments.handle_webhook(payload)

    assert second == {"success": True, "message": "Payment already processed"}
    assert (product.stock, product.sold) == (3, 2)
    assert len(notifier.sent) == 1


@pytest.mark.parametrize("delta", [1, -1, 1000])
def test_amount_mismatch_is_rejected(db, payments, buyer, seller, make_product, place_order, webhook_payload, caplog, delta):
    product = make_product(seller, price="100.00", stock=5)
    order = place_order(buyer, product)

    result = payments.handle_webhook(
        webhook_payload(order["order_code"], order["amount"] + delta)
    )

    assert result == {"success": False, "message": "Amount mismatch"}
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.PENDING
    assert product.stock == 5
    assert "[ALERT]" in caplog.text


def test_invalid_signature_is_rejected(db, payments, buyer, seller, make_product, place_order, webhook_payload):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product)
    payload = webhook_payload(order["order_code"], order["amount"])
    payload["data"]["reference"] = "tampered"

    result = payments.handle_webhook(payload)

    assert result == {"success": False, "message": "Invalid signature"}
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.PENDING


def test_webhook_signed_with_other_key(payments, webhook_payload):
    result = payments.handle_webhook(webhook_payload(123, 100, key="someone-else"))

    assert result == {"success": False, "message": "Invalid signature"}


def test_malformed_payload(payments):
    assert payments.handle_webhook({"foo": "bar"})["success"] is False


def test_signed_payload_without_order_code(payments, webhook_payload, signer):
    payload = webhook_payload(1, 100)
    del payload["data"]["orderCode"]
    payload["signature"] = signer(payload["data"])

    assert payments.handle_webhook(payload) == {"success": False, "message": "Invalid payload"}


def test_unknown_order_code(payments, webhook_payload):
    result = payments.handle_webhook(webhook_payload(999_999, 100))

    assert result == {"success": False, "message": "Bill not found"}


def test_failed_payment_marks_bill_failed(db, payments, notifier, buyer, seller, make_product, place_order, webhook_payload):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product)

    result = payments.handle_webhook(
        webhook_payload(order["order_code"], order["amount"], success=False)
    )

    assert result["success"] is True
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.FAILED
    assert product.stock == 5
    assert notifier.sent == []

    # spozniony sukces po porazce nic nie zmienia
    late = payments.handle_webhook(webhook_payload(order["order_code"], order["amount"]))
    assert late["message"] == "Payment already processed"
    assert product.stock == 5


def test_ledger_error_leaves_nothing_committed(db, payments, notifier, buyer, seller, make_product, place_order, webhook_payload, monkeypatch):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product)

    def boom(order_id, now=None):
        raise RuntimeError("disk full")

    monkeypatch.setattr(payments.ledger, "commit_sale", boom)

    result = payments.handle_webhook(webhook_payload(order["order_code"], order["amount"]))

    assert result == {"success": False, "message": "Internal server error"}
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.PENDING
    assert product.stock == 5
    assert notifier.sent == []


def test_second_payment_for_last_unit_is_refused(db, payments, buyer, seller, make_user, make_product, place_order, webhook_payload, caplog):
    product = make_product(seller, stock=1)
    other = make_user("other")
    first = place_order(buyer, product)
    second = place_order(other, product)

    assert payments.handle_webhook(
        webhook_payload(first["order_code"], first["amount"])
    )["success"] is True

    result = payments.handle_webhook(
        webhook_payload(second["order_code"], second["amount"], reference="FT002")
    )

    assert result == {"success": False, "message": "Out of stock"}
    bill = db.get(BillModel, second["bill_id"])
    assert bill.status == BillStatus.FAILED
    assert bill.transaction_id == "FT002"
    assert "manual refund required" in bill.note
    assert (product.stock, product.sold) == (0, 1)
    assert "[ALERT]" in caplog.text


def test_serialized_units_are_sold_on_payment(db, payments, buyer, seller, make_product, place_order, webhook_payload):
    product = make_product(seller, codes=["K1", "K2", "K3"])
    order = place_order(buyer, product, 2)

    payments.handle_webhook(webhook_payload(order["order_code"], order["amount"]))

    sold = db.query(ProductItemModel).filter_by(product_id=product.id, is_sold=True).count()
    assert sold == 2
    assert product.sold == 2

    bill = db.get(BillModel, order["bill_id"])
    assert all(i.product_item_id is not None for i in bill.order.items)


def test_payment_status(db, payments, buyer, seller, make_product, place_order):
    product = make_product(seller, price="125.00", stock=5)
    order = place_order(buyer, product, 2)

    status = payments.get_payment_status(order["order_id"])

    assert status["status"] == BillStatus.PENDING
    assert status["amount"] == Decimal("250.00")

    with pytest.raises(NotFound):
        payments.get_payment_status(404)


@pytest.mark.parametrize("body", [None, [1, 2], "paid"])
def test_non_object_body_is_rejected(payments, body):
    assert payments.handle_webhook(body) == {"success": False, "message": "Invalid payload"}


def test_unfulfilled_payment_survives_expiry_sweep(db, payments, buyer, seller, make_user, make_product, place_order, webhook_payload):
    product = make_product(seller, stock=1)
    first = place_order(buyer, product)
    second = place_order(make_user("other"), product)

    payments.handle_webhook(webhook_payload(first["order_code"], first["amount"]))
    payments.handle_webhook(webhook_payload(second["order_code"], second["amount"], reference="FT777"))

    later = datetime.now(timezone.utc) + timedelta(minutes=16)
    summary = ExpiryReaper(db).perform_cleanup(now=later)

    assert summary["deleted"] == 0
    bill = db.get(BillModel, second["bill_id"])
    assert bill is not None
    assert bill.status == BillStatus.FAILED
    assert bill.transaction_id == "FT777"
    assert bill.order is not None


class BrokenNotifier:
    def send_order_paid_notification(self, user_id, order_id):
        raise ConnectionError("broker down")


def test_notification_failure_keeps_payment_result(db, gateway, buyer, seller, make_product, place_order, webhook_payload, caplog):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product)
    payments = PaymentService(db, gateway, BrokenNotifier())

    result = payments.handle_webhook(webhook_payload(order["order_code"], order["amount"]))

    assert result == {"success": True, "message": "Payment processed successfully"}
    assert db.get(BillModel, order["bill_id"]).status == BillStatus.DONE
    assert product.stock == 4
    assert "Failed to send paid notification" in caplog.text


def test_gateway_payment_info(payments, buyer, seller, make_product, place_order):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product, 3)

    info = payments.get_gateway_payment_info(order["order_id"])

    assert info["order_code"] == order["order_code"]
    assert info["bill_status"] == BillStatus.PENDING
    assert info["gateway_status"] == "PENDING"
    assert info["amount"] == 300
    assert info["amount_paid"] == 0


def test_gateway_payment_info_when_gateway_is_down(payments, gateway, buyer, seller, make_product, place_order, monkeypatch):
    product = make_product(seller, stock=5)
    order = place_order(buyer, product)

    def boom(orderId):
        raise Exception("Internal server error")

    monkeypatch.setattr(gateway.sdk, "getPaymentLinkInformation", boom)

    with pytest.raises(GatewayUnavailable):
        payments.get_gateway_payment_info(order["order_id"])
