import os

CHECKSUM_KEY = "test-checksum-key"

# przed importem app.* - settings czytane przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["PAYOS_CHECKSUM_KEY"] = CHECKSUM_KEY

import hashlib
import hmac
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_payment_gateway
from app.data.database import Base, get_db
from app.data.models import (
    BillModel,
    OrderItemModel,
    OrderModel,
    ProductItemModel,
    ProductModel,
    UserModel,
)
from app.domain.enums import BillStatus, BillType, PaymentMethod, StockModel, UserRole
from app.services.payment_gateway import PayOSClient


def sign(data, key=CHECKSUM_KEY):
    # format PayOS: key=value po posortowanych kluczach, HMAC-SHA256
    message = "&".join(
        f"{k}={'' if data[k] is None else data[k]}" for k in sorted(data)
    )
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()


class FakePayOS:
    """SDK PayOS bez HTTP - linki w pamieci, podpisy webhookow liczone jak w bramce."""

    def __init__(self, checksum_key=CHECKSUM_KEY):
        self.checksum_key = checksum_key
        self.links = []
        self.cancelled = []
        self.fail_links = False

    def createPaymentLink(self, paymentData):
        if self.fail_links:
            raise Exception("Internal server error")

        code = paymentData.orderCode
        self.links.append(
            {
                "order_code": code,
                "amount": paymentData.amount,
                "description": paymentData.description,
                "items": [
                    {"name": i.name, "quantity": i.quantity, "price": i.price}
                    for i in paymentData.items
                ],
            }
        )
        return SimpleNamespace(
            checkoutUrl=f"https://pay.test/{code}",
            qrCode=f"qr-{code}",
            orderCode=code,
            paymentLinkId=f"link-{code}",
        )

    def _info(self, order_code):
        link = next((l for l in self.links if l["order_code"] == order_code), None)
        return SimpleNamespace(
            orderCode=order_code,
            amount=link["amount"] if link else 0,
            amountPaid=0,
            status="CANCELLED" if order_code in self.cancelled else "PENDING",
        )

    def getPaymentLinkInformation(self, orderId):
        return self._info(orderId)

    def cancelPaymentLink(self, orderId, cancellationReason=None):
        self.cancelled.append(orderId)
        return self._info(orderId)

    def verifyPaymentWebhookData(self, webhookBody):
        if sign(webhookBody["data"], self.checksum_key) != webhookBody["signature"]:
            raise Exception("The data is unreliable because the signature does not match")
        return SimpleNamespace(**webhookBody["data"])



class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_paid_notification(self, user_id, order_id):
        self.sent.append(("PAID", user_id, order_id))

    def send_order_refunded_notification(self, user_id, order_id):
        self.sent.append(("REFUNDED", user_id, order_id))


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture()
def gateway():
    return PayOSClient(
        client_id="client-id",
        api_key="api-key",
        checksum_key=CHECKSUM_KEY,
        sdk=FakePayOS(),
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def make_user(db):
    def _make(name="user", role=UserRole.USER):
        user = UserModel(name=name, role=role)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def buyer(make_user):
    return make_user("buyer")


@pytest.fixture()
def seller(make_user):
    return make_user("seller", UserRole.SELLER)


@pytest.fixture()
def make_product(db):
    def _make(seller, price="100.00", stock=10, codes=(), name="product", is_active=True):
        serialized = bool(codes)
        product = ProductModel(
            seller_id=seller.id,
            name=name,
            description=f"{name} description",
            original_price=Decimal(price) + 20,
            discount_price=Decimal(price),
            stock_model=StockModel.SERIALIZED if serialized else StockModel.MANUAL,
            stock=0 if serialized else stock,
            sold=0,
            is_active=is_active,
        )
        db.add(product)
        db.flush()
        for code in codes:
            db.add(ProductItemModel(product_id=product.id, code=code))
        db.commit()
        return product

    return _make


@pytest.fixture()
def make_order(db):
    """
    Zamowienie zapisane wprost w bazie, z pominieciem walidacji i bramki.
    lines: [(product, quantity)] albo [(product, quantity, product_item_id)]
    """
    counter = {"code": 1_700_000_000_000}

    def _make(user, lines, created_at=None, status=BillStatus.PENDING):
        total = sum(
            (Decimal(line[0].discount_price) * line[1] for line in lines),
            Decimal("0.00"),
        )
        counter["code"] += 1
        created_at = created_at or datetime.now(timezone.utc)

        bill = BillModel(
            user_id=user.id,
            type=BillType.MONEY_IN,
            status=status,
            payment_method=PaymentMethod.VIETQR_PAYOS,
            amount=total,
            transaction_id=str(counter["code"]),
            order_code=counter["code"],
            note="",
            created_at=created_at,
        )
        db.add(bill)
        db.flush()

        order = OrderModel(user_id=user.id, bill_id=bill.id, total_price=total, created_at=created_at)
        db.add(order)
        db.flush()

        for line in lines:
            product, quantity = line[0], line[1]
            db.add(
                OrderItemModel(
                    order_id=order.id,
                    product_id=product.id,
                    product_item_id=line[2] if len(line) > 2 else None,
                    quantity=quantity,
                    price=Decimal(product.discount_price) * quantity,
                )
            )
        db.commit()
        return order

    return _make


@pytest.fixture()
def webhook_payload():
    def _build(order_code, amount, success=True, reference="FT25010100001", key=CHECKSUM_KEY):
        data = {
            "orderCode": order_code,
            "amount": int(Decimal(str(amount))),
            "description": f"ORD{order_code}",
            "reference": reference,
            "code": "00" if success else "01",
            "desc": "success" if success else "failed",
        }
        return {
            "code": "00",
            "desc": "success",
            "success": success,
            "data": data,
            "signature": sign(data, key),
        }

    return _build


@pytest.fixture()
def signer():
    return sign

@pytest.fixture()
def client(db, gateway):
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
