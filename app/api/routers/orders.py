# app/api/routers/orders.py
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_payment_gateway, require_admin, require_seller, to_http_error
from app.data.database import get_db
from app.data.models import UserModel
from app.domain.enums import BillStatus
from app.domain.errors import PaymentLinkCreationFailed
from app.domain.schemas import (
    CheckoutOut,
    CleanupOut,
    ExpiredCountOut,
    InvoiceOut,
    OrderActionOut,
    OrderCreate,
    OrderFromCartCreate,
    OrderItemOut,
    OrderOut,
    OrderPageOut,
)
from app.services.expiry_service import ExpiryReaper
from app.services.order_service import OrderService
from app.services.payment_gateway import PayOSClient
from app.services.refund_service import RefundService

router = APIRouter(prefix="/orders", tags=["orders"])

_errors = (PermissionError, LookupError, ValueError, PaymentLinkCreationFailed)


def get_service(db: Session, gateway: PayOSClient):
    return OrderService(db, gateway)


@router.post("/", response_model=CheckoutOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    """
    Tworzy zamówienie i zwraca link / QR do płatności.
    """
    svc = get_service(db, gateway)
    try:
        return svc.create(user_id, payload.items, payload.payment_method, payload.note)
    except _errors as e:
        raise to_http_error(e)


@router.post("/from-cart", response_model=CheckoutOut, status_code=201)
def create_order_from_cart(
    payload: OrderFromCartCreate,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.create_from_cart(user_id, payload.payment_method, payload.note)
    except _errors as e:
        raise to_http_error(e)


@router.get("/", response_model=OrderPageOut)
def find_all(
    user_id: int = Query(...),
    limit: int | None = Query(None, ge=1),
    cursor: int | None = Query(None),
    page: int | None = Query(None, ge=1),
    status: BillStatus | None = Query(None),
    search: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.find_all(
            user_id,
            limit=limit,
            cursor=cursor,
            page=page,
            status=status,
            search=search,
            start_date=start_date,
            end_date=end_date,
        )
    except ValueError as e:
        raise to_http_error(e)


@router.get("/seller", response_model=OrderPageOut)
def find_seller_orders(
    seller: UserModel = Depends(require_seller),
    limit: int | None = Query(None, ge=1),
    cursor: int | None = Query(None),
    page: int | None = Query(None, ge=1),
    status: BillStatus | None = Query(None),
    search: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.find_seller_orders(
            seller.id,
            limit=limit,
            cursor=cursor,
            page=page,
            status=status,
            search=search,
            start_date=start_date,
            end_date=end_date,
        )
    except ValueError as e:
        raise to_http_error(e)


@router.get("/expired/count", response_model=ExpiredCountOut)
def get_expired_count(
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ExpiryReaper(db).count_expired()


@router.post("/cleanup-expired", response_model=CleanupOut)
def manual_cleanup(
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
):
    summary = ExpiryReaper(db).perform_cleanup()
    return {"message": "Cleanup completed successfully", **summary}


@router.get("/{order_id}", response_model=OrderOut)
def find_one(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.find_one(user_id, order_id)
    except _errors as e:
        raise to_http_error(e)


@router.get("/{order_id}/items", response_model=List[OrderItemOut])
def get_order_items(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.get_order_items(user_id, order_id)
    except _errors as e:
        raise to_http_error(e)


@router.get("/{order_id}/invoice", response_model=InvoiceOut)
def get_invoice(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.get_invoice(user_id, order_id)
    except _errors as e:
        raise to_http_error(e)


@router.patch("/{order_id}/cancel", response_model=OrderActionOut)
def cancel(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    try:
        return RefundService(db, gateway).cancel(user_id, order_id)
    except _errors as e:
        raise to_http_error(e)


@router.patch("/{order_id}/refund", response_model=OrderActionOut)
def refund(
    order_id: int,
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PayOSClient = Depends(get_payment_gateway),
):
    try:
        return RefundService(db, gateway).refund(order_id)
    except _errors as e:
        raise to_http_error(e)
