#app/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import to_http_error
from app.data.database import get_db
from app.domain.schemas import CartItemIn, CartOut
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("/", response_model=CartOut)
def get_cart(user_id: int = Query(...), db: Session = Depends(get_db)):
    return get_service(db).get_cart(user_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.add_product(user_id, payload.product_id, payload.quantity)
    except (PermissionError, LookupError, ValueError) as e:
        raise to_http_error(e)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    quantity: int = Query(1, gt=0),
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.remove_product(user_id, product_id, quantity)
    except (PermissionError, LookupError, ValueError) as e:
        raise to_http_error(e)
