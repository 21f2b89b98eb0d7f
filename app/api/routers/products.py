# app/api/routers/products.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import require_seller, to_http_error
from app.data.database import get_db
from app.data.models import UserModel
from app.domain.schemas import ProductCreate, ProductItemsIn, ProductOut, ProductPageOut
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_service(db: Session):
    return ProductService(db)


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(
    payload: ProductCreate,
    seller: UserModel = Depends(require_seller),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).create_product(seller.id, payload)
    except (PermissionError, LookupError, ValueError) as e:
        raise to_http_error(e)


@router.post("/{product_id}/items", response_model=ProductOut)
def add_product_items(
    product_id: int,
    payload: ProductItemsIn,
    seller: UserModel = Depends(require_seller),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).add_items(seller.id, product_id, payload.codes)
    except (PermissionError, LookupError, ValueError) as e:
        raise to_http_error(e)


@router.get("/", response_model=ProductPageOut)
def list_products(
    limit: int | None = Query(None, ge=1),
    cursor: int | None = Query(None),
    page: int | None = Query(None, ge=1),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).list_products(limit=limit, cursor=cursor, page=page, search=search)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        return get_service(db).get_product(product_id)
    except LookupError as e:
        raise to_http_error(e)
