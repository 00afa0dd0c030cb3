# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import CartOut, ItemIn, MergeIn, QuantityIn
from storefront.services.cart_service import CartIdentity, CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session):
    return CartService(db=db)


@router.get("", response_model=CartOut)
def get_or_create_cart(
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        identity = CartIdentity.of(session_token, user_id, allow_anonymous=True)
        return svc.view(svc.get_or_create(identity))
    except CheckoutError as e:
        raise to_http(e)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        identity = CartIdentity.of(session_token, user_id, allow_anonymous=True)
        return svc.add_item(identity, payload.product_id, payload.variant_id, payload.quantity)
    except CheckoutError as e:
        raise to_http(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_quantity(
    item_id: int,
    payload: QuantityIn,
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        identity = CartIdentity.of(session_token, user_id)
        return svc.update_quantity(identity, item_id, payload.quantity)
    except CheckoutError as e:
        raise to_http(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        identity = CartIdentity.of(session_token, user_id)
        return svc.remove(identity, item_id)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/merge", response_model=CartOut)
def merge_carts(payload: MergeIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.merge(payload.session_token, payload.user_id)
    except CheckoutError as e:
        raise to_http(e)


@router.get("/summary")
def cart_summary(
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_summary(CartIdentity.of(session_token, user_id))
    except CheckoutError as e:
        raise to_http(e)
