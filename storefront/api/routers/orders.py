# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_carrier_client
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import OrderOut, TrackingOut
from storefront.services.carrier_client import CarrierClient
from storefront.services.order_service import OrderQueryService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderQueryService(db)


@router.get("", response_model=List[OrderOut])
def list_orders(user_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    return get_service(db).list_user_orders(user_id)


@router.get("/{order_number}", response_model=OrderOut)
def get_order(
    order_number: str,
    email: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """
    Order by number. With ``email`` it is a guest lookup and only matches
    guest orders placed with that address.
    """
    svc = get_service(db)
    try:
        if email is not None:
            return svc.get_guest_order(order_number, email)
        return svc.get_order(order_number)
    except CheckoutError as e:
        raise to_http(e)


@router.get("/{order_number}/tracking", response_model=TrackingOut)
def get_order_tracking(
    order_number: str,
    user_id: int | None = Query(None),
    email: str | None = Query(None),
    db: Session = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client),
):
    try:
        return get_service(db).get_tracking(order_number, carrier, user_id=user_id, email=email)
    except CheckoutError as e:
        raise to_http(e)
