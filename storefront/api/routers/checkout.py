# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_fulfillment, get_notifications, get_payment_client, get_session_store
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import (
    CheckoutSessionIn,
    CheckoutSessionOut,
    CheckoutSummaryOut,
    OrderOut,
    OrderPollOut,
)
from storefront.services.cart_service import CartIdentity
from storefront.services.checkout_service import CheckoutService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderMaterializer, poll_order, reconcile
from storefront.services.payment_client import PaymentClient
from storefront.services.session_store import CheckoutSessionStore

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_materializer(
    db: Session = Depends(get_db),
    payments: PaymentClient = Depends(get_payment_client),
    sessions: CheckoutSessionStore = Depends(get_session_store),
    notifications: NotificationService = Depends(get_notifications),
    fulfillment: FulfillmentService = Depends(get_fulfillment),
) -> OrderMaterializer:
    return OrderMaterializer(
        db, payments=payments, sessions=sessions, notifications=notifications, fulfillment=fulfillment
    )


@router.get("/summary", response_model=CheckoutSummaryOut)
def checkout_summary(
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    country: str | None = Query(None, min_length=2, max_length=2),
    db: Session = Depends(get_db),
    payments: PaymentClient = Depends(get_payment_client),
    sessions: CheckoutSessionStore = Depends(get_session_store),
):
    svc = CheckoutService(db, payments=payments, sessions=sessions)
    try:
        return svc.summary(CartIdentity.of(session_token, user_id), country)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/sessions", response_model=CheckoutSessionOut, status_code=201)
def create_checkout_session(
    payload: CheckoutSessionIn,
    session_token: str | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
    payments: PaymentClient = Depends(get_payment_client),
    sessions: CheckoutSessionStore = Depends(get_session_store),
):
    """
    Starts payment for the current cart. No order is created here, the
    order appears once the processor confirms payment.
    """
    svc = CheckoutService(db, payments=payments, sessions=sessions)
    try:
        return svc.create_session(
            CartIdentity.of(session_token, user_id),
            payload.shipping,
            payload.address,
            payload.email,
        )
    except CheckoutError as e:
        raise to_http(e)


@router.get("/sessions/{session_id}/order", response_model=OrderPollOut)
def poll_checkout_order(
    session_id: str,
    materialize: bool = Query(False),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    try:
        return poll_order(materializer, session_id, materialize=materialize)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/sessions/{session_id}/reconcile", response_model=OrderOut)
def reconcile_checkout_session(
    session_id: str,
    materializer: OrderMaterializer = Depends(get_materializer),
):
    try:
        return reconcile(materializer, session_id)
    except CheckoutError as e:
        raise to_http(e)
