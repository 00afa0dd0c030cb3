# storefront/api/routers/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_carrier_client, get_notifications
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import OrderOut, ShipmentOut, StatusUpdateIn, TrackingSyncOut
from storefront.services.carrier_client import CarrierClient
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderStatusService
from storefront.services.shipment_service import ShipmentService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.patch("/{order_number}/status", response_model=OrderOut)
def update_order_status(
    order_number: str,
    payload: StatusUpdateIn,
    db: Session = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client),
):
    svc = OrderStatusService(db, carrier=carrier)
    try:
        return svc.update_status(order_number, payload.status)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{order_number}/shipment", response_model=ShipmentOut, status_code=201)
def create_shipment(
    order_number: str,
    db: Session = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client),
    notifications: NotificationService = Depends(get_notifications),
):
    svc = ShipmentService(db, carrier=carrier, notifications=notifications)
    try:
        order = svc.create_shipment(order_number)
    except CheckoutError as e:
        raise to_http(e)

    return {
        "order_number": order.order_number,
        "shipment_number": order.shipment_number,
        "label_url": order.label_url,
        "status": order.status,
    }


@router.post("/{order_number}/sync-tracking", response_model=TrackingSyncOut)
def sync_tracking(
    order_number: str,
    db: Session = Depends(get_db),
    carrier: CarrierClient = Depends(get_carrier_client),
):
    svc = OrderStatusService(db, carrier=carrier)
    try:
        return svc.sync_tracking(order_number)
    except CheckoutError as e:
        raise to_http(e)
