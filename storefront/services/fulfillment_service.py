# storefront/services/fulfillment_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.domain.errors import CheckoutError
from storefront.domain.order_status import OrderStatus
from storefront.repos.order_repo import OrderRepo
from storefront.services.carrier_client import CarrierClient
from storefront.services.notification_service import NotificationService
from storefront.services.shipment_service import ShipmentService
from storefront.utils.logging import get_logger
from storefront.utils.settings import AUTO_SHIP_CARRIERS

logger = get_logger(__name__)


class FulfillmentService:
    """
    Enqueues post-order fulfillment.
    Same contract as the notifications: a broker failure is logged, the
    order stays valid and can be shipped from the admin later.
    """

    @staticmethod
    def schedule(order_id: int) -> bool:
        try:
            fulfill_order_task.delay(order_id)
        except Exception as e:
            logger.error(f"Could not enqueue fulfillment for order {order_id}: {e}")
            return False
        return True


def needs_auto_shipment(order) -> bool:
    return bool(
        order.pickup_point_id
        and not order.shipment_number
        and order.carrier_name in AUTO_SHIP_CARRIERS
        and order.status == OrderStatus.CONFIRMED.value
    )


def fulfill_order(
    db: Session,
    order_id: int,
    carrier: CarrierClient | None = None,
    notifications: NotificationService | None = None,
) -> Dict[str, Any]:
    """Ship pickup-point orders right away; anything else waits for the admin."""
    order = OrderRepo(db).get_order(order_id)
    if not order:
        logger.warning(f"[FULFILLMENT] Order {order_id} not found, skipped")
        return {"order_id": order_id, "status": "skipped"}

    if not needs_auto_shipment(order):
        return {"order_id": order_id, "order_number": order.order_number, "status": "manual"}

    try:
        shipped = ShipmentService(db, carrier=carrier, notifications=notifications).create_shipment(order.order_number)
    except CheckoutError as e:
        # left CONFIRMED, the admin shipment action still works
        logger.error(f"[FULFILLMENT] Automatic shipment for {order.order_number} failed: {e}")
        return {"order_id": order_id, "order_number": order.order_number, "status": "failed"}

    logger.info(f"[FULFILLMENT] Order {order.order_number} shipped automatically as {shipped.shipment_number}")
    return {
        "order_id": order_id,
        "order_number": order.order_number,
        "status": "shipped",
        "shipment_number": shipped.shipment_number,
    }


@celery_app.task(name="storefront.services.fulfillment_service.fulfill_order_task")
def fulfill_order_task(order_id: int):
    db = SessionLocal()
    try:
        return fulfill_order(db, order_id)
    finally:
        db.close()
