# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.order_repo import OrderRepo
from storefront.utils.logging import get_logger
from storefront.utils.settings import PUBLIC_BASE_URL, STORE_NAME

logger = get_logger(__name__)


def _money(amount: int, currency: str) -> str:
    return f"{amount / 100:.2f} {currency}"


class NotificationService:
    """
    Enqueues customer notifications.
    Fire-and-forget: a broker failure is logged and never reaches the caller,
    the order stays valid without its email.
    """

    @staticmethod
    def send_order_confirmation(order_id: int) -> bool:
        try:
            send_order_confirmation_task.delay(order_id)
        except Exception as e:
            logger.error(f"Could not enqueue order confirmation for order {order_id}: {e}")
            return False
        return True

    @staticmethod
    def send_shipping_confirmation(order_id: int) -> bool:
        try:
            send_shipping_confirmation_task.delay(order_id)
        except Exception as e:
            logger.error(f"Could not enqueue shipping confirmation for order {order_id}: {e}")
            return False
        return True


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order_id: int):
    """
    Renders the order confirmation. Delivery (SMTP, provider API) is not wired
    in, the message is logged.
    """
    db = SessionLocal()
    try:
        order = OrderRepo(db).get_order(order_id)
        if not order:
            logger.warning(f"[NOTIFICATION] Order {order_id} not found, confirmation skipped")
            return {"order_id": order_id, "status": "skipped"}

        lines = "; ".join(f"{i.quantity} x {i.product_name}" for i in order.items)
        logger.info(
            f"[NOTIFICATION] To {order.email}: {STORE_NAME} order {order.order_number} confirmed, "
            f"{lines}, total {_money(order.total, order.currency)}. "
            f"Track it at {PUBLIC_BASE_URL}/orders/{order.order_number}"
        )
        return {"order_id": order_id, "order_number": order.order_number, "status": "sent"}
    finally:
        db.close()


@celery_app.task(name="storefront.services.notification_service.send_shipping_confirmation_task")
def send_shipping_confirmation_task(order_id: int):
    db = SessionLocal()
    try:
        order = OrderRepo(db).get_order(order_id)
        if not order:
            logger.warning(f"[NOTIFICATION] Order {order_id} not found, shipping confirmation skipped")
            return {"order_id": order_id, "status": "skipped"}

        logger.info(
            f"[NOTIFICATION] To {order.email}: order {order.order_number} shipped with "
            f"{order.carrier_name or 'our carrier'}, tracking number {order.shipment_number}"
        )
        return {"order_id": order_id, "order_number": order.order_number, "status": "sent"}
    finally:
        db.close()
