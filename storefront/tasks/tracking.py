# storefront/tasks/tracking.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.order_repo import OrderRepo
from storefront.services.carrier_client import CarrierClient
from storefront.services.order_service import OrderStatusService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def sync_shipped_orders(db, carrier: CarrierClient | None = None) -> dict:
    """Run tracking sync over every shipped order that has a shipment number."""
    service = OrderStatusService(db, carrier=carrier)
    orders = OrderRepo(db).list_shipped_with_shipment()
    summary = {"total": len(orders), "updated": 0, "skipped": 0, "failed": 0}

    logger.info(f"Found {len(orders)} shipped orders to sync")

    for order in orders:
        try:
            result = service.sync_tracking(order.order_number)
        except Exception as e:
            # one bad order must not stop the batch
            logger.error(f"Tracking sync failed for order {order.order_number}: {e}")
            summary["failed"] += 1
            continue

        if result["updated"]:
            summary["updated"] += 1
        else:
            summary["skipped"] += 1

    logger.info(f"Tracking sync done: {summary}")
    return summary


@celery_app.task(name="storefront.tasks.tracking.sync_shipped_orders_task")
def sync_shipped_orders_task():
    logger.info("Tracking sync task started")

    db = SessionLocal()
    try:
        return sync_shipped_orders(db)
    finally:
        db.close()
