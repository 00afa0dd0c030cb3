# storefront/services/shipment_service.py
from typing import Iterable

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderItemModel, OrderModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.domain.order_status import OrderStatus, transition
from storefront.repos.order_repo import OrderRepo
from storefront.services.carrier_client import CarrierClient
from storefront.services.notification_service import NotificationService
from storefront.utils.db_errors import transient_store_errors
from storefront.utils.logging import get_logger
from storefront.utils.settings import (
    DEFAULT_WEIGHT_GRAMS,
    MAX_SHIPMENT_WEIGHT_GRAMS,
    MIN_SHIPMENT_WEIGHT_GRAMS,
    STORE_ADDRESS1,
    STORE_ADDRESS2,
    STORE_CITY,
    STORE_COUNTRY,
    STORE_EMAIL,
    STORE_NAME,
    STORE_PHONE,
    STORE_POSTAL_CODE,
)

logger = get_logger(__name__)


def parcel_weight(items: Iterable[OrderItemModel]) -> int:
    """Total weight of the order items, clamped to what the carrier accepts."""
    total = sum((i.weight_grams if i.weight_grams is not None else DEFAULT_WEIGHT_GRAMS) * i.quantity for i in items)
    return max(MIN_SHIPMENT_WEIGHT_GRAMS, min(MAX_SHIPMENT_WEIGHT_GRAMS, total))


def store_address() -> dict:
    return {
        "name": STORE_NAME,
        "address1": STORE_ADDRESS1,
        "address2": STORE_ADDRESS2 or None,
        "city": STORE_CITY,
        "postal_code": STORE_POSTAL_CODE,
        "country": STORE_COUNTRY,
        "phone": STORE_PHONE,
        "email": STORE_EMAIL or None,
    }


def recipient_address(order: OrderModel) -> dict:
    return {
        "name": order.shipping_name,
        "address1": order.shipping_street,
        "city": order.shipping_city,
        "state": order.shipping_state,
        "postal_code": order.shipping_postal,
        "country": order.shipping_country,
        "email": order.email,
    }


class ShipmentService:
    """
    Registers a parcel with the carrier for a confirmed order and marks it
    shipped.
    """

    def __init__(
        self,
        db: Session,
        carrier: CarrierClient | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carrier = carrier or CarrierClient()
        self.notifications = notifications or NotificationService()

    def create_shipment(self, order_number: str) -> OrderModel:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        if order.shipment_number:
            raise ValidationError(f"Order {order_number} already has a shipment", code="SHIPMENT_EXISTS")
        if order.status != OrderStatus.CONFIRMED.value:
            raise ValidationError(
                f"Only confirmed orders can be shipped, {order_number} is {order.status}",
                code="ORDER_NOT_SHIPPABLE",
            )

        weight = parcel_weight(order.items)
        created = self.carrier.create_shipment(
            shipper=store_address(),
            recipient=recipient_address(order),
            weight_grams=weight,
            reference=order.order_number,
            pickup_point_id=order.pickup_point_id,
        )

        with transient_store_errors(self.db, "shipment registration"):
            order.shipment_number = created.shipment_number
            order.label_url = created.label_url
            self.repo.update_order_status(order, transition(order.status, OrderStatus.SHIPPED).value)

        logger.info(f"Order {order_number} shipped as {created.shipment_number} ({weight} g)")
        self.notifications.send_shipping_confirmation(order.id)
        return order
