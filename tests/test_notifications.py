"""Notification tasks and the fire-and-forget enqueue wrapper."""
from storefront.data.models import OrderItemModel, OrderModel
from storefront.data.seed import seed
from storefront.services import notification_service
from storefront.services.notification_service import (
    NotificationService,
    send_order_confirmation_task,
    send_shipping_confirmation_task,
)


def add_order(db):
    order = OrderModel(
        checkout_session_id="cs_n",
        order_number="ORD-000001",
        email="buyer@example.com",
        status="SHIPPED",
        subtotal=1000,
        shipping_cost=0,
        total=1000,
        currency="EUR",
        shipping_name="Marie Curie",
        shipping_street="12 Rue Cuvier",
        shipping_city="Paris",
        shipping_postal="75005",
        shipping_country="FR",
        shipment_number="SHIP1",
        items=[OrderItemModel(product_id=1, product_name="Mug", unit_price=1000, quantity=1)],
    )
    db.add(order)
    db.commit()
    return order


def test_order_confirmation_task_renders_order(db):
    order = add_order(db)

    result = send_order_confirmation_task(order.id)
    assert result == {"order_id": order.id, "order_number": "ORD-000001", "status": "sent"}


def test_shipping_confirmation_for_missing_order_is_skipped(db):
    assert send_shipping_confirmation_task(404)["status"] == "skipped"


def test_enqueue_failure_is_swallowed(monkeypatch):
    def broker_down(*args, **kwargs):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(notification_service.send_order_confirmation_task, "delay", broker_down)
    assert NotificationService.send_order_confirmation(1) is False


def test_enqueue_delegates_to_task(monkeypatch):
    queued = []
    monkeypatch.setattr(notification_service.send_shipping_confirmation_task, "delay", queued.append)

    assert NotificationService.send_shipping_confirmation(7) is True
    assert queued == [7]


def test_seed_is_idempotent(db):
    assert seed(db) is True
    assert seed(db) is False
