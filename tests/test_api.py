"""HTTP surface: routing, identity parameters and error payloads."""
import json

import pytest
from fastapi.testclient import TestClient

from storefront.api import create_app
from storefront.api.deps import (
    get_carrier_client,
    get_fulfillment,
    get_notifications,
    get_payment_client,
    get_session_store,
)
from storefront.client.order_poller import OrderPoller
from storefront.data.database import get_db
from storefront.domain.errors import PaymentNotConfirmedError


@pytest.fixture
def client(db, catalog, payments, sessions, carrier, notifications, fulfillment):
    app = create_app()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_payment_client] = lambda: payments
    app.dependency_overrides[get_session_store] = lambda: sessions
    app.dependency_overrides[get_carrier_client] = lambda: carrier
    app.dependency_overrides[get_notifications] = lambda: notifications
    app.dependency_overrides[get_fulfillment] = lambda: fulfillment

    with TestClient(app) as c:
        yield c


def checkout_body(catalog):
    return {
        "shipping": {"method_id": catalog.colissimo.id},
        "address": {"name": "Marie Curie", "street": "12 Rue Cuvier", "city": "Paris", "postal": "75005", "country": "FR"},
        "email": "Buyer@Example.com",
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "database": "ok", "sessions": "ok"}


def test_guest_cart_flow(client, catalog):
    cart = client.get("/carts").json()
    token = cart["session_token"]
    assert token and cart["items"] == []

    added = client.post(f"/carts/items?session_token={token}", json={"product_id": catalog.mug.id, "quantity": 2})
    assert added.status_code == 200
    item_id = added.json()["items"][0]["id"]

    updated = client.patch(f"/carts/items/{item_id}?session_token={token}", json={"quantity": 3})
    assert updated.json()["items"][0]["quantity"] == 3

    rejected = client.patch(f"/carts/items/{item_id}?session_token={token}", json={"quantity": 0})
    assert rejected.status_code == 400
    assert rejected.json()["detail"]["code"] == "INVALID_QUANTITY"

    removed = client.delete(f"/carts/items/{item_id}?session_token={token}")
    assert removed.json()["items"] == []


def test_schema_rejects_non_positive_quantity(client, catalog):
    resp = client.post("/carts/items?user_id=1", json={"product_id": catalog.mug.id, "quantity": 0})
    assert resp.status_code == 422


def test_foreign_item_is_forbidden(client, catalog):
    item_id = client.post("/carts/items?user_id=1", json={"product_id": catalog.mug.id, "quantity": 1}).json()["items"][0]["id"]
    client.post("/carts/items?user_id=2", json={"product_id": catalog.poster.id, "quantity": 1})

    resp = client.delete(f"/carts/items/{item_id}?user_id=2")
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CART_ACCESS_DENIED"


def test_merge_endpoint(client, catalog):
    token = client.get("/carts").json()["session_token"]
    client.post(f"/carts/items?session_token={token}", json={"product_id": catalog.mug.id, "quantity": 2})
    client.post("/carts/items?user_id=8", json={"product_id": catalog.mug.id, "quantity": 1})

    merged = client.post("/carts/merge", json={"session_token": token, "user_id": 8}).json()

    assert merged["user_id"] == 8
    assert [(i["product_id"], i["quantity"]) for i in merged["items"]] == [(catalog.mug.id, 3)]


def test_shipping_methods_for_country(client):
    methods = client.get("/shipping/methods?country=de").json()
    assert [m["name"] for m in methods] == ["Standard Europe", "International"]


def test_checkout_summary(client, catalog):
    client.post("/carts/items?user_id=1", json={"product_id": catalog.mug.id, "quantity": 2})

    summary = client.get("/checkout/summary?user_id=1&country=FR").json()
    assert summary["subtotal"] == 3000
    assert summary["stock_ok"] is True
    assert summary["shipping_methods"][0]["cost"] == 500


def test_checkout_shortage_lists_every_line(client, catalog):
    client.post("/carts/items?user_id=1", json={"product_id": catalog.mug.id, "quantity": 9})
    client.post("/carts/items?user_id=1", json={"product_id": catalog.sold_out.id, "quantity": 1})

    resp = client.post("/checkout/sessions?user_id=1", json=checkout_body(catalog))

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_STOCK"
    assert [(s["product_name"], s["requested"], s["available"]) for s in detail["shortages"]] == [
        ("Stoneware mug", 9, 5),
        ("Vinyl record", 1, 0),
    ]


def test_checkout_to_order_via_callback_and_poll(client, catalog, payments):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 2})

    created = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog))
    assert created.status_code == 201
    session_id = created.json()["session_id"]

    pending = client.get(f"/checkout/sessions/{session_id}/order").json()
    assert pending["status"] == "processing"

    payments.mark_paid(session_id)
    event = {"type": "checkout.session.completed", "data": {"object": {"id": session_id}}}
    ack = client.post("/webhooks/payments", content=json.dumps(event))
    assert ack.json()["handled"] is True

    ready = client.get(f"/checkout/sessions/{session_id}/order").json()
    assert ready["status"] == "ready"
    order = ready["order"]
    assert order["order_number"] == ack.json()["order_number"]
    assert order["email"] == "buyer@example.com"
    assert order["total"] == 3500

    again = client.post(f"/checkout/sessions/{session_id}/reconcile").json()
    assert again["id"] == order["id"]

    by_user = client.get("/orders?user_id=4").json()
    assert [o["order_number"] for o in by_user] == [order["order_number"]]


def test_reconcile_unpaid_session_is_402(client, catalog):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog)).json()["session_id"]

    resp = client.post(f"/checkout/sessions/{session_id}/reconcile")

    assert resp.status_code == 402
    assert resp.json()["detail"]["code"] == "PAYMENT_INCOMPLETE"


def test_guest_order_lookup_requires_matching_email(client, catalog, payments):
    token = client.get("/carts").json()["session_token"]
    client.post(f"/carts/items?session_token={token}", json={"product_id": catalog.poster.id, "quantity": 1})
    session_id = client.post(f"/checkout/sessions?session_token={token}", json=checkout_body(catalog)).json()["session_id"]
    payments.mark_paid(session_id)
    number = client.post(f"/checkout/sessions/{session_id}/reconcile").json()["order_number"]

    assert client.get(f"/orders/{number}?email=BUYER@example.com").status_code == 200
    assert client.get(f"/orders/{number}?email=someone@else.com").status_code == 404
    assert client.get("/orders/ORD-999999").status_code == 404


def test_admin_status_shipment_and_tracking(client, catalog, payments, carrier, notifications):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog)).json()["session_id"]
    payments.mark_paid(session_id)
    number = client.post(f"/checkout/sessions/{session_id}/reconcile").json()["order_number"]

    shipment = client.post(f"/admin/orders/{number}/shipment")
    assert shipment.status_code == 201
    assert shipment.json()["status"] == "SHIPPED"

    carrier.set_tracking(shipment.json()["shipment_number"], "DELIVERED")
    synced = client.post(f"/admin/orders/{number}/sync-tracking").json()
    assert synced == {"updated": True, "new_status": "DELIVERED", "message": "Order delivered"}

    backwards = client.patch(f"/admin/orders/{number}/status", json={"status": "SHIPPED"})
    assert backwards.status_code == 409
    assert backwards.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"
    assert len(notifications.shipping_confirmations) == 1


class StepClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def test_poller_asks_processor_once_per_wait(client, catalog, payments):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog)).json()["session_id"]
    clock = StepClock()
    poller = OrderPoller("http://testserver", interval=3, budget=30, http=client, sleep=clock.sleep, clock=clock)

    with pytest.raises(PaymentNotConfirmedError):
        poller.wait_for_order(session_id)

    # eleven existence polls, then the single reconcile re-check
    assert payments.lookups == [session_id]


def test_poller_reconciles_paid_session_without_callback(client, catalog, payments):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog)).json()["session_id"]
    payments.mark_paid(session_id)
    clock = StepClock()
    poller = OrderPoller("http://testserver", interval=3, budget=9, http=client, sleep=clock.sleep, clock=clock)

    order = poller.wait_for_order(session_id)

    assert order["status"] == "CONFIRMED"
    assert payments.lookups == [session_id]


def test_customer_tracking(client, catalog, payments, carrier):
    token = client.get("/carts").json()["session_token"]
    client.post(f"/carts/items?session_token={token}", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post(f"/checkout/sessions?session_token={token}", json=checkout_body(catalog)).json()["session_id"]
    payments.mark_paid(session_id)
    number = client.post(f"/checkout/sessions/{session_id}/reconcile").json()["order_number"]
    url = f"/orders/{number}/tracking"

    not_shipped = client.get(f"{url}?email=buyer@example.com")
    assert not_shipped.status_code == 400
    assert not_shipped.json()["detail"]["code"] == "NO_SHIPMENT"

    shipment_number = client.post(f"/admin/orders/{number}/shipment").json()["shipment_number"]
    carrier.set_tracking(shipment_number, "IN_TRANSIT", "Pris en charge")

    tracking = client.get(f"{url}?email=BUYER@example.com").json()
    assert tracking["available"] is True
    assert tracking["status"] == "IN_TRANSIT"
    assert [e["description"] for e in tracking["events"]] == ["Pris en charge"]

    assert client.get(f"{url}?email=someone@else.com").status_code == 404
    assert client.get(url).status_code == 404

    carrier.unreachable = True
    degraded = client.get(f"{url}?email=buyer@example.com")
    assert degraded.status_code == 200
    assert degraded.json()["available"] is False
    assert degraded.json()["events"] == []


def test_user_tracking_requires_owner(client, catalog, payments, carrier):
    client.post("/carts/items?user_id=4", json={"product_id": catalog.mug.id, "quantity": 1})
    session_id = client.post("/checkout/sessions?user_id=4", json=checkout_body(catalog)).json()["session_id"]
    payments.mark_paid(session_id)
    number = client.post(f"/checkout/sessions/{session_id}/reconcile").json()["order_number"]
    shipment_number = client.post(f"/admin/orders/{number}/shipment").json()["shipment_number"]
    carrier.set_tracking(shipment_number, "DELIVERED")

    assert client.get(f"/orders/{number}/tracking?user_id=4").json()["status"] == "DELIVERED"
    assert client.get(f"/orders/{number}/tracking?user_id=5").status_code == 404
    # the email alone does not open a registered customer's order
    assert client.get(f"/orders/{number}/tracking?email=buyer@example.com").status_code == 404
