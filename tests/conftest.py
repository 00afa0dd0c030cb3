# tests/conftest.py
import os

# must be set before any storefront module reads its settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["PAYMENT_WEBHOOK_SECRET"] = ""

from dataclasses import dataclass  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402

from storefront.data import models  # noqa: E402,F401
from storefront.data.database import Base, SessionLocal, engine  # noqa: E402
from storefront.data.models import (  # noqa: E402
    ProductModel,
    ProductVariantModel,
    ShippingMethodModel,
    ShippingZoneModel,
)
from storefront.domain.errors import ExternalServiceError  # noqa: E402
from storefront.services.carrier_client import (  # noqa: E402
    CreatedShipment,
    TrackingEvent,
    TrackingInfo,
)
from storefront.services.payment_client import PaymentSession, PaymentStatus  # noqa: E402
from storefront.services.session_store import CheckoutSessionStore  # noqa: E402


class FakeRedis:
    """Dict-backed stand-in for the few redis commands the session store uses."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def set(self, name, value, ex=None, nx=False):
        if nx and name in self.data:
            return None
        self.data[name] = value
        self.ttls[name] = ex
        return True

    def get(self, name):
        return self.data.get(name)

    def ping(self):
        return True


class FakePaymentClient:
    """Payment processor stub. Sessions are unpaid until ``mark_paid``.

    A repeated idempotency key returns the session created for it, as the
    real processor does.
    """

    def __init__(self):
        self._ids = count(1)
        self.created = []
        self.by_key = {}
        self.statuses = {}
        self.lookups = []
        self.unreachable = False

    def create_session(self, line_items, shipping, currency, customer_email, success_url, cancel_url,
                       metadata, idempotency_key):
        if idempotency_key in self.by_key:
            return self.by_key[idempotency_key]

        session_id = f"cs_test_{next(self._ids)}"
        self.created.append(
            {
                "id": session_id,
                "line_items": line_items,
                "shipping": shipping,
                "currency": currency,
                "customer_email": customer_email,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self.statuses[session_id] = "unpaid"
        session = PaymentSession(id=session_id, url=f"https://pay.test/{session_id}")
        self.by_key[idempotency_key] = session
        return session

    def mark_paid(self, session_id):
        self.statuses[session_id] = "paid"

    def get_session(self, session_id):
        self.lookups.append(session_id)
        if self.unreachable:
            raise ExternalServiceError("payment", "could not retrieve checkout session")
        return PaymentStatus(
            session_id=session_id,
            payment_status=self.statuses.get(session_id, "unpaid"),
            customer_email="buyer@example.com",
            payment_reference=f"pi_{session_id}",
        )


class FakeCarrier:
    def __init__(self):
        self.tracking = {}
        self.shipments = []
        self.unreachable = False

    def set_tracking(self, shipment_number, status, *descriptions):
        self.tracking[shipment_number] = TrackingInfo(
            shipment_number=shipment_number,
            status=status,
            events=[TrackingEvent(status="", description=d) for d in descriptions],
        )

    def get_tracking_info(self, shipment_number):
        if self.unreachable:
            raise ExternalServiceError("carrier", f"tracking unavailable for {shipment_number}")
        return self.tracking[shipment_number]

    def create_shipment(self, shipper, recipient, weight_grams, reference, pickup_point_id=None):
        if self.unreachable:
            raise ExternalServiceError("carrier", f"could not create shipment for {reference}")
        number = f"SHIP{len(self.shipments) + 1:04d}"
        self.shipments.append(
            {
                "shipper": shipper,
                "recipient": recipient,
                "weight_grams": weight_grams,
                "reference": reference,
                "pickup_point_id": pickup_point_id,
            }
        )
        return CreatedShipment(shipment_number=number, label_url=f"https://labels.test/{number}.pdf")


class RecordingFulfillment:
    def __init__(self):
        self.scheduled = []

    def schedule(self, order_id):
        self.scheduled.append(order_id)
        return True


class RecordingNotifications:
    def __init__(self):
        self.order_confirmations = []
        self.shipping_confirmations = []

    def send_order_confirmation(self, order_id):
        self.order_confirmations.append(order_id)
        return True

    def send_shipping_confirmation(self, order_id):
        self.shipping_confirmations.append(order_id)
        return True


@dataclass
class Catalog:
    shirt: ProductModel
    shirt_m: ProductVariantModel
    shirt_xl: ProductVariantModel
    mug: ProductModel
    poster: ProductModel
    sold_out: ProductModel
    colissimo: ShippingMethodModel
    relay: ShippingMethodModel
    europe: ShippingMethodModel
    world: ShippingMethodModel


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def catalog(db):
    shirt = ProductModel(name="Linen T-shirt", slug="linen-t-shirt", price=2500, stock_quantity=None, weight_grams=200)
    shirt_m = ProductVariantModel(sku="TEE-M", stock_quantity=5)
    shirt_xl = ProductVariantModel(sku="TEE-XL", price=2800, stock_quantity=1, weight_grams=300)
    shirt.variants = [shirt_m, shirt_xl]
    mug = ProductModel(name="Stoneware mug", slug="stoneware-mug", price=1500, stock_quantity=5, weight_grams=450)
    poster = ProductModel(name="Art print", slug="art-print", price=1000, stock_quantity=None)
    sold_out = ProductModel(name="Vinyl record", slug="vinyl-record", price=3000, stock_quantity=0, weight_grams=250)

    france = ShippingZoneModel(name="France", countries=["FR"], display_order=0)
    colissimo = ShippingMethodModel(
        name="Colissimo", carrier_name="Colissimo", rate_type="FREE",
        flat_rate=500, free_shipping_threshold=5000, display_order=0,
    )
    relay = ShippingMethodModel(
        name="Pickup point", carrier_name="Mondial Relay", rate_type="WEIGHT_BASED",
        weight_rates=[{"min": 0, "max": 500, "rate": 390}, {"min": 501, "max": 2000, "rate": 490}],
        display_order=1,
    )
    france.methods = [colissimo, relay]

    eu = ShippingZoneModel(name="Europe", countries=["BE", "DE"], display_order=1)
    europe = ShippingMethodModel(
        name="Standard Europe", rate_type="PRICE_BASED",
        price_rates=[{"min": 0, "max": 4999, "rate": 990}, {"min": 5000, "max": None, "rate": 490}],
    )
    eu.methods = [europe]

    rest = ShippingZoneModel(name="World", countries=[], display_order=9)
    world = ShippingMethodModel(name="International", rate_type="FLAT", flat_rate=1990)
    rest.methods = [world]

    db.add_all([shirt, mug, poster, sold_out, france, eu, rest])
    db.commit()

    return Catalog(shirt, shirt_m, shirt_xl, mug, poster, sold_out, colissimo, relay, europe, world)


@pytest.fixture
def payments():
    return FakePaymentClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def sessions(fake_redis):
    return CheckoutSessionStore(client=fake_redis, ttl=3600)


@pytest.fixture
def carrier():
    return FakeCarrier()


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def fulfillment():
    return RecordingFulfillment()


@pytest.fixture
def address():
    from storefront.domain.schemas import AddressIn

    return AddressIn(name="Marie Curie", street="12 Rue Cuvier", city="Paris", postal="75005", country="fr")
