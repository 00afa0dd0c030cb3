# storefront/api/deps.py
"""Providers for outbound clients, replaced in tests via ``app.dependency_overrides``."""
from storefront.services.carrier_client import CarrierClient
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_client import PaymentClient
from storefront.services.session_store import CheckoutSessionStore


def get_payment_client() -> PaymentClient:
    return PaymentClient()


def get_carrier_client() -> CarrierClient:
    return CarrierClient()


def get_session_store() -> CheckoutSessionStore:
    return CheckoutSessionStore()


def get_notifications() -> NotificationService:
    return NotificationService()


def get_fulfillment() -> FulfillmentService:
    return FulfillmentService()
