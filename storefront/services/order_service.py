# storefront/services/order_service.py
import hashlib
import hmac
import json
from typing import Any, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderItemModel, OrderModel
from storefront.domain.errors import (
    CheckoutError,
    ExternalServiceError,
    NotFoundError,
    PaymentNotConfirmedError,
    StockShortage,
    ValidationError,
)
from storefront.domain.order_status import OrderStatus, transition
from storefront.domain.schemas import CheckoutSnapshot
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.carrier_client import CarrierClient, TrackingInfo
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_client import PaymentClient, PaymentStatus
from storefront.services.session_store import CheckoutSessionStore
from storefront.services.stock_service import StockLine, StockService
from storefront.utils.db_errors import transient_store_errors
from storefront.utils.logging import get_logger
from storefront.utils.settings import (
    ORDER_POLL_BUDGET_SECONDS,
    ORDER_POLL_INTERVAL_SECONDS,
    PAYMENT_WEBHOOK_SECRET,
)

logger = get_logger(__name__)

TRIGGER_CALLBACK = "callback"
TRIGGER_POLLING = "polling"
TRIGGER_MANUAL = "manual"
TRIGGERS = (TRIGGER_CALLBACK, TRIGGER_POLLING, TRIGGER_MANUAL)

SESSION_COMPLETED_EVENT = "checkout.session.completed"

# carrier wording varies by language, any of these in the status or an event means delivered
DELIVERY_KEYWORDS = ("delivered", "collected", "livré", "distribué", "remis", "retiré")


def format_order_number(order_id: int) -> str:
    return f"ORD-{order_id:06d}"


class OrderMaterializer:
    """
    Creates the order for a paid checkout session, exactly once.

    Three triggers race for the same session (processor callback, client
    polling, manual reconcile). The unique constraint on
    ``orders.checkout_session_id`` decides the winner; every loser returns
    the winner's order.
    """

    def __init__(
        self,
        db: Session,
        payments: PaymentClient | None = None,
        sessions: CheckoutSessionStore | None = None,
        notifications: NotificationService | None = None,
        fulfillment: FulfillmentService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.stock = StockService(db)
        self.payments = payments or PaymentClient()
        self.sessions = sessions or CheckoutSessionStore()
        self.notifications = notifications or NotificationService()
        self.fulfillment = fulfillment or FulfillmentService()

    def materialize(self, checkout_session_id: str, trigger: str) -> OrderModel:
        if trigger not in TRIGGERS:
            raise ValidationError(f"Unknown trigger {trigger!r}", code="UNKNOWN_TRIGGER")

        with transient_store_errors(self.db, "order lookup"):
            existing = self.repo.get_by_checkout_session(checkout_session_id)
        if existing:
            logger.info(f"Session {checkout_session_id} already materialized as {existing.order_number} ({trigger})")
            return existing

        payment = self.payments.get_session(checkout_session_id)
        if not payment.is_paid:
            logger.warning(
                f"Session {checkout_session_id} not paid (status={payment.payment_status}), "
                f"no order created ({trigger})"
            )
            raise PaymentNotConfirmedError(checkout_session_id, payment.payment_status)

        snapshot = self.sessions.load(checkout_session_id)
        if snapshot is None:
            logger.error(f"Paid session {checkout_session_id} has no stored snapshot ({trigger})")
            raise NotFoundError("Checkout session not found", code="CHECKOUT_SESSION_NOT_FOUND")

        stock = self.stock.validate_lines(
            StockLine(l.product_id, l.variant_id, l.quantity) for l in snapshot.lines
        )
        if not stock.ok:
            # payment is already captured: fulfil and flag, operations follow up
            logger.error(
                f"Session {checkout_session_id} paid with insufficient stock: "
                + ", ".join(f"{s.product_name} requested {s.requested} available {s.available}" for s in stock.shortages)
            )

        with transient_store_errors(self.db, "order materialization"):
            order, created = self._create(snapshot, payment, trigger, stock.shortages)

        if created:
            logger.info(f"Order {order.order_number} created for session {checkout_session_id} ({trigger})")
            self.notifications.send_order_confirmation(order.id)
            self.fulfillment.schedule(order.id)
        return order

    def _create(
        self,
        snapshot: CheckoutSnapshot,
        payment: PaymentStatus,
        trigger: str,
        shortages: List[StockShortage],
    ) -> Tuple[OrderModel, bool]:
        address = snapshot.address
        order = OrderModel(
            checkout_session_id=snapshot.session_id,
            user_id=snapshot.user_id,
            email=snapshot.email,
            status=OrderStatus.CONFIRMED.value,
            subtotal=snapshot.subtotal,
            shipping_cost=snapshot.shipping_cost,
            total=snapshot.total,
            currency=snapshot.currency,
            shipping_name=address.name,
            shipping_street=address.street,
            shipping_city=address.city,
            shipping_state=address.state,
            shipping_postal=address.postal,
            shipping_country=address.country,
            shipping_method_id=snapshot.shipping_method_id,
            shipping_method_name=snapshot.shipping_method_name,
            carrier_name=snapshot.carrier_name,
            pickup_point_id=snapshot.pickup_point_id,
            pickup_point_name=snapshot.pickup_point_name,
            payment_reference=payment.payment_reference,
            materialized_by=trigger,
            stock_shortages=[s.to_dict() for s in shortages] or None,
            items=[
                OrderItemModel(
                    product_id=l.product_id,
                    variant_id=l.variant_id,
                    product_name=l.product_name,
                    sku=l.sku,
                    unit_price=l.unit_price,
                    quantity=l.quantity,
                    weight_grams=l.weight_grams,
                )
                for l in snapshot.lines
            ],
        )

        try:
            self.repo.add_order(order)
        except IntegrityError:
            self.repo.rollback()
            winner = self.repo.get_by_checkout_session(snapshot.session_id)
            if winner is None:
                raise
            logger.info(f"Session {snapshot.session_id} materialized concurrently, returning {winner.order_number} ({trigger})")
            return winner, False

        try:
            order.order_number = format_order_number(order.id)
            self.products.decrement_stock((l.product_id, l.variant_id, l.quantity) for l in snapshot.lines)
            self.carts.delete_cart(snapshot.cart_id)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return order, True


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded, optionally prefixed with ``sha256=``."""
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def handle_payment_callback(
    materializer: OrderMaterializer,
    payload: bytes,
    signature: str | None,
    secret: str | None = None,
) -> Dict[str, Any]:
    secret = PAYMENT_WEBHOOK_SECRET if secret is None else secret
    if secret and not verify_signature(payload, signature, secret):
        logger.warning("Payment callback rejected: invalid signature")
        raise ValidationError("Invalid webhook signature", code="INVALID_SIGNATURE")

    try:
        event = json.loads(payload)
        event_type = event["type"]
    except (ValueError, KeyError, TypeError) as e:
        raise ValidationError("Malformed webhook payload", code="INVALID_PAYLOAD") from e

    if event_type != SESSION_COMPLETED_EVENT:
        logger.info(f"Payment callback {event_type} acknowledged, nothing to do")
        return {"received": True, "handled": False}

    try:
        session_id = event["data"]["object"]["id"]
    except (KeyError, TypeError) as e:
        raise ValidationError("Webhook payload has no session id", code="INVALID_PAYLOAD") from e

    try:
        order = materializer.materialize(session_id, TRIGGER_CALLBACK)
    except PaymentNotConfirmedError as e:
        # completed but not yet paid (delayed methods): acknowledge, polling or reconcile finish it
        logger.warning(f"Callback for session {session_id}: {e}")
        return {"received": True, "handled": False, "reason": e.code}
    except CheckoutError as e:
        logger.error(f"Callback for session {session_id} failed ({TRIGGER_CALLBACK}): {e}")
        raise

    return {"received": True, "handled": True, "order_number": order.order_number}


def poll_order(materializer: OrderMaterializer, checkout_session_id: str, materialize: bool = False) -> Dict[str, Any]:
    """Order for the session if it exists, else a ``processing`` status.

    With ``materialize=True`` a missing order is created from here when the
    processor already reports the session as paid. The processor is asked at
    most once per session per poll budget, later polls only read.
    """
    hints = {
        "poll_interval_seconds": ORDER_POLL_INTERVAL_SECONDS,
        "poll_budget_seconds": ORDER_POLL_BUDGET_SECONDS,
    }

    with transient_store_errors(materializer.db, "order poll"):
        order = materializer.repo.get_by_checkout_session(checkout_session_id)
    if order:
        return {"status": "ready", "order": order, **hints}

    if materialize and materializer.sessions.claim_recheck(checkout_session_id, ORDER_POLL_BUDGET_SECONDS):
        try:
            order = materializer.materialize(checkout_session_id, TRIGGER_POLLING)
            return {"status": "ready", "order": order, **hints}
        except (PaymentNotConfirmedError, ExternalServiceError) as e:
            # the callback may still be on its way, keep polling
            logger.info(f"Poll for session {checkout_session_id} still processing ({TRIGGER_POLLING}): {e}")
        except CheckoutError as e:
            logger.error(f"Poll for session {checkout_session_id} failed ({TRIGGER_POLLING}): {e}")
            raise

    return {"status": "processing", "order": None, **hints}


def reconcile(materializer: OrderMaterializer, checkout_session_id: str) -> OrderModel:
    try:
        return materializer.materialize(checkout_session_id, TRIGGER_MANUAL)
    except CheckoutError as e:
        logger.error(f"Reconcile for session {checkout_session_id} failed ({TRIGGER_MANUAL}): {e}")
        raise


def is_delivered(tracking: TrackingInfo) -> bool:
    texts = [tracking.status or ""]
    texts.extend(e.description or "" for e in tracking.events)
    texts.extend(e.status or "" for e in tracking.events)
    return any(keyword in text.lower() for text in texts for keyword in DELIVERY_KEYWORDS)


class OrderStatusService:
    """
    Admin status changes and carrier tracking sync.
    Every change goes through ``order_status.transition``.
    """

    def __init__(self, db: Session, carrier: CarrierClient | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carrier = carrier or CarrierClient()

    def _get(self, order_number: str) -> OrderModel:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        return order

    def update_status(self, order_number: str, status: str) -> OrderModel:
        order = self._get(order_number)
        target = transition(order.status, status)

        if target.value == order.status:
            return order

        previous = order.status
        with transient_store_errors(self.db, "order status update"):
            self.repo.update_order_status(order, target.value)
        logger.info(f"Order {order_number} status {previous} -> {target.value}")
        return order

    def sync_tracking(self, order_number: str) -> Dict[str, Any]:
        order = self._get(order_number)

        if not order.shipment_number:
            return {"updated": False, "new_status": None, "message": "Order has no shipment"}
        if order.status != OrderStatus.SHIPPED.value:
            return {"updated": False, "new_status": None, "message": f"Order is {order.status}, nothing to sync"}

        try:
            tracking = self.carrier.get_tracking_info(order.shipment_number)
        except ExternalServiceError as e:
            logger.warning(f"Tracking sync for {order_number} failed: {e}")
            return {"updated": False, "new_status": None, "message": f"Carrier unavailable: {e}"}

        if not is_delivered(tracking):
            return {"updated": False, "new_status": None, "message": f"Carrier status: {tracking.status or 'unknown'}"}

        self.update_status(order_number, OrderStatus.DELIVERED.value)
        return {"updated": True, "new_status": OrderStatus.DELIVERED.value, "message": "Order delivered"}


class OrderQueryService:
    def __init__(self, db: Session):
        self.repo = OrderRepo(db)

    def get_order(self, order_number: str) -> OrderModel:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        return order

    def get_guest_order(self, order_number: str, email: str) -> OrderModel:
        order = self.repo.get_by_number(order_number)
        # same answer for wrong email and unknown number
        if not order or order.user_id is not None or order.email.lower() != email.strip().lower():
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        return order

    def list_user_orders(self, user_id: int) -> List[OrderModel]:
        return self.repo.list_by_user(user_id)

    def get_tracking(
        self,
        order_number: str,
        carrier: CarrierClient,
        user_id: int | None = None,
        email: str | None = None,
    ) -> Dict[str, Any]:
        """Carrier tracking for the order's owner, or for a guest who knows the order email.

        A carrier outage is reported in the payload instead of failing the request.
        """
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        if order.user_id is not None:
            allowed = user_id == order.user_id
        else:
            allowed = email is not None and order.email.lower() == email.strip().lower()
        if not allowed:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")

        if not order.shipment_number:
            raise ValidationError(f"Order {order_number} has not been shipped yet", code="NO_SHIPMENT")

        result = {
            "order_number": order.order_number,
            "shipment_number": order.shipment_number,
            "carrier_name": order.carrier_name,
        }
        try:
            tracking = carrier.get_tracking_info(order.shipment_number)
        except ExternalServiceError as e:
            logger.warning(f"Tracking for {order_number} unavailable: {e}")
            return {**result, "available": False, "message": "Tracking is temporarily unavailable"}

        return {
            **result,
            "available": True,
            "status": tracking.status,
            "events": [
                {"status": e.status, "description": e.description, "occurred_at": e.occurred_at}
                for e in tracking.events
            ],
        }
