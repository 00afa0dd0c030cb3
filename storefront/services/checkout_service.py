# storefront/services/checkout_service.py
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.domain.errors import NotFoundError, StockShortageError, ValidationError
from storefront.domain.schemas import AddressIn, CheckoutSnapshot, ShippingSelectionIn, SnapshotLine
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import CartIdentity, CartService
from storefront.services.payment_client import PaymentClient
from storefront.services.session_store import CheckoutSessionStore
from storefront.services.shipping_service import ShippingService, cart_weight, describe_method, line_weight
from storefront.services.stock_service import StockService
from storefront.utils.logging import get_logger
from storefront.utils.settings import PUBLIC_BASE_URL, STORE_CURRENCY

logger = get_logger(__name__)


def idempotency_key(cart_id: int, charge: Dict[str, Any]) -> str:
    """Key for the processor: identical charges share a session, any change opens a new one."""
    digest = hashlib.sha256(json.dumps(charge, sort_keys=True, separators=(",", ":")).encode()).hexdigest()
    return f"cart-{cart_id}-{digest[:32]}"


class CheckoutService:
    """
    Turns the current cart into a payment session.
    No order exists until payment is confirmed, only a snapshot in the
    session store keyed by the processor's session id.
    """

    def __init__(
        self,
        db: Session,
        payments: PaymentClient | None = None,
        sessions: CheckoutSessionStore | None = None,
    ):
        self.db = db
        self.carts = CartRepo(db)
        self.cart_service = CartService(db)
        self.stock = StockService(db)
        self.shipping = ShippingService(db)
        self.payments = payments or PaymentClient()
        self.sessions = sessions or CheckoutSessionStore()

    def _snapshot_lines(self, cart_id: int) -> List[SnapshotLine]:
        lines = []
        for item in self.carts.get_cart_items(cart_id):
            variant = item.variant
            lines.append(
                SnapshotLine(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    product_name=item.product.name,
                    sku=variant.sku if variant else None,
                    # prices always come from the catalog, never from the client
                    unit_price=variant.effective_price if variant else item.product.price,
                    quantity=item.quantity,
                    weight_grams=line_weight(item.product.weight_grams, variant.weight_grams if variant else None),
                )
            )
        return lines

    def create_session(
        self,
        identity: CartIdentity,
        shipping: ShippingSelectionIn,
        address: AddressIn,
        email: str,
    ) -> Dict[str, str]:
        cart = self.cart_service.find(identity)
        if not cart or not self.carts.get_cart_items(cart.id):
            raise ValidationError("Cart is empty", code="EMPTY_CART")

        stock = self.stock.validate(cart.id)
        if stock.cart_missing:
            raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
        if not stock.ok:
            logger.info(f"Checkout aborted for cart {cart.id}: {len(stock.shortages)} line(s) short")
            raise StockShortageError(stock.shortages)

        lines = self._snapshot_lines(cart.id)
        subtotal = sum(l.unit_price * l.quantity for l in lines)
        weight = cart_weight((l.weight_grams, l.quantity) for l in lines)

        method, quote = self.shipping.quote(shipping.method_id, address.country, subtotal, weight)
        total = subtotal + quote.cost

        line_items = [
            {
                "name": l.product_name if not l.sku else f"{l.product_name} ({l.sku})",
                "unit_amount": l.unit_price,
                "quantity": l.quantity,
            }
            for l in lines
        ]
        shipping_charge = {
            "name": method.name,
            "amount": quote.cost,
            "address": address.model_dump(),
        }
        key = idempotency_key(
            cart.id,
            {
                "lines": [l.model_dump() for l in lines],
                "shipping": shipping_charge,
                "method_id": method.id,
                "pickup_point_id": shipping.pickup_point_id,
                "pickup_point_name": shipping.pickup_point_name,
                "email": email,
                "currency": STORE_CURRENCY,
            },
        )

        session = self.payments.create_session(
            line_items=line_items,
            shipping=shipping_charge,
            currency=STORE_CURRENCY,
            customer_email=email,
            success_url=f"{PUBLIC_BASE_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{PUBLIC_BASE_URL}/cart",
            metadata={"cart_id": str(cart.id)},
            idempotency_key=key,
        )

        snapshot = CheckoutSnapshot(
            session_id=session.id,
            cart_id=cart.id,
            user_id=cart.user_id,
            email=email,
            lines=lines,
            shipping_method_id=method.id,
            shipping_method_name=method.name,
            carrier_name=method.carrier_name,
            pickup_point_id=shipping.pickup_point_id,
            pickup_point_name=shipping.pickup_point_name,
            shipping_cost=quote.cost,
            subtotal=subtotal,
            total=total,
            currency=STORE_CURRENCY,
            address=address,
            created_at=datetime.now(timezone.utc),
        )
        self.sessions.save(snapshot)

        logger.info(f"Checkout session {session.id} opened for cart {cart.id} (total={total} {STORE_CURRENCY})")
        return {"session_id": session.id, "redirect_url": session.url}

    def summary(self, identity: CartIdentity, country: str | None = None) -> Dict[str, Any]:
        cart = self.cart_service.find(identity)
        if not cart:
            raise NotFoundError("Cart not found", code="CART_NOT_FOUND")

        data = self.cart_service.summarize(cart)
        stock = self.stock.validate(cart.id)

        methods = []
        if country:
            for method in self.shipping.methods_for(country):
                quote = self.shipping.quote_method(method, data["subtotal"], data["total_weight_grams"])
                methods.append(describe_method(method, quote))

        return {
            "cart_id": cart.id,
            "items": data["items"],
            "item_count": data["item_count"],
            "total_quantity": data["total_quantity"],
            "subtotal": data["subtotal"],
            "total_weight_grams": data["total_weight_grams"],
            "currency": STORE_CURRENCY,
            "stock_ok": stock.ok,
            "shortages": [s.to_dict() for s in stock.shortages],
            "country": country.upper() if country else None,
            "shipping_methods": methods,
        }
