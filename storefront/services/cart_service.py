# storefront/services/cart_service.py
import secrets
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    CartAccessError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.shipping_service import cart_weight, line_weight
from storefront.utils.db_errors import transient_store_errors
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartIdentity:
    """Who a cart belongs to: a guest session token or a user id, never both."""

    session_token: str | None = None
    user_id: int | None = None

    @classmethod
    def of(cls, session_token: str | None = None, user_id: int | None = None, allow_anonymous: bool = False):
        if session_token and user_id is not None:
            raise ValidationError("Pass either session_token or user_id, not both", code="AMBIGUOUS_CART_IDENTITY")
        if not session_token and user_id is None and not allow_anonymous:
            raise ValidationError("session_token or user_id is required", code="MISSING_CART_IDENTITY")
        return cls(session_token=session_token or None, user_id=user_id)

    @property
    def is_anonymous(self) -> bool:
        return self.session_token is None and self.user_id is None


def _validate_quantity(quantity) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", code="INVALID_QUANTITY")
    return quantity


class CartService:
    """
    Cart use cases.
    commands (add, update, remove, merge) change state,
    queries (find, view, get_summary) only read.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    # query
    def find(self, identity: CartIdentity) -> CartModel | None:
        if identity.user_id is not None:
            return self.repo.get_cart_by_user(identity.user_id)
        if identity.session_token:
            return self.repo.get_cart_by_session(identity.session_token)
        return None

    def view(self, cart: CartModel) -> Dict[str, Any]:
        items = []
        for i in self.repo.get_cart_items(cart.id):
            unit_price = i.variant.effective_price if i.variant else i.product.price
            items.append(
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "variant_id": i.variant_id,
                    "product_name": i.product.name,
                    "sku": i.variant.sku if i.variant else None,
                    "quantity": i.quantity,
                    "unit_price": unit_price,
                    "line_total": unit_price * i.quantity,
                }
            )

        return {
            "cart_id": cart.id,
            "session_token": cart.session_token,
            "user_id": cart.user_id,
            "version": cart.version,
            "items": items,
            "subtotal": sum(i["line_total"] for i in items),
        }

    def get_summary(self, identity: CartIdentity) -> Dict[str, Any]:
        cart = self.find(identity)
        if not cart:
            raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
        return self.summarize(cart)

    def summarize(self, cart: CartModel) -> Dict[str, Any]:
        view = self.view(cart)
        weights = [
            (line_weight(i.product.weight_grams, i.variant.weight_grams if i.variant else None), i.quantity)
            for i in self.repo.get_cart_items(cart.id)
        ]
        return {
            **view,
            "item_count": len(view["items"]),
            "total_quantity": sum(i["quantity"] for i in view["items"]),
            "total_weight_grams": cart_weight(weights),
        }

    # commands
    def get_or_create(self, identity: CartIdentity) -> CartModel:
        existing = self.find(identity)
        if existing:
            return existing

        token = identity.session_token
        if identity.is_anonymous:
            token = secrets.token_urlsafe(24)

        with transient_store_errors(self.db, "cart creation"):
            try:
                created = self.repo.create_cart(CartModel(session_token=token, user_id=identity.user_id, version=1))
            except IntegrityError:
                # another request created the cart between find and insert
                self.repo.rollback()
                retry = self.find(CartIdentity(session_token=token, user_id=identity.user_id))
                if retry:
                    return retry
                raise

        logger.info(f"Created cart {created.id} (user={created.user_id}, guest={created.session_token is not None})")
        return created

    def add_item(
        self,
        identity: CartIdentity,
        product_id: int,
        variant_id: int | None,
        quantity: int,
    ) -> Dict[str, Any]:
        _validate_quantity(quantity)

        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")

        if variant_id is not None:
            variant = self.products.get_variant(variant_id)
            if not variant or variant.product_id != product.id:
                raise NotFoundError("Variant not found for this product", code="VARIANT_NOT_FOUND")

        cart = self.get_or_create(identity)

        with transient_store_errors(self.db, "add to cart"):
            existing_item = self.repo.find_line(cart.id, product_id, variant_id)

            if existing_item:
                logger.info(
                    f"Product {product_id}/{variant_id} already in cart {cart.id}, "
                    f"quantity {existing_item.quantity} -> {existing_item.quantity + quantity}"
                )
                existing_item.quantity += quantity
                self.db.flush()
            else:
                logger.info(f"Adding product {product_id}/{variant_id} to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=quantity,
                    )
                )

            self._bump_version(cart)

        return self.view(cart)

    def update_quantity(self, identity: CartIdentity, item_id: int, quantity: int) -> Dict[str, Any]:
        _validate_quantity(quantity)
        cart, item = self._owned_item(identity, item_id)

        with transient_store_errors(self.db, "cart quantity update"):
            item.quantity = quantity
            self.db.flush()
            self._bump_version(cart)

        logger.info(f"Cart {cart.id} item {item_id} quantity set to {quantity}")
        return self.view(cart)

    def remove(self, identity: CartIdentity, item_id: int) -> Dict[str, Any]:
        cart, item = self._owned_item(identity, item_id)

        with transient_store_errors(self.db, "cart item removal"):
            self.repo.delete_cart_item(item)
            self._bump_version(cart)

        logger.info(f"Removed item {item_id} from cart {cart.id}")
        return self.view(cart)

    def merge(self, session_token: str, user_id: int) -> Dict[str, Any]:
        """Fold the guest cart into the user's cart, in one transaction.

        Lines present in both carts have their quantities summed, other guest
        lines are moved over. The guest cart is deleted afterwards.
        """
        guest = self.repo.get_cart_by_session(session_token)
        if not guest:
            return self.view(self.get_or_create(CartIdentity(user_id=user_id)))

        with transient_store_errors(self.db, "cart merge"):
            try:
                user_cart = self.repo.get_cart_by_user(user_id)
                if not user_cart:
                    user_cart = CartModel(user_id=user_id, version=1)
                    self.db.add(user_cart)
                    self.db.flush()
                loaded_version = user_cart.version

                # items may have been added by id since the collections were loaded
                self.db.expire(user_cart, ["items"])
                self.db.expire(guest, ["items"])

                lines = {(i.product_id, i.variant_id): i for i in user_cart.items}
                moved = summed = 0

                for item in list(guest.items):
                    key = (item.product_id, item.variant_id)
                    if key in lines:
                        lines[key].quantity += item.quantity
                        summed += 1
                    else:
                        # reassigning the parent moves the row instead of deleting it
                        item.cart = user_cart
                        lines[key] = item
                        moved += 1

                rowcount = self.repo.update_cart_version(
                    cart_id=user_cart.id,
                    old_version=loaded_version,
                    new_data={"version": loaded_version + 1},
                )
                if rowcount == 0:
                    raise ConcurrencyConflictError("Cart changed while merging, please retry")
                self.db.delete(guest)
                self.repo.commit()
            except IntegrityError as e:
                self.repo.rollback()
                raise ConcurrencyConflictError("Cart changed while merging, please retry") from e
            except Exception:
                self.repo.rollback()
                raise

        logger.info(
            f"Merged guest cart {guest.id} into cart {user_cart.id} of user {user_id} "
            f"({moved} moved, {summed} summed)"
        )
        return self.view(user_cart)

    def _owned_item(self, identity: CartIdentity, item_id: int):
        item = self.repo.get_cart_item(item_id)
        if not item:
            raise NotFoundError("Cart item not found", code="CART_ITEM_NOT_FOUND")

        cart = self.find(identity)
        if not cart or item.cart_id != cart.id:
            raise CartAccessError("Cart item does not belong to this cart")
        return cart, item

    def _bump_version(self, cart: CartModel) -> None:
        # optimistic locking: UPDATE ... SET version = v + 1 WHERE version = v
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1},
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyConflictError("Cart was modified by another request")

        self.repo.commit()
