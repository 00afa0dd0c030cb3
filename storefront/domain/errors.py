# storefront/domain/errors.py
"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a stable upper-case ``code`` that routers put into the
response body, so clients can branch on it without parsing messages.
"""
from dataclasses import asdict, dataclass
from typing import List


@dataclass(frozen=True)
class StockShortage:
    """A cart or snapshot line whose requested quantity exceeds stock."""

    product_id: int
    variant_id: int | None
    product_name: str
    requested: int
    available: int

    def to_dict(self) -> dict:
        return asdict(self)


class CheckoutError(Exception):
    code = "CHECKOUT_ERROR"

    def __init__(self, message: str | None = None, code: str | None = None):
        super().__init__(message or self.code)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(CheckoutError):
    """Malformed input, rejected before any side effect."""

    code = "VALIDATION_ERROR"


class NotFoundError(ValidationError):
    code = "NOT_FOUND"


class InvalidStatusTransitionError(ValidationError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from {current} to {requested}")
        self.current = current
        self.requested = requested


class CartAccessError(CheckoutError):
    code = "CART_ACCESS_DENIED"


class ConcurrencyConflictError(CheckoutError):
    """The cart was modified by another request (optimistic version check)."""

    code = "CONCURRENT_MODIFICATION"


class StockShortageError(CheckoutError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, shortages: List[StockShortage]):
        super().__init__(f"Insufficient stock for {len(shortages)} item(s)")
        self.shortages = list(shortages)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortages"] = [s.to_dict() for s in self.shortages]
        return data


class PaymentNotConfirmedError(CheckoutError):
    """Terminal: the processor does not report the session as paid."""

    code = "PAYMENT_INCOMPLETE"

    def __init__(self, checkout_session_id: str, payment_status: str | None = None):
        super().__init__(
            f"Payment for session {checkout_session_id} is not confirmed "
            f"(status: {payment_status or 'unknown'}). Please contact support if you were charged."
        )
        self.checkout_session_id = checkout_session_id
        self.payment_status = payment_status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["payment_status"] = self.payment_status
        return data


class TransientStoreError(CheckoutError):
    """Data store unavailable; retrying is safe."""

    code = "STORE_UNAVAILABLE"


class ExternalServiceError(CheckoutError):
    """Payment processor or carrier unreachable or misbehaving."""

    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
