# storefront/services/stock_service.py
from dataclasses import dataclass, field
from typing import Iterable, List

from sqlalchemy.orm import Session

from storefront.domain.errors import StockShortage
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo


@dataclass(frozen=True)
class StockLine:
    product_id: int
    variant_id: int | None
    quantity: int


@dataclass
class StockValidationResult:
    shortages: List[StockShortage] = field(default_factory=list)
    cart_missing: bool = False

    @property
    def ok(self) -> bool:
        return not self.cart_missing and not self.shortages


class StockService:
    """
    Read-only stock check. Reports every short line instead of stopping
    at the first one, so the caller can show all problems at once.
    """

    def __init__(self, db: Session):
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)

    def validate(self, cart_id: int) -> StockValidationResult:
        cart = self.carts.get_cart(cart_id)
        if not cart:
            # callers decide what a vanished cart means for them
            return StockValidationResult(cart_missing=True)

        lines = [
            StockLine(i.product_id, i.variant_id, i.quantity)
            for i in self.carts.get_cart_items(cart_id)
        ]
        return self.validate_lines(lines)

    def validate_lines(self, lines: Iterable[StockLine]) -> StockValidationResult:
        result = StockValidationResult()

        for line in lines:
            shortage = self._check_line(line)
            if shortage:
                result.shortages.append(shortage)

        return result

    def _check_line(self, line: StockLine) -> StockShortage | None:
        product = self.products.get_product(line.product_id)
        if product is None:
            return StockShortage(line.product_id, line.variant_id, f"Product #{line.product_id}", line.quantity, 0)

        if line.variant_id is not None:
            variant = self.products.get_variant(line.variant_id)
            if variant is None or variant.product_id != product.id:
                return StockShortage(product.id, line.variant_id, product.name, line.quantity, 0)
            available = variant.stock_quantity
        else:
            # untracked stock is unlimited
            if product.stock_quantity is None:
                return None
            available = product.stock_quantity

        if available < line.quantity:
            return StockShortage(product.id, line.variant_id, product.name, line.quantity, max(available, 0))
        return None
