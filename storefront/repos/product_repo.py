# storefront/repos/product_repo.py
from typing import Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel, ProductVariantModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.get(ProductVariantModel, variant_id)

    def decrement_stock(self, lines: Iterable[tuple[int, int | None, int]]) -> None:
        """Decrement stock for (product_id, variant_id, quantity) lines in place.

        Uses ``stock = stock - :qty`` so concurrent writers never lose an update.
        Products with untracked stock (NULL) are left alone.
        """
        # stable row order so two transactions never wait on each other in a cycle
        for product_id, variant_id, quantity in sorted(lines, key=lambda l: (l[0], l[1] or 0)):
            if variant_id is not None:
                self.db.execute(
                    update(ProductVariantModel)
                    .where(ProductVariantModel.id == variant_id)
                    .values(stock_quantity=ProductVariantModel.stock_quantity - quantity)
                    .execution_options(synchronize_session="fetch")
                )
            else:
                self.db.execute(
                    update(ProductModel)
                    .where(
                        ProductModel.id == product_id,
                        ProductModel.stock_quantity.is_not(None),
                    )
                    .values(stock_quantity=ProductModel.stock_quantity - quantity)
                    .execution_options(synchronize_session="fetch")
                )
