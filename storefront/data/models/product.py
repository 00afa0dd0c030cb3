# storefront/data/models/product.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)

    price = Column(Integer, nullable=False)  # cents
    # NULL = stock is not tracked for this product
    stock_quantity = Column(Integer, nullable=True)
    weight_grams = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship(
        "ProductVariantModel",
        back_populates="product",
        cascade="all, delete-orphan",
    )


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(64), nullable=False, unique=True)

    # NULL = inherits the product price / weight
    price = Column(Integer, nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    weight_grams = Column(Integer, nullable=True)

    product = relationship("ProductModel", back_populates="variants")

    @property
    def effective_price(self) -> int:
        return self.price if self.price is not None else self.product.price
