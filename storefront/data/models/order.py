from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    # assigned from the row id inside the creating transaction
    order_number = Column(String(20), nullable=True, unique=True)
    # one order per payment session, enforced by the database
    checkout_session_id = Column(String(255), nullable=False, unique=True)

    user_id = Column(Integer, nullable=True, index=True)
    email = Column(String(255), nullable=False)

    status = Column(String(20), nullable=False, default="PENDING")
    subtotal = Column(Integer, nullable=False)
    shipping_cost = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)

    shipping_name = Column(String(100), nullable=False)
    shipping_street = Column(String(200), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=True)
    shipping_postal = Column(String(20), nullable=False)
    shipping_country = Column(String(2), nullable=False)

    shipping_method_id = Column(Integer, nullable=True)
    shipping_method_name = Column(String(100), nullable=True)
    carrier_name = Column(String(100), nullable=True)
    pickup_point_id = Column(String(64), nullable=True)
    pickup_point_name = Column(String(200), nullable=True)

    payment_reference = Column(String(255), nullable=True)
    materialized_by = Column(String(20), nullable=True)  # callback, polling, manual
    stock_shortages = Column(JSON, nullable=True)

    shipment_number = Column(String(64), nullable=True)
    label_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # snapshot at purchase time, not linked to the live catalog
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    product_name = Column(String(200), nullable=False)
    sku = Column(String(64), nullable=True)
    unit_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    weight_grams = Column(Integer, nullable=True)

    order = relationship("OrderModel", back_populates="items")
