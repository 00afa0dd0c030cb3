# storefront/data/models/shipping.py
from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ShippingZoneModel(Base):
    __tablename__ = "shipping_zones"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    # ISO-3166 alpha-2 codes, empty list = every country
    countries = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)

    methods = relationship(
        "ShippingMethodModel",
        back_populates="zone",
        cascade="all, delete-orphan",
    )


class ShippingMethodModel(Base):
    __tablename__ = "shipping_methods"

    id = Column(Integer, primary_key=True)
    zone_id = Column(Integer, ForeignKey("shipping_zones.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    carrier_name = Column(String(100), nullable=True)

    rate_type = Column(String(20), nullable=False)  # FLAT, FREE, PRICE_BASED, WEIGHT_BASED
    flat_rate = Column(Integer, nullable=True)
    free_shipping_threshold = Column(Integer, nullable=True)
    # [{"min": 0, "max": 4999, "rate": 590}, ...]
    price_rates = Column(JSON, nullable=True)
    weight_rates = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    estimated_days = Column(Integer, nullable=True)

    zone = relationship("ShippingZoneModel", back_populates="methods")
