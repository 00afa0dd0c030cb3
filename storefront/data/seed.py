# storefront/data/seed.py
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import (
    ProductModel,
    ProductVariantModel,
    ShippingMethodModel,
    ShippingZoneModel,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed(db=None) -> bool:
    """Demo catalog and shipping setup. Returns False when data already exists."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return False

        tee = ProductModel(name="Linen T-shirt", slug="linen-t-shirt", price=2500, stock_quantity=None, weight_grams=200)
        tee.variants = [
            ProductVariantModel(sku="TEE-S", stock_quantity=10),
            ProductVariantModel(sku="TEE-M", stock_quantity=5),
            ProductVariantModel(sku="TEE-XL", price=2800, stock_quantity=2, weight_grams=260),
        ]
        mug = ProductModel(name="Stoneware mug", slug="stoneware-mug", price=1500, stock_quantity=20, weight_grams=450)
        poster = ProductModel(name="Art print", slug="art-print", price=1000, stock_quantity=None)
        db.add_all([tee, mug, poster])

        france = ShippingZoneModel(name="France", countries=["FR"], display_order=0)
        france.methods = [
            ShippingMethodModel(
                name="Colissimo",
                carrier_name="Colissimo",
                rate_type="FREE",
                flat_rate=490,
                free_shipping_threshold=5000,
                estimated_days=2,
                display_order=0,
            ),
            ShippingMethodModel(
                name="Pickup point",
                carrier_name="Mondial Relay",
                rate_type="WEIGHT_BASED",
                weight_rates=[
                    {"min": 0, "max": 500, "rate": 390},
                    {"min": 501, "max": 2000, "rate": 490},
                    {"min": 2001, "max": 30000, "rate": 890},
                ],
                estimated_days=4,
                display_order=1,
            ),
        ]
        europe = ShippingZoneModel(name="Europe", countries=["BE", "DE", "ES", "IT", "LU", "NL"], display_order=1)
        europe.methods = [
            ShippingMethodModel(
                name="Standard Europe",
                rate_type="PRICE_BASED",
                price_rates=[
                    {"min": 0, "max": 4999, "rate": 990},
                    {"min": 5000, "max": None, "rate": 490},
                ],
                estimated_days=5,
            ),
        ]
        world = ShippingZoneModel(name="World", countries=[], display_order=9)
        world.methods = [ShippingMethodModel(name="International", rate_type="FLAT", flat_rate=1990, estimated_days=10)]
        db.add_all([france, europe, world])

        db.commit()
        logger.info("Seeded demo catalog and shipping zones")
        return True
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    seed()
