# storefront/repos/shipping_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.shipping import ShippingMethodModel, ShippingZoneModel


class ShippingRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_active_zones(self) -> List[ShippingZoneModel]:
        return list(
            self.db.execute(
                select(ShippingZoneModel)
                .where(ShippingZoneModel.is_active.is_(True))
                .order_by(ShippingZoneModel.display_order, ShippingZoneModel.name)
            ).scalars()
        )

    def get_active_methods(self, zone_id: int) -> List[ShippingMethodModel]:
        return list(
            self.db.execute(
                select(ShippingMethodModel)
                .where(
                    ShippingMethodModel.zone_id == zone_id,
                    ShippingMethodModel.is_active.is_(True),
                )
                .order_by(ShippingMethodModel.display_order, ShippingMethodModel.name)
            ).scalars()
        )

    def get_method(self, method_id: int) -> ShippingMethodModel | None:
        return self.db.get(ShippingMethodModel, method_id)
