# storefront/api/routers/shipping.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import ShippingMethodOut
from storefront.services.shipping_service import ShippingService, describe_method

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.get("/methods", response_model=List[ShippingMethodOut])
def shipping_methods(
    country: str = Query(..., min_length=2, max_length=2),
    db: Session = Depends(get_db),
):
    svc = ShippingService(db)
    return [describe_method(m) for m in svc.methods_for(country)]
