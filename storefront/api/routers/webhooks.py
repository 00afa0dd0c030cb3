# storefront/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from storefront.api.errors import to_http
from storefront.api.routers.checkout import get_materializer
from storefront.domain.errors import CheckoutError
from storefront.services.order_service import OrderMaterializer, handle_payment_callback

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payments")
async def payment_callback(
    request: Request,
    x_signature: str | None = Header(None, alias="X-Signature"),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    # signature covers the raw bytes, read them before any JSON parsing
    payload = await request.body()
    try:
        return await run_in_threadpool(handle_payment_callback, materializer, payload, x_signature)
    except CheckoutError as e:
        raise to_http(e)
