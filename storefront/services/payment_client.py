# storefront/services/payment_client.py
from dataclasses import dataclass
from typing import List

import requests
from requests import RequestException

from storefront.domain.errors import ExternalServiceError
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import PAYMENT_API_KEY, PAYMENT_API_URL, PAYMENT_TIMEOUT_SECONDS

logger = get_logger(__name__)

PAID = "paid"


@dataclass(frozen=True)
class PaymentSession:
    id: str
    url: str


@dataclass(frozen=True)
class PaymentStatus:
    session_id: str
    payment_status: str
    customer_email: str | None = None
    payment_reference: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAID


class PaymentClient:
    """HTTP client for the hosted payment processor."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or PAYMENT_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else PAYMENT_API_KEY
        self.timeout = timeout or PAYMENT_TIMEOUT_SECONDS

    def _headers(self, **extra) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        headers.update(extra)
        return headers

    def create_session(
        self,
        line_items: List[dict],
        shipping: dict,
        currency: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: dict,
        idempotency_key: str,
    ) -> PaymentSession:
        """Open a hosted payment page for the given lines.

        ``shipping`` holds the method name, the amount and the destination
        address; the processor adds it to the charged total.

        ``idempotency_key`` makes transport retries safe: the processor returns
        the same session for a repeated key.
        """
        payload = {
            "mode": "payment",
            "currency": currency.lower(),
            "customer_email": customer_email,
            "line_items": line_items,
            "shipping": shipping,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        try:
            data = self._post_session(payload, idempotency_key)
        except RequestException as e:
            logger.error(f"Payment session creation failed: {e}")
            raise ExternalServiceError("payment", "could not create checkout session") from e

        return PaymentSession(id=data["id"], url=data["url"])

    @http_retry()
    def _post_session(self, payload: dict, idempotency_key: str) -> dict:
        url = f"{self.base_url}/checkout/sessions"
        logger.info(f"PaymentClient POST {url}")

        resp = requests.post(
            url,
            json=payload,
            headers=self._headers(**{"Idempotency-Key": idempotency_key}),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def get_session(self, session_id: str) -> PaymentStatus:
        # single attempt: callers (polling, reconcile) already retry at their level
        url = f"{self.base_url}/checkout/sessions/{session_id}"
        logger.info(f"PaymentClient GET {url}")

        try:
            resp = requests.get(url, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except RequestException as e:
            logger.error(f"Payment status lookup for {session_id} failed: {e}")
            raise ExternalServiceError("payment", "could not retrieve checkout session") from e

        return PaymentStatus(
            session_id=data.get("id", session_id),
            payment_status=data.get("payment_status", "unknown"),
            customer_email=data.get("customer_email"),
            payment_reference=data.get("payment_intent"),
        )
