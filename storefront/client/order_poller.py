# storefront/client/order_poller.py
import time
from typing import Callable

import requests
from requests import RequestException

from storefront.domain.errors import ExternalServiceError, PaymentNotConfirmedError
from storefront.utils.logging import get_logger
from storefront.utils.settings import ORDER_POLL_BUDGET_SECONDS, ORDER_POLL_INTERVAL_SECONDS

logger = get_logger(__name__)


class OrderPoller:
    """
    Waits for the order of a paid checkout session after the redirect back
    from the payment page.

    Polls at a fixed interval until the budget runs out, then asks the server
    to reconcile the session once. ``sleep`` and ``clock`` are injectable for
    tests.
    """

    def __init__(
        self,
        base_url: str,
        interval: float | None = None,
        budget: float | None = None,
        timeout: float = 5,
        http: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.interval = interval if interval is not None else ORDER_POLL_INTERVAL_SECONDS
        self.budget = budget if budget is not None else ORDER_POLL_BUDGET_SECONDS
        self.timeout = timeout
        self.http = http or requests.Session()
        self.sleep = sleep
        self.clock = clock

    def _poll_once(self, session_id: str) -> dict | None:
        url = f"{self.base_url}/checkout/sessions/{session_id}/order"
        try:
            # existence check only, the processor is asked once, by the reconcile call
            resp = self.http.get(url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except RequestException as e:
            # keep polling, the reconcile call at the end is the fallback
            logger.warning(f"Poll for session {session_id} failed: {e}")
            return None

        if data.get("status") == "ready":
            return data["order"]
        return None

    def _reconcile(self, session_id: str) -> dict:
        url = f"{self.base_url}/checkout/sessions/{session_id}/reconcile"
        logger.info(f"Poll budget exhausted for session {session_id}, reconciling")

        try:
            resp = self.http.post(url, timeout=self.timeout)
        except RequestException as e:
            raise ExternalServiceError("storefront", f"reconcile request failed: {e}") from e

        if resp.status_code == 402:
            detail = resp.json().get("detail", {})
            status = None
            if isinstance(detail, dict):
                status = detail.get("payment_status")
            raise PaymentNotConfirmedError(session_id, status)

        try:
            resp.raise_for_status()
        except RequestException as e:
            raise ExternalServiceError("storefront", f"reconcile failed: {e}") from e
        return resp.json()

    def wait_for_order(self, session_id: str) -> dict:
        deadline = self.clock() + self.budget

        while True:
            order = self._poll_once(session_id)
            if order:
                logger.info(f"Order {order.get('order_number')} ready for session {session_id}")
                return order
            if self.clock() + self.interval > deadline:
                break
            self.sleep(self.interval)

        return self._reconcile(session_id)
