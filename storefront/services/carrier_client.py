# storefront/services/carrier_client.py
from dataclasses import dataclass
from typing import List

import requests
from requests import RequestException

from storefront.domain.errors import ExternalServiceError
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import CARRIER_API_KEY, CARRIER_API_URL, CARRIER_TIMEOUT_SECONDS

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackingEvent:
    status: str
    description: str | None = None
    occurred_at: str | None = None


@dataclass(frozen=True)
class TrackingInfo:
    shipment_number: str
    status: str
    events: List[TrackingEvent]


@dataclass(frozen=True)
class CreatedShipment:
    shipment_number: str
    label_url: str | None


class CarrierClient:
    """HTTP client for the parcel carrier (shipments and tracking)."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or CARRIER_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else CARRIER_API_KEY
        self.timeout = timeout or CARRIER_TIMEOUT_SECONDS

    def get_tracking_info(self, shipment_number: str) -> TrackingInfo:
        try:
            data = self._get_tracking(shipment_number)
        except RequestException as e:
            logger.error(f"Tracking lookup for {shipment_number} failed: {e}")
            raise ExternalServiceError("carrier", f"tracking unavailable for {shipment_number}") from e

        events = [
            TrackingEvent(
                status=e.get("status", ""),
                description=e.get("description"),
                occurred_at=e.get("date"),
            )
            for e in data.get("events", [])
        ]
        return TrackingInfo(shipment_number=shipment_number, status=data.get("status", ""), events=events)

    @http_retry()
    def _get_tracking(self, shipment_number: str) -> dict:
        url = f"{self.base_url}/shipments/{shipment_number}/tracking"
        logger.info(f"CarrierClient GET {url}")

        resp = requests.get(url, headers={"Authorization": f"Bearer {self.api_key}"}, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def create_shipment(self, shipper: dict, recipient: dict, weight_grams: int, reference: str,
                        pickup_point_id: str | None = None) -> CreatedShipment:
        # not retried: a repeated POST could register two parcels
        url = f"{self.base_url}/shipments"
        logger.info(f"CarrierClient POST {url} ref={reference} weight={weight_grams}g")

        payload = {
            "reference": reference,
            "shipper": shipper,
            "recipient": recipient,
            "weight_grams": weight_grams,
        }
        if pickup_point_id:
            payload["pickup_point_id"] = pickup_point_id

        try:
            resp = requests.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except RequestException as e:
            logger.error(f"Shipment creation for {reference} failed: {e}")
            raise ExternalServiceError("carrier", f"could not create shipment for {reference}") from e

        return CreatedShipment(shipment_number=data["shipment_number"], label_url=data.get("label_url"))
