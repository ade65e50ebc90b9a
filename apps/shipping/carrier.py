# apps/shipping/carrier.py
import hashlib
import logging
from dataclasses import dataclass
from datetime import timedelta

import requests
from requests import RequestException
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)


class CarrierError(Exception):
    pass


@dataclass
class CarrierBooking:
    shipment_id: str
    tracking_number: str
    status: str
    estimated_delivery: object = None


class CarrierClient:
    """
    Books pickups with the carrier. Without credentials (or with
    CARRIER_SIMULATE) a deterministic placeholder booking is returned.
    """

    def __init__(self):
        self.name = settings.CARRIER_NAME
        self.api_url = settings.CARRIER_API_URL.rstrip("/")
        self.api_key = settings.CARRIER_API_KEY
        self.api_secret = settings.CARRIER_API_SECRET
        self.timeout = settings.CARRIER_TIMEOUT

    @property
    def is_live(self):
        return bool(self.api_key) and not settings.CARRIER_SIMULATE

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-API-Secret": self.api_secret or "",
        }

    def create_shipment(self, payload: dict) -> CarrierBooking:
        if not self.is_live:
            return self.placeholder_booking(payload["orderId"])

        url = f"{self.api_url}/shipments"
        try:
            resp = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except RequestException as e:
            raise CarrierError(f"Carrier request failed: {e}")

        if not resp.ok:
            raise CarrierError(f"Failed to create shipment with {self.name}: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise CarrierError(f"{self.name} returned a non-JSON response")

        try:
            tracking_number = data.get("trackingNumber")
            if not tracking_number:
                raise CarrierError(f"{self.name} response has no tracking number")
            estimated = data.get("estimatedDelivery")
            booking = CarrierBooking(
                shipment_id=str(data.get("shipmentId") or ""),
                tracking_number=str(tracking_number),
                status=str(data.get("status") or "pickup_scheduled"),
                estimated_delivery=(parse_datetime(estimated) if estimated else None) or self.default_estimate(),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise CarrierError(f"{self.name} returned an unreadable response: {e}")
        return booking

    @staticmethod
    def default_estimate():
        return timezone.now() + timedelta(days=settings.CARRIER_DEFAULT_TRANSIT_DAYS)

    def placeholder_booking(self, order_id: str) -> CarrierBooking:
        # Same order id -> same identifiers, so a retried booking is recognisable
        digest = hashlib.sha1(order_id.encode("utf-8")).hexdigest()[:10].upper()
        if settings.DEBUG:
            logger.info(f"Placeholder {self.name} booking for order {order_id}", extra={"order_id": order_id})
        else:
            logger.warning(
                f"No live {self.name} credentials, placeholder booking for order {order_id} was not sent to the carrier",
                extra={"order_id": order_id},
            )
        return CarrierBooking(
            shipment_id=f"IC{digest}",
            tracking_number=f"TRK{order_id[:8]}{digest}",
            status="pickup_scheduled",
            estimated_delivery=self.default_estimate(),
        )
