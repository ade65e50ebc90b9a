import logging
from celery import shared_task

from apps.utils.exceptions import ShipmentCreationError
from .services import ShipmentService

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def create_shipment_task(self, order_id: str):
    """
    Books the shipment for a freshly paid order. Not retried automatically;
    operators can re-run it through the shipments endpoint.
    """
    try:
        shipment, created = ShipmentService.create_shipment(order_id)
    except ShipmentCreationError as e:
        logger.error(f"Shipment task failed for order {order_id}: {e.message}", extra={"order_id": order_id})
        return None

    if created:
        logger.info(f"Shipment {shipment.tracking_number} booked for order {order_id}", extra={"order_id": order_id})
    return str(shipment.id)
