import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction, IntegrityError, DatabaseError

from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import ShipmentCreationError
from .carrier import CarrierClient, CarrierError
from .models import Shipment

logger = logging.getLogger(__name__)

WEIGHT_PER_ITEM_KG = Decimal("0.5")


class ShipmentService:

    @staticmethod
    def estimate_package(item_count: int) -> dict:
        """
        Rough parcel estimate from the number of units in the order.
        """
        return {
            "weight": WEIGHT_PER_ITEM_KG * item_count,
            "dimensions": {
                "length": max(20, item_count * 5),
                "width": max(15, item_count * 3),
                "height": max(10, item_count * 2),
            },
        }

    @staticmethod
    def build_carrier_payload(order, items, package) -> dict:
        return {
            "orderId": order.id,
            "pickupAddress": settings.STORE_PICKUP_ADDRESS,
            "deliveryAddress": order.shipping_address,
            "weight": float(package["weight"]),
            "dimensions": package["dimensions"],
            "items": [
                {
                    "name": item.product.name,
                    "variant": item.variant.variant_name if item.variant_id else None,
                    "quantity": item.quantity,
                    "value": float(item.unit_price),
                }
                for item in items
            ],
            "declaredValue": float(order.total_amount),
            "codAmount": 0,
            "serviceType": "standard",
        }

    @staticmethod
    def create_shipment(order_id: str):
        """
        Books the carrier pickup for a paid order and records it.
        Returns (shipment, created); an existing shipment is returned as is.
        """
        try:
            order = (
                Order.objects
                .prefetch_related("items__product", "items__variant")
                .get(id=order_id)
            )
        except Order.DoesNotExist:
            raise ShipmentCreationError(f"Order {order_id} not found")

        existing = Shipment.objects.filter(order_id=order.id).first()
        if existing:
            logger.info(f"Shipment already exists for order {order_id}", extra={"order_id": order_id})
            return existing, False

        if not order.is_paid:
            raise ShipmentCreationError(f"Order {order_id} is not paid (payment_status={order.payment_status})")

        items = list(order.items.all())
        package = ShipmentService.estimate_package(sum(item.quantity for item in items))
        payload = ShipmentService.build_carrier_payload(order, items, package)

        carrier = CarrierClient()
        try:
            booking = carrier.create_shipment(payload)
        except CarrierError as e:
            logger.error(f"Carrier booking failed for order {order_id}: {e}", extra={"order_id": order_id})
            raise ShipmentCreationError(str(e))

        try:
            with transaction.atomic():
                locked = Order.objects.select_for_update().get(id=order.id)
                shipment = Shipment.objects.create(
                    order=locked,
                    carrier=carrier.name,
                    shipment_id=booking.shipment_id,
                    tracking_number=booking.tracking_number,
                    status=booking.status,
                    pickup_address=settings.STORE_PICKUP_ADDRESS,
                    delivery_address=order.shipping_address,
                    weight=package["weight"],
                    dimensions=package["dimensions"],
                    estimated_delivery=booking.estimated_delivery,
                    shipment_data=payload,
                )

                locked.status = Order.Status.PROCESSING
                locked.save(update_fields=["status", "updated_at"])

                OrderService.add_tracking_event(
                    locked,
                    status="Shipment Created",
                    message=(
                        "Your order has been confirmed and shipment has been created. "
                        f"Tracking number: {booking.tracking_number}"
                    ),
                    tracking_number=booking.tracking_number,
                    carrier=carrier.name,
                    estimated_delivery=booking.estimated_delivery,
                )
        except IntegrityError:
            # Another worker created it between our check and insert
            existing = Shipment.objects.filter(order_id=order.id).first()
            if existing:
                return existing, False
            raise ShipmentCreationError(f"Failed to store shipment for order {order_id}")
        except DatabaseError as e:
            logger.error(f"Failed to store shipment for order {order_id}: {e}", extra={"order_id": order_id})
            raise ShipmentCreationError(f"Failed to store shipment for order {order_id}")

        logger.info(
            f"Shipment {shipment.tracking_number} created for order {order_id}",
            extra={"order_id": order_id, "shipment_id": shipment.shipment_id},
        )
        return shipment, True
