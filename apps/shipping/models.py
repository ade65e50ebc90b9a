from django.db import models
from apps.utils.models import TimestampedModel


class Shipment(TimestampedModel):
    """
    Carrier shipment for a paid order. One per order.
    """
    class ShipmentStatus(models.TextChoices):
        PICKUP_SCHEDULED = "pickup_scheduled", "Pickup Scheduled"
        PICKED_UP = "picked_up", "Picked Up"
        IN_TRANSIT = "in_transit", "In Transit"
        OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"
        FAILED = "failed", "Failed"

    order = models.OneToOneField("orders.Order", on_delete=models.PROTECT, related_name="shipment")

    carrier = models.CharField(max_length=100)
    shipment_id = models.CharField(max_length=100, blank=True, db_index=True)
    tracking_number = models.CharField(max_length=100, blank=True, db_index=True)
    status = models.CharField(
        max_length=32,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PICKUP_SCHEDULED,
        db_index=True,
    )

    # Address snapshots sent to the carrier
    pickup_address = models.JSONField(default=dict)
    delivery_address = models.JSONField(default=dict)

    weight = models.DecimalField(max_digits=8, decimal_places=2, help_text="kg")
    dimensions = models.JSONField(default=dict, help_text="length/width/height in cm")

    estimated_delivery = models.DateTimeField(null=True, blank=True)
    actual_delivery = models.DateTimeField(null=True, blank=True)

    shipment_data = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"Shipment {self.tracking_number or self.id} | {self.status}"
