import uuid
from django.db import models

from apps.utils.exceptions import ImmutableRecordError
from .order import Order

__all__ = ["OrderTracking"]


class OrderTrackingQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableRecordError("Order tracking events cannot be modified.")

    def delete(self):
        raise ImmutableRecordError("Order tracking events cannot be deleted.")


class OrderTracking(models.Model):
    """
    Append-only log of what happened to an order after payment.
    Rows are written once and never changed.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, related_name="tracking_events", on_delete=models.PROTECT)

    status = models.CharField(max_length=100)
    message = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    carrier = models.CharField(max_length=100, blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrderTrackingQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.order_id}: {self.status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Order tracking events cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError("Order tracking events cannot be deleted.")
