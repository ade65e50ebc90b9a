from django.db import models
from django.conf import settings

from apps.utils.models import TimestampedModel
from apps.utils.utils import generate_order_id

__all__ = ["Order"]


class Order(TimestampedModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed (Paid)"
        PAYMENT_FAILED = "payment_failed", "Payment Failed"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    id = models.CharField(primary_key=True, max_length=50, default=generate_order_id, editable=False)
    # Guest checkout leaves user empty and fills the guest_* contact fields
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    guest_name = models.CharField(max_length=255, blank=True)
    guest_email = models.EmailField(blank=True)
    guest_phone = models.CharField(max_length=20, blank=True)

    # Snapshot of the address at checkout
    shipping_address = models.JSONField(default=dict, blank=True)

    total_amount = models.DecimalField(max_digits=10, decimal_places=2)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.id} [{self.status}]"

    @property
    def is_paid(self):
        return self.payment_status == self.PaymentStatus.COMPLETED

    @property
    def customer_name(self):
        if self.user_id:
            return self.user.get_full_name() or self.user.get_username()
        return self.guest_name
