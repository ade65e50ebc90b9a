from django.db import models
from django.conf import settings
from apps.orders.models import Order
from apps.utils.models import TimestampedModel


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class PaymentMethod(models.TextChoices):
    PAYU = "payu", "PayU"
    COD = "cod", "Cash on Delivery"


class Payment(TimestampedModel):
    """
    One attempt to pay for an order. An order may have several attempts;
    status only ever moves pending -> completed or pending -> failed.
    """
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="payments")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )

    # Gateway transaction id (txnid), TXN_<orderId>_<epoch ms>
    payment_id = models.CharField(max_length=100, unique=True, db_index=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.PAYU)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    # Audit fields
    payment_data = models.JSONField(default=dict, blank=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["payment_id", "status"], name="payment_txn_status_idx"),
        ]

    def __str__(self):
        return f"{self.payment_id} | {self.amount} | {self.status}"

    @property
    def is_terminal(self):
        return self.status != PaymentStatus.PENDING
