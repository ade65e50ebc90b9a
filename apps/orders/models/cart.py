import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

__all__ = ["CartItem"]


class CartItem(models.Model):
    """
    One line of a customer's cart. A (user, product, variant) triple
    appears at most once; adding again bumps the quantity.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    product = models.ForeignKey(
        "catalog.Product",
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant",
        null=True,
        blank=True,
        related_name="cart_items",
        on_delete=models.CASCADE,
    )

    quantity = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        # NULL variants are distinct in SQL, so the no-variant case needs its own constraint
        constraints = [
            models.UniqueConstraint(
                fields=["user", "product", "variant"],
                condition=Q(variant__isnull=False),
                name="uniq_cart_item_user_product_variant",
            ),
            models.UniqueConstraint(
                fields=["user", "product"],
                condition=Q(variant__isnull=True),
                name="uniq_cart_item_user_product_no_variant",
            ),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.product_id}/{self.variant_id} x {self.quantity}"
