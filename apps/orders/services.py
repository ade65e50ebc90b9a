import logging

from django.db import transaction, IntegrityError, DatabaseError
from django.db.models import F, Prefetch
from django.core.exceptions import ValidationError as DjangoValidationError

from apps.utils.exceptions import BusinessLogicException, OrderUpdateError, ResourceNotFoundError
from apps.catalog.models import Product, ProductVariant
from .models import Order, OrderTracking, CartItem

logger = logging.getLogger(__name__)


class CartService:

    @staticmethod
    def add_item(user, product_id, variant_id=None, quantity: int = 1):
        """
        Adds `quantity` of a product (variant) to the user's cart.
        Existing lines are bumped with a single conditional UPDATE; a new
        line is inserted only when nothing matched, and the unique
        constraint settles a concurrent insert.
        """
        if quantity < 1:
            raise BusinessLogicException("Quantity must be at least 1.", code="invalid_quantity")

        try:
            product = Product.objects.get(id=product_id, is_active=True)
        except (Product.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Product not found.", code="product_not_found")

        variant = None
        if variant_id:
            try:
                variant = ProductVariant.objects.get(id=variant_id, product=product, is_active=True)
            except (ProductVariant.DoesNotExist, ValueError, DjangoValidationError):
                raise ResourceNotFoundError("Variant not found.", code="variant_not_found")

        lookup = {"user": user, "product": product, "variant": variant}

        updated = CartItem.objects.filter(**lookup).update(quantity=F("quantity") + quantity)
        if not updated:
            try:
                with transaction.atomic():
                    return CartItem.objects.create(quantity=quantity, **lookup)
            except IntegrityError:
                # Lost the insert race, the other request created the row
                CartItem.objects.filter(**lookup).update(quantity=F("quantity") + quantity)

        return CartItem.objects.get(**lookup)

    @staticmethod
    def clear(user) -> int:
        if user is None:
            return 0
        deleted, _ = CartItem.objects.filter(user=user).delete()
        logger.info(f"Cleared {deleted} cart items for user {user.pk}")
        return deleted


class OrderService:

    @staticmethod
    def _lock_order(order_id: str):
        try:
            return Order.objects.select_for_update().get(id=order_id)
        except Order.DoesNotExist:
            logger.critical(f"Order {order_id} missing while applying payment outcome", extra={"order_id": order_id})
            raise OrderUpdateError(f"Order {order_id} not found.")

    @staticmethod
    def mark_payment_completed(order_id: str):
        """
        Transition: payment_status -> completed, status -> confirmed.
        Must run inside the caller's transaction.
        """
        order = OrderService._lock_order(order_id)

        if order.is_paid:
            logger.warning(f"Order {order_id} already paid. Ignoring.", extra={"order_id": order_id})
            return order

        order.payment_status = Order.PaymentStatus.COMPLETED
        order.status = Order.Status.CONFIRMED
        OrderService._save_payment_state(order)
        logger.info(f"Order {order_id} confirmed", extra={"order_id": order_id})
        return order

    @staticmethod
    def mark_payment_failed(order_id: str):
        """
        Transition: payment_status -> failed, status -> payment_failed.
        An order already paid through another attempt is left alone.
        """
        order = OrderService._lock_order(order_id)

        if order.is_paid:
            logger.warning(
                f"Failed attempt on already paid order {order_id}. Keeping completed state.",
                extra={"order_id": order_id},
            )
            return order

        order.payment_status = Order.PaymentStatus.FAILED
        order.status = Order.Status.PAYMENT_FAILED
        OrderService._save_payment_state(order)
        logger.info(f"Order {order_id} marked payment_failed", extra={"order_id": order_id})
        return order

    @staticmethod
    def _save_payment_state(order):
        try:
            order.save(update_fields=["payment_status", "status", "updated_at"])
        except DatabaseError as e:
            logger.critical(f"Failed to update order {order.id}: {e}", extra={"order_id": order.id})
            raise OrderUpdateError(f"Failed to update order {order.id}.")

    @staticmethod
    def add_tracking_event(order, status: str, message: str = "", tracking_number: str = "",
                           carrier: str = "", estimated_delivery=None):
        return OrderTracking.objects.create(
            order=order,
            status=status,
            message=message,
            tracking_number=tracking_number or "",
            carrier=carrier or "",
            estimated_delivery=estimated_delivery,
        )

    @staticmethod
    def get_tracking(order_id: str):
        """
        Public lookup: order with items, tracking events (oldest first)
        and the shipment, if any.
        """
        try:
            order = (
                Order.objects
                .select_related("user")
                .prefetch_related(
                    "items__product",
                    "items__variant",
                    Prefetch("tracking_events", queryset=OrderTracking.objects.order_by("created_at")),
                )
                .get(id=order_id)
            )
        except Order.DoesNotExist:
            raise ResourceNotFoundError("Order not found.", code="order_not_found")
        return order
