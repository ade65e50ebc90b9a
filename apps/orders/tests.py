# apps/orders/tests.py
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from apps.catalog.models import Product, ProductVariant
from apps.orders.models import Order, OrderItem, OrderTracking, CartItem
from apps.orders.services import OrderService, CartService
from apps.utils.exceptions import ImmutableRecordError, OrderUpdateError, ResourceNotFoundError


User = get_user_model()


class OrderPaymentTransitionTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(total_amount=Decimal("4999.00"))

    def test_generated_order_id(self):
        self.assertTrue(self.order.id.startswith("ORD"))

    def test_mark_payment_completed(self):
        OrderService.mark_payment_completed(self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)

    def test_failure_never_downgrades_paid_order(self):
        OrderService.mark_payment_completed(self.order.id)
        OrderService.mark_payment_failed(self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)

    def test_mark_payment_failed(self):
        OrderService.mark_payment_failed(self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.FAILED)
        self.assertEqual(self.order.status, Order.Status.PAYMENT_FAILED)

    def test_missing_order_raises(self):
        with self.assertRaises(OrderUpdateError):
            OrderService.mark_payment_completed("ORD-DOES-NOT-EXIST")


class OrderTrackingImmutabilityTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(total_amount=Decimal("100.00"))
        self.event = OrderService.add_tracking_event(self.order, "Shipment Created", "Created")

    def test_existing_event_cannot_be_saved(self):
        self.event.message = "Changed"
        with self.assertRaises(ImmutableRecordError):
            self.event.save()

    def test_event_cannot_be_deleted(self):
        with self.assertRaises(ImmutableRecordError):
            self.event.delete()
        with self.assertRaises(ImmutableRecordError):
            OrderTracking.objects.filter(order=self.order).delete()

    def test_queryset_update_is_blocked(self):
        with self.assertRaises(ImmutableRecordError):
            OrderTracking.objects.filter(order=self.order).update(message="x")
        self.assertEqual(OrderTracking.objects.get(id=self.event.id).message, "Created")


class CartServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="buyer", password="testpass123")
        self.product = Product.objects.create(name="Whey Protein", price=Decimal("2999.00"))
        self.variant = ProductVariant.objects.create(
            product=self.product, variant_name="1kg Chocolate", sku="WHEY-1KG-CHOC", price=Decimal("2999.00")
        )

    def test_adding_twice_increments_single_row(self):
        CartService.add_item(self.user, self.product.id, self.variant.id, 1)
        item = CartService.add_item(self.user, self.product.id, self.variant.id, 2)

        self.assertEqual(item.quantity, 3)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)

    def test_no_variant_line_is_unique_too(self):
        CartService.add_item(self.user, self.product.id, None, 1)
        CartService.add_item(self.user, self.product.id, None, 1)
        self.assertEqual(CartItem.objects.get(user=self.user, variant__isnull=True).quantity, 2)

    def test_variant_must_belong_to_product(self):
        other = Product.objects.create(name="Creatine", price=Decimal("999.00"))
        with self.assertRaises(ResourceNotFoundError):
            CartService.add_item(self.user, other.id, self.variant.id, 1)

    def test_clear(self):
        CartService.add_item(self.user, self.product.id, self.variant.id, 1)
        self.assertEqual(CartService.clear(self.user), 1)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())


class CartItemApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="buyer", password="testpass123")
        self.product = Product.objects.create(name="Whey Protein", price=Decimal("2999.00"))
        self.url = reverse("cart-items")

    def test_requires_authentication(self):
        response = self.client.post(self.url, {"product_id": str(self.product.id)}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_item(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(self.url, {"product_id": str(self.product.id), "quantity": 2}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["quantity"], 2)


class OrderTrackingApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.product = Product.objects.create(name="Whey Protein", price=Decimal("2999.00"))
        self.order = Order.objects.create(
            total_amount=Decimal("2999.00"),
            guest_name="Asha",
            guest_email="asha@example.com",
        )
        OrderItem.objects.create(order=self.order, product=self.product, quantity=1, unit_price=Decimal("2999.00"))
        base = timezone.now()
        # Later event inserted first to make sure the lookup sorts oldest first
        with mock.patch("django.utils.timezone.now", return_value=base + timedelta(hours=1)):
            OrderService.add_tracking_event(self.order, "In Transit", "Second")
        with mock.patch("django.utils.timezone.now", return_value=base):
            OrderService.add_tracking_event(self.order, "Shipment Created", "First")

    def test_public_lookup(self):
        response = self.client.get(reverse("order-tracking", args=[self.order.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["order"]["id"], self.order.id)
        self.assertEqual(response.data["order"]["items"][0]["product_name"], "Whey Protein")
        self.assertEqual([e["message"] for e in response.data["tracking"]], ["First", "Second"])
        self.assertIsNone(response.data["shipment"])

    def test_unknown_order(self):
        response = self.client.get(reverse("order-tracking", args=["ORDNOPE"]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "order_not_found")
