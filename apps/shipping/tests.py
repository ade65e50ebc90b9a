# apps/shipping/tests.py
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient
from requests import ConnectionError as RequestsConnectionError

from apps.catalog.models import Product, ProductVariant
from apps.orders.models import Order, OrderItem, OrderTracking
from apps.utils.exceptions import ShipmentCreationError
from .carrier import CarrierClient
from .models import Shipment
from .services import ShipmentService
from .tasks import create_shipment_task

User = get_user_model()


def make_paid_order(quantity=2, **kwargs):
    product = Product.objects.create(name="Whey Protein", price=Decimal("2499.50"))
    variant = ProductVariant.objects.create(
        product=product, variant_name="1kg Vanilla", sku=f"WHEY-{Product.objects.count()}", price=Decimal("2499.50")
    )
    order = Order.objects.create(
        total_amount=Decimal("2499.50") * quantity,
        payment_status=Order.PaymentStatus.COMPLETED,
        status=Order.Status.CONFIRMED,
        shipping_address={"name": "Asha", "city": "Pune", "pincode": "411001"},
        **kwargs,
    )
    OrderItem.objects.create(order=order, product=product, variant=variant, quantity=quantity, unit_price=Decimal("2499.50"))
    return order


@override_settings(CARRIER_SIMULATE=True)
class ShipmentServiceTests(TestCase):
    def test_package_estimate(self):
        small = ShipmentService.estimate_package(1)
        self.assertEqual(small["weight"], Decimal("0.5"))
        self.assertEqual(small["dimensions"], {"length": 20, "width": 15, "height": 10})

        large = ShipmentService.estimate_package(6)
        self.assertEqual(large["weight"], Decimal("3.0"))
        self.assertEqual(large["dimensions"], {"length": 30, "width": 18, "height": 12})

    def test_creates_shipment_and_tracking(self):
        order = make_paid_order(quantity=2)

        shipment, created = ShipmentService.create_shipment(order.id)

        self.assertTrue(created)
        self.assertEqual(shipment.carrier, "I Carry")
        self.assertTrue(shipment.shipment_id.startswith("IC"))
        self.assertTrue(shipment.tracking_number.startswith(f"TRK{order.id[:8]}"))
        self.assertEqual(shipment.status, Shipment.ShipmentStatus.PICKUP_SCHEDULED)
        self.assertEqual(shipment.weight, Decimal("1.00"))
        self.assertEqual(shipment.shipment_data["declaredValue"], 4999.0)
        self.assertEqual(shipment.shipment_data["codAmount"], 0)
        self.assertEqual(shipment.shipment_data["items"][0]["variant"], "1kg Vanilla")
        self.assertIsNotNone(shipment.estimated_delivery)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PROCESSING)

        event = OrderTracking.objects.get(order=order)
        self.assertEqual(event.status, "Shipment Created")
        self.assertEqual(
            event.message,
            f"Your order has been confirmed and shipment has been created. Tracking number: {shipment.tracking_number}",
        )
        self.assertEqual(event.carrier, "I Carry")

    def test_second_call_returns_existing(self):
        order = make_paid_order()
        first, _ = ShipmentService.create_shipment(order.id)
        second, created = ShipmentService.create_shipment(order.id)

        self.assertFalse(created)
        self.assertEqual(first.id, second.id)
        self.assertEqual(Shipment.objects.filter(order=order).count(), 1)
        self.assertEqual(OrderTracking.objects.filter(order=order).count(), 1)

    def test_placeholder_is_deterministic(self):
        client = CarrierClient()
        a = client.placeholder_booking("ORDABC123")
        b = client.placeholder_booking("ORDABC123")
        self.assertEqual(a.shipment_id, b.shipment_id)
        self.assertEqual(a.tracking_number, b.tracking_number)

    @override_settings(DEBUG=False, CARRIER_API_KEY="")
    def test_placeholder_outside_debug_warns(self):
        with self.assertLogs("apps.shipping.carrier", level="WARNING") as logs:
            CarrierClient().placeholder_booking("ORDABC123")
        self.assertIn("was not sent to the carrier", logs.output[0])

    def test_unpaid_order_is_rejected(self):
        order = make_paid_order()
        Order.objects.filter(id=order.id).update(payment_status=Order.PaymentStatus.PENDING, status=Order.Status.PENDING)

        with self.assertRaises(ShipmentCreationError):
            ShipmentService.create_shipment(order.id)
        self.assertFalse(Shipment.objects.filter(order=order).exists())

    def test_missing_order(self):
        with self.assertRaises(ShipmentCreationError):
            ShipmentService.create_shipment("ORDMISSING")

    def test_insert_race_returns_existing(self):
        order = make_paid_order()
        winner, _ = ShipmentService.create_shipment(order.id)

        # Simulate a racing worker that passed the existence check before the winner committed
        with mock.patch.object(Shipment.objects, "filter") as filt:
            filt.return_value.first.side_effect = [None, winner]
            with mock.patch.object(Shipment.objects, "create", side_effect=IntegrityError("duplicate")):
                shipment, created = ShipmentService.create_shipment(order.id)

        self.assertFalse(created)
        self.assertEqual(shipment.id, winner.id)


@override_settings(
    CARRIER_SIMULATE=False,
    CARRIER_API_KEY="live-key",
    CARRIER_API_SECRET="live-secret",
    CARRIER_API_URL="https://carrier.example.com",
)
class LiveCarrierTests(TestCase):
    @mock.patch("apps.shipping.carrier.requests.post")
    def test_live_booking(self, mock_post):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {
            "shipmentId": "IC-LIVE-1",
            "trackingNumber": "TRK-LIVE-1",
            "status": "pickup_scheduled",
            "estimatedDelivery": "2030-01-05T10:00:00+00:00",
        }
        order = make_paid_order()

        shipment, created = ShipmentService.create_shipment(order.id)

        self.assertTrue(created)
        self.assertEqual(shipment.tracking_number, "TRK-LIVE-1")
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://carrier.example.com/shipments")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer live-key")
        self.assertEqual(kwargs["headers"]["X-API-Secret"], "live-secret")
        self.assertEqual(kwargs["json"]["orderId"], order.id)

    @mock.patch("apps.shipping.carrier.requests.post")
    def test_unreadable_estimated_delivery_is_a_carrier_error(self, mock_post):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {"trackingNumber": "T1", "estimatedDelivery": 12345}
        order = make_paid_order()

        with self.assertRaises(ShipmentCreationError):
            ShipmentService.create_shipment(order.id)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertFalse(Shipment.objects.filter(order=order).exists())

    @mock.patch("apps.shipping.carrier.requests.post")
    def test_list_response_is_a_carrier_error(self, mock_post):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = [{"trackingNumber": "T1"}]
        order = make_paid_order()

        with self.assertRaises(ShipmentCreationError):
            ShipmentService.create_shipment(order.id)
        self.assertFalse(Shipment.objects.filter(order=order).exists())

    @mock.patch("apps.shipping.carrier.requests.post")
    def test_unparseable_estimate_string_falls_back_to_default(self, mock_post):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {"trackingNumber": "T2", "estimatedDelivery": "next week"}
        order = make_paid_order()

        shipment, _ = ShipmentService.create_shipment(order.id)

        self.assertEqual(shipment.tracking_number, "T2")
        self.assertIsNotNone(shipment.estimated_delivery)

    @mock.patch("apps.shipping.carrier.requests.post", side_effect=RequestsConnectionError("down"))
    def test_carrier_failure_keeps_order_confirmed(self, _):
        order = make_paid_order()

        with self.assertRaises(ShipmentCreationError):
            ShipmentService.create_shipment(order.id)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertFalse(Shipment.objects.filter(order=order).exists())


@override_settings(CARRIER_SIMULATE=True)
class ShipmentTaskTests(TestCase):
    def test_task_books_shipment(self):
        order = make_paid_order()
        result = create_shipment_task.delay(order.id)
        self.assertEqual(result.get(), str(Shipment.objects.get(order=order).id))

    def test_task_swallows_business_errors(self):
        result = create_shipment_task.delay("ORDMISSING")
        self.assertIsNone(result.get())


@override_settings(CARRIER_SIMULATE=True)
class ShipmentApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = reverse("shipment-create")
        self.admin = User.objects.create_user(username="ops", password="testpass123", is_staff=True)
        self.customer = User.objects.create_user(username="buyer", password="testpass123")

    def test_admin_creates_shipment(self):
        order = make_paid_order()
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(self.url, {"orderId": order.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["message"], "Shipment created successfully")
        self.assertEqual(response.data["shipment"]["order"], order.id)

    def test_customer_is_forbidden(self):
        order = make_paid_order()
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(self.url, {"orderId": order.id}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_order_returns_500_body(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url, {"orderId": "ORDMISSING"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn("not found", response.data["error"])
