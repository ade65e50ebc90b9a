import hashlib
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from requests import Timeout

from apps.catalog.models import Product
from apps.orders.models import Order, OrderItem, OrderTracking, CartItem
from apps.shipping.models import Shipment
from apps.utils.exceptions import OrderUpdateError, ShipmentCreationError
from .gateway import PayUClient
from .models import Payment, PaymentStatus, PaymentMethod
from .services import PaymentService

User = get_user_model()

ORIGIN = "https://shop.example.com"


class PayUHashTests(TestCase):
    def setUp(self):
        self.gateway = PayUClient(key="M", salt="S", base_url="https://test.payu.in")

    def test_request_hash_field_order(self):
        raw = "M|T|100.00|P|F|E" + "|" * 11 + "S"
        expected = hashlib.sha512(raw.encode("utf-8")).hexdigest()

        self.assertEqual(self.gateway.request_hash("T", "100.00", "P", "F", "E"), expected)
        self.assertEqual(raw, "M|T|100.00|P|F|E|||||||||||S")

    def test_request_hash_is_deterministic(self):
        first = self.gateway.request_hash("T", "100.00", "P", "F", "E")
        second = self.gateway.request_hash("T", "100.00", "P", "F", "E")
        self.assertEqual(first, second)
        self.assertNotEqual(first, self.gateway.request_hash("T", "100.01", "P", "F", "E"))

    def test_response_hash_field_order(self):
        payload = {
            "status": "success", "email": "E", "firstname": "F",
            "productinfo": "P", "amount": "100.00", "txnid": "T",
        }
        raw = "S|success" + "|" * 11 + "E|F|P|100.00|T|M"
        expected = hashlib.sha512(raw.encode("utf-8")).hexdigest()

        self.assertEqual(self.gateway.response_hash(payload), expected)
        self.assertTrue(self.gateway.verify_response({**payload, "hash": expected}))
        self.assertFalse(self.gateway.verify_response({**payload, "hash": "0" * 128}))

    @mock.patch("apps.payments.gateway.requests.post")
    def test_create_payment_page_follows_location(self, mock_post):
        mock_post.return_value.is_redirect = True
        mock_post.return_value.status_code = 302
        mock_post.return_value.headers = {"Location": "/public/#/pay/abc"}

        url = self.gateway.create_payment_page({"txnid": "T"})

        self.assertEqual(url, "https://test.payu.in/public/#/pay/abc")
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://test.payu.in/_payment")
        self.assertFalse(kwargs["allow_redirects"])


class PaymentTestMixin:
    def make_order(self, user=None, amount="4999.00"):
        product = Product.objects.create(name="Mass Gainer", price=Decimal(amount))
        order = Order.objects.create(
            user=user,
            total_amount=Decimal(amount),
            shipping_address={"name": "Asha", "city": "Pune", "pincode": "411001"},
        )
        OrderItem.objects.create(order=order, product=product, quantity=1, unit_price=Decimal(amount))
        return order

    def make_pending_payment(self, order, txnid=None):
        return Payment.objects.create(
            order=order,
            user=order.user,
            payment_id=txnid or f"TXN_{order.id}_1700000000000",
            payment_method=PaymentMethod.PAYU,
            amount=order.total_amount,
            status=PaymentStatus.PENDING,
        )


class PaymentInitiateTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = reverse("payment-initiate")
        self.user = User.objects.create_user(username="buyer", password="testpass123")
        self.order = self.make_order(user=self.user)
        self.body = {
            "orderId": self.order.id,
            "amount": 4999,
            "productInfo": "Mass Gainer",
            "firstName": "Asha",
            "email": "a@b.com",
            "phone": "9876543210",
        }

    @mock.patch("apps.payments.gateway.requests.post")
    def test_initiate_creates_pending_payment(self, mock_post):
        mock_post.return_value.is_redirect = True
        mock_post.return_value.status_code = 302
        mock_post.return_value.headers = {"Location": "https://secure.payu.in/hosted/xyz"}
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, self.body, format="json", HTTP_ORIGIN=ORIGIN)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        txnid = response.data["transactionId"]
        self.assertTrue(txnid.startswith(f"TXN_{self.order.id}_"))
        self.assertEqual(response.data["paymentUrl"], "https://secure.payu.in/hosted/xyz")

        payment = Payment.objects.get(payment_id=txnid)
        self.assertEqual(payment.status, PaymentStatus.PENDING)
        self.assertEqual(payment.payment_method, PaymentMethod.PAYU)
        self.assertEqual(payment.amount, Decimal("4999.00"))
        self.assertEqual(payment.payment_data["amount"], "4999.00")
        self.assertEqual(payment.payment_data["surl"], f"{ORIGIN}/api/v1/payments/callback/")
        self.assertEqual(payment.payment_data["furl"], payment.payment_data["surl"])

        expected_hash = PayUClient().request_hash(txnid, "4999.00", "Mass Gainer", "Asha", "a@b.com")
        self.assertEqual(payment.payment_data["hash"], expected_hash)

        sent = mock_post.call_args.kwargs["data"]
        self.assertEqual(sent["hash"], expected_hash)
        self.assertEqual(sent["amount"], "4999.00")

    @override_settings(PAYU_SIMULATE=True)
    def test_simulated_gateway_points_to_callback(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, self.body, format="json", HTTP_ORIGIN=ORIGIN)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        txnid = response.data["transactionId"]
        self.assertEqual(
            response.data["paymentUrl"],
            f"{ORIGIN}/api/v1/payments/callback/?status=success&txnid={txnid}&amount=4999.00",
        )

    @override_settings(FRONTEND_URL="https://fallback.example.com")
    @mock.patch("apps.payments.gateway.requests.post")
    def test_origin_falls_back_to_frontend_url(self, mock_post):
        mock_post.return_value.is_redirect = True
        mock_post.return_value.headers = {"Location": "https://secure.payu.in/hosted/xyz"}
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, self.body, format="json")

        payment = Payment.objects.get(payment_id=response.data["transactionId"])
        self.assertEqual(payment.payment_data["surl"], "https://fallback.example.com/api/v1/payments/callback/")

    def test_requires_authentication(self):
        response = self.client.post(self.url, self.body, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "Unauthorized")
        self.assertFalse(Payment.objects.exists())

    def test_invalid_body(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(self.url, {"orderId": self.order.id}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_pay_for_someone_elses_order(self):
        other = User.objects.create_user(username="other", password="testpass123")
        self.client.force_authenticate(user=other)

        response = self.client.post(self.url, self.body, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertFalse(Payment.objects.exists())

    @override_settings(PAYU_MERCHANT_KEY="", PAYU_SALT="")
    def test_missing_credentials(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(self.url, self.body, format="json")
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["code"], "payment_initiation_failed")

    def test_amount_must_match_order_total(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, {**self.body, "amount": 1}, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["code"], "payment_initiation_failed")
        self.assertIn("does not match order total 4999.00", response.data["error"])
        self.assertFalse(Payment.objects.exists())

    @mock.patch("apps.payments.gateway.requests.post", side_effect=Timeout("slow"))
    def test_gateway_failure_leaves_pending_payment(self, _):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, self.body, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        payment = Payment.objects.get(order=self.order)
        self.assertEqual(payment.status, PaymentStatus.PENDING)


@override_settings(CARRIER_SIMULATE=True, SHIPMENT_DISPATCH_ASYNC=False)
class PaymentCallbackTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = reverse("payment-callback")
        self.user = User.objects.create_user(username="buyer", password="testpass123")
        self.order = self.make_order(user=self.user)
        self.payment = self.make_pending_payment(self.order)
        self.txnid = self.payment.payment_id

    def callback(self, **fields):
        return self.client.post(self.url, fields, HTTP_ORIGIN=ORIGIN)

    def test_success_confirms_order_and_creates_shipment(self):
        response = self.callback(status="success", txnid=self.txnid, amount="4999.00", mihpayid="403993715")

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-success?txnid={self.txnid}&status=success&orderId={self.order.id}&method=online",
        )

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.payment.gateway_response["mihpayid"], "403993715")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        # Shipment booking moves a confirmed order on to processing
        self.assertEqual(self.order.status, Order.Status.PROCESSING)

        self.assertEqual(Shipment.objects.filter(order=self.order).count(), 1)
        event = OrderTracking.objects.get(order=self.order)
        self.assertEqual(event.status, "Shipment Created")

    @override_settings(SHIPMENT_DISPATCH_ASYNC=True)
    def test_success_with_async_dispatch(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            self.callback(status="success", txnid=self.txnid)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertFalse(Shipment.objects.exists())

        for cb in callbacks:
            cb()

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PROCESSING)
        self.assertEqual(Shipment.objects.filter(order=self.order).count(), 1)

    def test_success_clears_cart(self):
        CartItem.objects.create(user=self.user, product=self.order.items.first().product, quantity=2)

        self.callback(status="success", txnid=self.txnid)

        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

    def test_get_callback_is_accepted(self):
        response = self.client.get(self.url, {"status": "success", "txnid": self.txnid}, HTTP_ORIGIN=ORIGIN)

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)

    def test_replayed_success_is_idempotent(self):
        self.callback(status="success", txnid=self.txnid)
        response = self.callback(status="success", txnid=self.txnid)

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertEqual(Shipment.objects.filter(order=self.order).count(), 1)
        self.assertEqual(OrderTracking.objects.filter(order=self.order).count(), 1)

    def test_late_failure_does_not_override_success(self):
        self.callback(status="success", txnid=self.txnid, mihpayid="1")
        response = self.callback(status="failure", txnid=self.txnid, error_Message="Late")

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.payment.gateway_response["mihpayid"], "1")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)

    def test_late_success_does_not_override_failure(self):
        self.callback(status="failure", txnid=self.txnid, error_Message="Declined")
        self.callback(status="success", txnid=self.txnid)

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.FAILED)
        self.assertFalse(Shipment.objects.exists())

    def test_unknown_txnid_touches_nothing(self):
        response = self.callback(status="failure", txnid="TXN_UNKNOWN_1")

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-failure?txnid=TXN_UNKNOWN_1&status=failed&error=Payment%20record%20not%20found",
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    def test_unknown_txnid_success_never_confirms(self):
        self.callback(status="success", txnid="TXN_UNKNOWN_2")

        self.assertFalse(Order.objects.filter(status=Order.Status.CONFIRMED).exists())
        self.assertFalse(Shipment.objects.exists())

    def test_failure_with_gateway_message(self):
        response = self.callback(status="failure", txnid=self.txnid, error_Message="Insufficient Funds")

        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-failure?txnid={self.txnid}&status=failed"
            f"&error=Insufficient%20Funds&orderId={self.order.id}",
        )
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.FAILED)
        self.assertEqual(self.payment.error_message, "Insufficient Funds")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAYMENT_FAILED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.FAILED)
        self.assertFalse(Shipment.objects.exists())

    def test_failure_message_falls_back_to_field9_then_default(self):
        self.assertEqual(PaymentService.failure_message({"field9": "Bank declined"}), "Bank declined")
        self.assertEqual(PaymentService.failure_message({}), "Payment failed")

        response = self.callback(status="failure", txnid=self.txnid)
        self.assertIn("error=Payment%20failed", response["Location"])

    def test_missing_txnid(self):
        response = self.callback(status="success")

        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-failure?status=failed&error=Missing%20transaction%20ID",
        )

    def test_order_update_failure_rolls_back_payment(self):
        with mock.patch(
            "apps.payments.services.OrderService.mark_payment_completed",
            side_effect=OrderUpdateError("Failed to update order"),
        ):
            response = self.callback(status="success", txnid=self.txnid)

        self.assertIn("/payment-failure?", response["Location"])
        self.assertIn("error=Failed%20to%20update%20order", response["Location"])
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)

    def test_shipment_failure_keeps_payment_confirmed(self):
        with mock.patch(
            "apps.payments.services.ShipmentService.create_shipment",
            side_effect=ShipmentCreationError("Carrier down"),
        ):
            response = self.callback(status="success", txnid=self.txnid)

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)

    def test_unexpected_shipment_error_keeps_success_redirect(self):
        with mock.patch(
            "apps.payments.services.ShipmentService.create_shipment",
            side_effect=RuntimeError("carrier exploded"),
        ):
            response = self.callback(status="success", txnid=self.txnid)

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)

    @override_settings(
        CARRIER_SIMULATE=False,
        CARRIER_API_KEY="live-key",
        CARRIER_API_SECRET="live-secret",
        CARRIER_API_URL="https://carrier.example.com",
    )
    @mock.patch("apps.shipping.carrier.requests.post")
    def test_malformed_carrier_response_keeps_success_redirect(self, mock_post):
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {"trackingNumber": "T1", "estimatedDelivery": 12345}

        response = self.callback(status="success", txnid=self.txnid, amount="4999.00")

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)
        self.assertFalse(Shipment.objects.exists())

    @override_settings(SHIPMENT_DISPATCH_ASYNC=True)
    def test_queue_failure_keeps_success_redirect(self):
        with mock.patch("apps.payments.services.create_shipment_task.delay", side_effect=OSError("broker down")):
            with self.captureOnCommitCallbacks(execute=True):
                response = self.callback(status="success", txnid=self.txnid)

        self.assertIn("/payment-success?", response["Location"])
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)

    def test_amount_mismatch_fails_payment(self):
        response = self.callback(status="success", txnid=self.txnid, amount="1.00")

        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-failure?txnid={self.txnid}&status=failed"
            f"&error=Paid%20amount%20does%20not%20match%20the%20order%20total&orderId={self.order.id}",
        )
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.FAILED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.FAILED)
        self.assertFalse(Shipment.objects.exists())

    def test_equal_amount_in_other_format_is_accepted(self):
        self.callback(status="success", txnid=self.txnid, amount="4999")

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)

    def test_unexpected_error_still_redirects(self):
        with mock.patch("apps.payments.services.PaymentService.handle_callback", side_effect=RuntimeError("boom")):
            response = self.callback(status="success", txnid=self.txnid)

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(
            response["Location"],
            f"{ORIGIN}/payment-failure?txnid={self.txnid}&status=failed&error=boom",
        )

    def test_hash_mismatch_only_warns_by_default(self):
        with self.assertLogs("apps.payments.services", level="WARNING"):
            self.callback(status="success", txnid=self.txnid, hash="0" * 128)

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)

    @override_settings(PAYU_ENFORCE_RESPONSE_HASH=True)
    def test_hash_mismatch_rejected_when_enforced(self):
        response = self.callback(status="success", txnid=self.txnid, hash="0" * 128)

        self.assertIn("error=Invalid%20payment%20response%20signature", response["Location"])
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)

    @override_settings(PAYU_ENFORCE_RESPONSE_HASH=True)
    def test_missing_hash_rejected_when_enforced(self):
        response = self.client.get(self.url, {"status": "success", "txnid": self.txnid}, HTTP_ORIGIN=ORIGIN)

        self.assertIn("/payment-failure?", response["Location"])
        self.assertIn("error=Missing%20payment%20response%20signature", response["Location"])
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PENDING)
        self.assertFalse(Shipment.objects.exists())

    @override_settings(PAYU_ENFORCE_RESPONSE_HASH=True)
    def test_valid_hash_accepted_when_enforced(self):
        fields = {
            "status": "success", "txnid": self.txnid, "amount": "4999.00",
            "productinfo": "Mass Gainer", "firstname": "Asha", "email": "a@b.com",
        }
        fields["hash"] = PayUClient().response_hash(fields)

        self.callback(**fields)

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)


class PaymentResultTests(PaymentTestMixin, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = reverse("payment-result")

    def test_cod_order_is_fetched_without_txnid(self):
        order = self.make_order()

        response = self.client.get(self.url, {"orderId": order.id, "method": "cod"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["order"]["id"], order.id)
        self.assertIsNone(response.data["payment"])
        self.assertEqual(response.data["method"], "cod")
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(Shipment.objects.exists())

    def test_online_result_reports_failure_details(self):
        order = self.make_order()
        payment = self.make_pending_payment(order)
        PaymentService.handle_callback({
            "status": "failure", "txnid": payment.payment_id,
            "error_Message": "Insufficient Funds", "bank_ref_num": "BR123", "bankcode": "HDFC",
        })

        response = self.client.get(self.url, {"orderId": order.id, "txnid": payment.payment_id})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["payment"]["status"], "failed")
        self.assertEqual(response.data["payment"]["error_message"], "Insufficient Funds")
        self.assertEqual(response.data["payment"]["bank_ref_num"], "BR123")
        self.assertEqual(response.data["payment"]["bankcode"], "HDFC")
        self.assertEqual(response.data["order"]["payment_status"], "failed")

    def test_unknown_payment(self):
        response = self.client.get(self.url, {"txnid": "TXN_NOPE"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_cod_order(self):
        response = self.client.get(self.url, {"orderId": "ORDNOPE", "method": "cod"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
