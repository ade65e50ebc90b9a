# apps/utils/tests.py
import json
import logging

from django.test import TestCase, RequestFactory, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import ValidationError, NotAuthenticated

from .exceptions import (
    custom_exception_handler,
    BusinessLogicException,
    PaymentInitiationError,
    ImmutableRecordError,
)
from .logging import JSONFormatter
from .utils import format_amount, build_url, request_origin


class ExceptionHandlerTests(TestCase):
    def test_business_exception_uses_its_status(self):
        response = custom_exception_handler(PaymentInitiationError("Gateway down"), {})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data, {"error": "Gateway down", "code": "payment_initiation_failed"})

    def test_custom_code_overrides_default(self):
        response = custom_exception_handler(BusinessLogicException("Nope", code="nope"), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "nope")

    def test_conflict_status(self):
        response = custom_exception_handler(ImmutableRecordError("Locked"), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_validation_error_is_flattened(self):
        response = custom_exception_handler(ValidationError({"orderId": ["This field is required."]}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "orderId: This field is required.")

    def test_drf_auth_error(self):
        response = custom_exception_handler(NotAuthenticated(), {})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["code"], "not_authenticated")

    def test_unhandled_exception_returns_500(self):
        response = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["code"], "server_error")


class JSONFormatterTests(TestCase):
    def test_redacts_gateway_secrets_and_keeps_context(self):
        payload_in = {"txnid": "TXN_1", "hash": "abc", "salt": "s3cr3t", "nested": {"key": "k"}}
        record = logging.LogRecord("apps.payments", logging.INFO, __file__, 1, payload_in, None, None)
        record.order_id = "ORD1"
        payload = json.loads(JSONFormatter().format(record))

        self.assertNotIn("abc", payload["msg"])
        self.assertNotIn("s3cr3t", payload["msg"])
        self.assertIn("TXN_1", payload["msg"])
        self.assertEqual(payload["order_id"], "ORD1")


class HelperTests(TestCase):
    def test_format_amount(self):
        self.assertEqual(format_amount(4999), "4999.00")
        self.assertEqual(format_amount("12.5"), "12.50")

    def test_build_url_encodes_spaces_as_percent20(self):
        url = build_url("https://shop", "/payment-failure", {"error": "Bank declined", "txnid": None})
        self.assertEqual(url, "https://shop/payment-failure?error=Bank%20declined")

    @override_settings(FRONTEND_URL="https://fallback.example.com/")
    def test_request_origin_fallback(self):
        factory = RequestFactory()
        self.assertEqual(request_origin(factory.get("/")), "https://fallback.example.com")
        self.assertEqual(
            request_origin(factory.get("/", HTTP_ORIGIN="https://shop.example.com")),
            "https://shop.example.com",
        )


class ServiceEndpointTests(TestCase):
    def test_health_check(self):
        response = self.client.get(reverse("health-check"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["components"]["db"], "ok")

    def test_server_info(self):
        response = self.client.get(reverse("server-info"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["app_name"], "Storefront")
