from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from apps.catalog.models import Product
from apps.utils.exceptions import BusinessLogicException
from .models import CodeUpload, VerificationCode
from .services import CodeUploadService, VerificationService

User = get_user_model()


class CodeUploadServiceTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(name="Pre Workout", price=Decimal("1499.00"))

    def test_codes_are_normalised_and_counted(self):
        result = CodeUploadService.bulk_upload([" abc1234 ", "xyz5678"], product_id=self.product.id)

        self.assertEqual(result["uploadedCount"], 2)
        self.assertEqual(result["failedCount"], 0)
        self.assertEqual(result["status"], "completed")
        self.assertTrue(VerificationCode.objects.filter(code="ABC1234", product=self.product).exists())

        upload = CodeUpload.objects.get(id=result["uploadId"])
        self.assertEqual(upload.total_codes, 2)
        self.assertEqual(upload.uploaded_codes, 2)
        self.assertIsNotNone(upload.completed_at)
        self.assertIsNone(upload.error_log)

    @override_settings(VERIFICATION_BATCH_SIZE=2)
    def test_failed_batch_does_not_stop_later_batches(self):
        VerificationCode.objects.create(code="DUP0001")
        upload = CodeUpload.objects.create(filename="codes.csv")

        result = CodeUploadService.bulk_upload(
            ["dup0001", "NEW0001", "NEW0002", "NEW0003"], upload_id=upload.id
        )

        self.assertEqual(result["uploadedCount"], 2)
        self.assertEqual(result["failedCount"], 2)
        self.assertEqual(result["status"], "completed_with_errors")

        upload.refresh_from_db()
        self.assertEqual(upload.status, CodeUpload.Status.COMPLETED_WITH_ERRORS)
        self.assertEqual(upload.failed_codes, 2)
        self.assertEqual([e["code"] for e in upload.error_log["failed_codes"]], ["dup0001", "NEW0001"])
        self.assertFalse(VerificationCode.objects.filter(code="NEW0001").exists())
        self.assertTrue(VerificationCode.objects.filter(code="NEW0003").exists())

    def test_empty_codes_rejected(self):
        with self.assertRaises(BusinessLogicException):
            CodeUploadService.bulk_upload([])

    def test_blank_entries_are_failed(self):
        result = CodeUploadService.bulk_upload(["  ", "OK00001"])
        self.assertEqual(result["uploadedCount"], 1)
        self.assertEqual(result["failedCount"], 1)


class VerificationServiceTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(name="Pre Workout", price=Decimal("1499.00"))
        VerificationCode.objects.create(code="ABC1234", product=self.product)

    def test_first_use_consumes_code(self):
        result = VerificationService.verify(" abc1234 ")

        self.assertTrue(result["valid"])
        self.assertFalse(result["alreadyUsed"])
        self.assertEqual(result["product"], self.product)
        self.assertTrue(VerificationCode.objects.get(code="ABC1234").is_used)

    def test_second_use_reports_already_used(self):
        VerificationService.verify("ABC1234")
        result = VerificationService.verify("ABC1234")

        self.assertTrue(result["valid"])
        self.assertTrue(result["alreadyUsed"])

    def test_unknown_code(self):
        result = VerificationService.verify("NOPE000")
        self.assertFalse(result["valid"])
        self.assertIsNone(result["product"])


class VerificationApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username="ops", password="testpass123", is_staff=True)
        self.customer = User.objects.create_user(username="buyer", password="testpass123")

    def test_admin_bulk_upload(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse("code-uploads"), {"codes": ["AAA0001", "AAA0002"]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["uploadedCount"], 2)

    def test_invalid_codes_payload(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse("code-uploads"), {"codes": []}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Invalid codes array")

    def test_customer_cannot_upload(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(reverse("code-uploads"), {"codes": ["AAA0001"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_public_verify(self):
        product = Product.objects.create(name="Creatine", price=Decimal("999.00"))
        VerificationCode.objects.create(code="XYZ5678", product=product)

        response = self.client.post(reverse("code-verify"), {"code": "xyz5678"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["valid"])
        self.assertFalse(response.data["alreadyUsed"])
        self.assertEqual(response.data["product"]["name"], "Creatine")
