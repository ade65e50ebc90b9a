import logging

from django.conf import settings
from django.db import transaction, DatabaseError
from django.utils import timezone

from apps.catalog.models import Product
from apps.utils.exceptions import BusinessLogicException, ResourceNotFoundError
from .models import CodeUpload, VerificationCode

logger = logging.getLogger(__name__)


def normalize_code(code) -> str:
    return str(code).strip().upper()


class CodeUploadService:

    @staticmethod
    def _resolve_upload(upload_id, filename, product):
        if not upload_id:
            return CodeUpload.objects.create(filename=filename or "api-upload", product=product)
        try:
            return CodeUpload.objects.get(id=upload_id)
        except (CodeUpload.DoesNotExist, ValueError):
            raise ResourceNotFoundError("Upload not found.", code="upload_not_found")

    @staticmethod
    def bulk_upload(codes, upload_id=None, product_id=None, filename=None) -> dict:
        """
        Inserts codes in batches of VERIFICATION_BATCH_SIZE. A batch that
        fails to insert is counted as failed as a whole and logged in the
        upload's error_log; later batches still run.
        """
        if not codes or not isinstance(codes, (list, tuple)):
            raise BusinessLogicException("Invalid codes array", code="invalid_codes")

        product = None
        if product_id:
            product = Product.objects.filter(id=product_id).first()
            if product is None:
                raise ResourceNotFoundError("Product not found.", code="product_not_found")

        upload = CodeUploadService._resolve_upload(upload_id, filename, product)
        upload_product = product or upload.product

        logger.info(f"Processing {len(codes)} codes for upload {upload.id}", extra={"upload_id": str(upload.id)})
        CodeUpload.objects.filter(id=upload.id).update(
            status=CodeUpload.Status.PROCESSING, total_codes=len(codes), updated_at=timezone.now()
        )

        batch_size = settings.VERIFICATION_BATCH_SIZE
        uploaded = 0
        failed = 0
        failed_codes = []

        for start in range(0, len(codes), batch_size):
            batch = codes[start:start + batch_size]

            valid, empty = [], []
            for raw in batch:
                (valid if normalize_code(raw) else empty).append(raw)
            for raw in empty:
                failed_codes.append({"code": raw, "error": "Empty code"})
            failed += len(empty)

            if valid:
                try:
                    with transaction.atomic():
                        created = VerificationCode.objects.bulk_create([
                            VerificationCode(code=normalize_code(raw), product=upload_product)
                            for raw in valid
                        ])
                    uploaded += len(created)
                except DatabaseError as e:
                    logger.error(f"Batch error on upload {upload.id}: {e}", extra={"upload_id": str(upload.id)})
                    failed += len(valid)
                    failed_codes.extend({"code": raw, "error": str(e)} for raw in valid)

            CodeUpload.objects.filter(id=upload.id).update(
                uploaded_codes=uploaded, failed_codes=failed, updated_at=timezone.now()
            )

        final_status = CodeUpload.Status.COMPLETED if failed == 0 else CodeUpload.Status.COMPLETED_WITH_ERRORS
        CodeUpload.objects.filter(id=upload.id).update(
            status=final_status,
            uploaded_codes=uploaded,
            failed_codes=failed,
            completed_at=timezone.now(),
            error_log={"failed_codes": failed_codes} if failed_codes else None,
            updated_at=timezone.now(),
        )

        logger.info(f"Upload {upload.id} completed: {uploaded} uploaded, {failed} failed", extra={"upload_id": str(upload.id)})
        return {
            "success": True,
            "uploadId": str(upload.id),
            "uploadedCount": uploaded,
            "failedCount": failed,
            "status": final_status.value,
        }


class VerificationService:

    @staticmethod
    def verify(code) -> dict:
        """
        Checks an authenticity code and consumes it on first use.
        """
        normalized = normalize_code(code or "")
        record = VerificationCode.objects.select_related("product").filter(code=normalized).first()
        if record is None:
            logger.info(f"Verification failed for unknown code {normalized}")
            return {"valid": False, "alreadyUsed": False, "product": None, "usedAt": None}

        # Single conditional write, a concurrent verify of the same code sees 0 rows
        claimed = VerificationCode.objects.filter(pk=record.pk, is_used=False).update(
            is_used=True, used_at=timezone.now()
        )
        if claimed:
            record.refresh_from_db(fields=["is_used", "used_at"])

        return {
            "valid": True,
            "alreadyUsed": not claimed,
            "product": record.product,
            "usedAt": record.used_at,
        }
