from django.db import models

from apps.utils.models import TimestampedModel


class CodeUpload(TimestampedModel):
    """
    One admin bulk upload of authenticity codes, with progress counters.
    """
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        COMPLETED_WITH_ERRORS = "completed_with_errors", "Completed with errors"

    filename = models.CharField(max_length=255)
    product = models.ForeignKey(
        "catalog.Product", null=True, blank=True, on_delete=models.SET_NULL, related_name="code_uploads"
    )
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)

    total_codes = models.PositiveIntegerField(default=0)
    uploaded_codes = models.PositiveIntegerField(default=0)
    failed_codes = models.PositiveIntegerField(default=0)

    error_log = models.JSONField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.filename} [{self.status}]"


class VerificationCode(models.Model):
    code = models.CharField(max_length=64, unique=True)
    product = models.ForeignKey(
        "catalog.Product", null=True, blank=True, on_delete=models.SET_NULL, related_name="verification_codes"
    )
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)
