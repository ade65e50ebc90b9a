from django.contrib import admin
from .models import CodeUpload, VerificationCode


@admin.register(CodeUpload)
class CodeUploadAdmin(admin.ModelAdmin):
    list_display = ("filename", "product", "status", "total_codes", "uploaded_codes", "failed_codes", "completed_at")
    list_filter = ("status",)
    readonly_fields = ("total_codes", "uploaded_codes", "failed_codes", "error_log", "completed_at")


@admin.register(VerificationCode)
class VerificationCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "product", "is_used", "used_at", "created_at")
    list_filter = ("is_used",)
    search_fields = ("code",)
