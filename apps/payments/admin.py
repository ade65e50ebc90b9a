from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("payment_id", "order", "user", "payment_method", "amount", "status", "created_at")
    list_filter = ("status", "payment_method")
    search_fields = ("payment_id", "order__id")
    readonly_fields = (
        "payment_id", "order", "user", "amount", "status",
        "payment_data", "gateway_response", "error_message", "created_at", "updated_at",
    )

    def has_delete_permission(self, request, obj=None):
        return False
