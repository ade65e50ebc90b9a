from django.contrib import admin
from .models import Shipment


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ("tracking_number", "order", "carrier", "status", "estimated_delivery", "created_at")
    list_filter = ("status", "carrier")
    search_fields = ("tracking_number", "shipment_id", "order__id")
    readonly_fields = ("order", "shipment_data", "created_at", "updated_at")
