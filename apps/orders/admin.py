from django.contrib import admin
from .models import Order, OrderItem, OrderTracking, CartItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "variant", "unit_price", "quantity")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderTrackingInline(admin.TabularInline):
    model = OrderTracking
    extra = 0
    readonly_fields = ("created_at", "status", "message", "tracking_number", "carrier", "estimated_delivery")

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "guest_email", "total_amount", "status", "payment_status", "created_at")
    list_filter = ("status", "payment_status")
    search_fields = ("id", "user__email", "guest_email")
    readonly_fields = ("id", "created_at", "updated_at")
    inlines = [OrderItemInline, OrderTrackingInline]


@admin.register(OrderTracking)
class OrderTrackingAdmin(admin.ModelAdmin):
    list_display = ("order", "status", "tracking_number", "carrier", "created_at")
    search_fields = ("order__id", "tracking_number")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("user", "product", "variant", "quantity", "updated_at")
    search_fields = ("user__username", "product__name")
