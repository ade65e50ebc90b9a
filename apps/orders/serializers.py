from rest_framework import serializers

from apps.shipping.serializers import ShipmentSerializer
from .models import Order, OrderItem, OrderTracking, CartItem


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    product_image = serializers.URLField(source="product.image_url", read_only=True)
    variant_name = serializers.CharField(source="variant.variant_name", read_only=True, default=None)
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "product_name", "product_image", "variant_name", "quantity", "unit_price", "subtotal"]


class OrderTrackingSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTracking
        fields = ["id", "status", "message", "tracking_number", "carrier", "estimated_delivery", "created_at"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id", "status", "status_display", "payment_status", "total_amount",
            "shipping_address", "customer_name", "created_at", "updated_at", "items",
        ]


class OrderTrackingResponseSerializer(serializers.Serializer):
    """
    Read-only view of an order for the public tracking page.
    """
    order = serializers.SerializerMethodField()
    tracking = serializers.SerializerMethodField()
    shipment = serializers.SerializerMethodField()

    def get_order(self, order):
        return OrderSerializer(order).data

    def get_tracking(self, order):
        return OrderTrackingSerializer(order.tracking_events.all(), many=True).data

    def get_shipment(self, order):
        shipment = getattr(order, "shipment", None)
        return ShipmentSerializer(shipment).data if shipment else None


class CartItemInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    variant_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = CartItem
        fields = ["id", "product", "product_name", "variant", "quantity", "updated_at"]
