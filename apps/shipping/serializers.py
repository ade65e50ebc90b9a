from rest_framework import serializers
from .models import Shipment


class ShipmentSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Shipment
        fields = [
            "id", "order", "carrier", "shipment_id", "tracking_number", "status", "status_display",
            "pickup_address", "delivery_address", "weight", "dimensions",
            "estimated_delivery", "actual_delivery", "created_at", "updated_at",
        ]
        read_only_fields = fields


class CreateShipmentSerializer(serializers.Serializer):
    orderId = serializers.CharField(max_length=50)
