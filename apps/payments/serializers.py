from decimal import Decimal

from rest_framework import serializers

from apps.orders.serializers import OrderSerializer
from .models import Payment


class InitiatePaymentSerializer(serializers.Serializer):
    orderId = serializers.CharField(max_length=50)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    productInfo = serializers.CharField(max_length=255)
    firstName = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20)


class PaymentSerializer(serializers.ModelSerializer):
    bank_ref_num = serializers.SerializerMethodField()
    bankcode = serializers.SerializerMethodField()
    field9 = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id", "payment_id", "payment_method", "amount", "status",
            "error_message", "bank_ref_num", "bankcode", "field9", "created_at", "updated_at",
        ]

    def get_bank_ref_num(self, obj):
        return obj.gateway_response.get("bank_ref_num")

    def get_bankcode(self, obj):
        return obj.gateway_response.get("bankcode")

    def get_field9(self, obj):
        return obj.gateway_response.get("field9")


class PaymentResultSerializer(serializers.Serializer):
    order = OrderSerializer()
    payment = PaymentSerializer(allow_null=True)
    method = serializers.CharField()
