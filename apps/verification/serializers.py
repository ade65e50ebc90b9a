from rest_framework import serializers

from .models import CodeUpload


class BulkUploadSerializer(serializers.Serializer):
    codes = serializers.ListField(child=serializers.CharField(allow_blank=True, trim_whitespace=False), allow_empty=True)
    uploadId = serializers.UUIDField(required=False, allow_null=True)
    productId = serializers.UUIDField(required=False, allow_null=True)
    filename = serializers.CharField(required=False, max_length=255)


class CodeUploadSerializer(serializers.ModelSerializer):
    class Meta:
        model = CodeUpload
        fields = [
            "id", "filename", "product", "status", "total_codes", "uploaded_codes",
            "failed_codes", "error_log", "completed_at", "created_at",
        ]


class VerifyCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)


class VerifiedProductSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    image_url = serializers.URLField(allow_null=True)


class VerifyResultSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    alreadyUsed = serializers.BooleanField()
    product = VerifiedProductSerializer(allow_null=True)
    usedAt = serializers.DateTimeField(allow_null=True)
